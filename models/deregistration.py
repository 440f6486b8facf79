from sqlalchemy import Column, BigInteger, String, Integer, Index
from models.base import Base


class Deregistration(Base):
    """Monthly de-registered motor vehicles under the vehicle quota system."""
    __tablename__ = "deregistrations"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    month = Column(String(7), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_deregistrations_natural_key", "month", "category", unique=True),
    )
