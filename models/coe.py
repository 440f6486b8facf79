from sqlalchemy import Column, BigInteger, String, Integer, Index
from models.base import Base


class COE(Base):
    """
    Certificate of Entitlement bidding results.

    Two bidding exercises are held each month; ``bidding_no`` is 1 or 2.
    """
    __tablename__ = "coe"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    month = Column(String(7), nullable=False, index=True)
    bidding_no = Column(Integer, nullable=False)
    vehicle_class = Column(String(50), nullable=False)
    quota = Column(Integer, nullable=False, default=0)
    bids_success = Column(Integer, nullable=False, default=0)
    bids_received = Column(Integer, nullable=False, default=0)
    premium = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_coe_natural_key", "month", "bidding_no", "vehicle_class", unique=True),
    )


class PQP(Base):
    """Prevailing Quota Premium per month and vehicle class."""
    __tablename__ = "pqp"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    month = Column(String(7), nullable=False, index=True)
    vehicle_class = Column(String(50), nullable=False)
    pqp = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_pqp_natural_key", "month", "vehicle_class", unique=True),
    )
