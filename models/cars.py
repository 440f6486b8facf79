from sqlalchemy import Column, BigInteger, String, Integer, Index
from models.base import Base


class Car(Base):
    """
    Monthly new registrations of cars by make.

    Source: "Monthly New Registration of Cars by Make.zip" (CSV).
    One row per month, make, importer type, fuel type and vehicle type.
    """
    __tablename__ = "cars"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    month = Column(String(7), nullable=False, index=True)  # YYYY-MM
    make = Column(String(100), nullable=False, index=True)
    importer_type = Column(String(50), nullable=False, default="")
    fuel_type = Column(String(50), nullable=False, index=True)
    vehicle_type = Column(String(100), nullable=False)
    number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index(
            "idx_cars_natural_key",
            "month", "make", "importer_type", "fuel_type", "vehicle_type",
            unique=True,
        ),
    )
