from sqlalchemy import Column, BigInteger, String, Integer, Index
from models.base import Base


class CarPopulation(Base):
    """
    Annual car population by make.

    Source: "Annual Car Population by Make.zip" (CSV), one row per year,
    make and fuel type.
    """
    __tablename__ = "car_population"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    year = Column(String(4), nullable=False, index=True)
    make = Column(String(100), nullable=False)
    fuel_type = Column(String(50), nullable=False)
    number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_car_population_natural_key", "year", "make", "fuel_type", unique=True),
    )


class VehiclePopulation(Base):
    """Annual motor vehicle population by vehicle category and fuel type."""
    __tablename__ = "vehicle_population"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    year = Column(String(4), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    fuel_type = Column(String(50), nullable=False)
    number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("idx_vehicle_population_natural_key", "year", "category", "fuel_type", unique=True),
    )
