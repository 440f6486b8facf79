from sqlalchemy import Column, BigInteger, String, Integer, Float, Index
from models.base import Base


class CarCost(Base):
    """
    Car cost breakdown published as a monthly XLSX workbook.

    Column order mirrors the workbook (see ``ingestion.parsers.xlsx_parser``).
    """
    __tablename__ = "car_costs"

    id = Column(BigInteger, primary_key=True, autoincrement=True)

    month = Column(String(7), nullable=False, index=True)
    sn = Column(Integer, nullable=False)
    make = Column(String(100), nullable=False, index=True)
    model = Column(String(255), nullable=False)
    coe_cat = Column(String(20), nullable=True)
    engine_capacity = Column(String(50), nullable=True)
    max_power_output = Column(Float, nullable=False, default=0)
    fuel_type = Column(String(50), nullable=True)
    co2 = Column(Float, nullable=False, default=0)
    ves_banding = Column(String(10), nullable=True)
    omv = Column(Float, nullable=False, default=0)
    gst_excise_duty = Column(Float, nullable=False, default=0)
    arf = Column(Float, nullable=False, default=0)
    ves_surcharge_rebate = Column(Float, nullable=False, default=0)
    eeai = Column(Float, nullable=False, default=0)
    registration_fee = Column(Float, nullable=False, default=0)
    coe_premium = Column(Float, nullable=False, default=0)
    total_basic_cost_without_coe = Column(Float, nullable=False, default=0)
    total_basic_cost_with_coe = Column(Float, nullable=False, default=0)
    selling_price_without_coe = Column(Float, nullable=False, default=0)
    selling_price_with_coe = Column(Float, nullable=False, default=0)
    difference_without_coe = Column(Float, nullable=True)
    difference_with_coe = Column(Float, nullable=True)

    __table_args__ = (
        Index("idx_car_costs_natural_key", "month", "make", "model", unique=True),
    )
