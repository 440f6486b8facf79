"""
Pydantic schemas for parsed dataset records

Each schema is the typed form of one parsed row. Field names match the
column names of the target table so ``model_dump()`` can be inserted as-is.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional


class ParsedRecord(BaseModel):
    """Base for immutable parsed records"""

    model_config = ConfigDict(frozen=True, extra="ignore")


class MonthlyRecord(ParsedRecord):
    month: str = Field(..., pattern=r"^\d{4}-\d{2}$")


class AnnualRecord(ParsedRecord):
    year: str = Field(..., pattern=r"^\d{4}$")


class CarRecord(MonthlyRecord):
    make: str = Field(..., min_length=1)
    importer_type: str = ""
    fuel_type: str
    vehicle_type: str
    number: int = 0


class COERecord(MonthlyRecord):
    bidding_no: int = Field(..., ge=1, le=2)
    vehicle_class: str
    quota: int = 0
    bids_success: int = 0
    bids_received: int = 0
    premium: int = 0


class PQPRecord(MonthlyRecord):
    vehicle_class: str
    pqp: int = 0


class DeregistrationRecord(MonthlyRecord):
    category: str
    number: int = 0


class CarCostRecord(MonthlyRecord):
    sn: int
    make: str = Field(..., min_length=1, max_length=30)
    model: str
    coe_cat: Optional[str] = None
    engine_capacity: Optional[str] = None
    max_power_output: float = 0
    fuel_type: Optional[str] = None
    co2: float = 0
    ves_banding: Optional[str] = None
    omv: float = 0
    gst_excise_duty: float = 0
    arf: float = 0
    ves_surcharge_rebate: float = 0
    eeai: float = 0
    registration_fee: float = 0
    coe_premium: float = 0
    total_basic_cost_without_coe: float = 0
    total_basic_cost_with_coe: float = 0
    selling_price_without_coe: float = 0
    selling_price_with_coe: float = 0
    difference_without_coe: Optional[float] = None
    difference_with_coe: Optional[float] = None

    @field_validator("sn", mode="before")
    @classmethod
    def whole_serial_number(cls, v):
        """Workbook serial numbers arrive as floats (e.g. ``12.0``)"""
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v


class CarPopulationRecord(AnnualRecord):
    make: str = Field(..., min_length=1)
    fuel_type: str
    number: int = 0


class VehiclePopulationRecord(AnnualRecord):
    category: str
    fuel_type: str
    number: int = 0
