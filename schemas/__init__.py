"""
Pydantic schemas for data validation and serialization.

This package defines the typed values that flow through ingestion and the
dataset workflows:

Schemas:
    records: Parsed dataset rows (one schema per dataset)
    results: UpdaterResult, WorkflowResult and generated-post payloads

Features:
    - Automatic data validation
    - Type coercion and conversion
    - Immutable parsed records (``frozen=True``)

Usage:
    from schemas.records import CarRecord, COERecord
    from schemas.results import UpdaterResult, WorkflowResult

Example:
    # Validate a parsed CSV row
    record = CarRecord(
        month="2024-01",
        make="BMW",
        fuel_type="Petrol",
        vehicle_type="Saloon",
        number=12
    )

    # Pydantic automatically validates types and required fields
    assert record.number == 12
"""

__all__ = [
    "ParsedRecord",
    "MonthlyRecord",
    "AnnualRecord",
    "CarRecord",
    "COERecord",
    "PQPRecord",
    "DeregistrationRecord",
    "CarCostRecord",
    "CarPopulationRecord",
    "VehiclePopulationRecord",
    "UpdaterResult",
    "WorkflowResult",
    "GeneratedPost",
    "SavedPost",
]
