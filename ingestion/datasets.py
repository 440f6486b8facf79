"""
Dataset definitions and their update entry points.

Each ``update_*`` function runs the ingestion path for one dataset and
returns the ``UpdaterResult`` that its workflow step reports.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.config import settings
from ingestion.checksum import ChecksumGate
from ingestion.fetcher import ArchiveFetcher
from ingestion.parsers import CSVTransformOptions
from ingestion.parsers.transforms import make_name, vehicle_type_name, zero_if_empty
from ingestion.updater import DatasetConfig, Updater
from models import COE, PQP, Car, CarCost, CarPopulation, Deregistration, VehiclePopulation
from schemas.records import (
    COERecord,
    CarCostRecord,
    CarPopulationRecord,
    CarRecord,
    DeregistrationRecord,
    PQPRecord,
    VehiclePopulationRecord,
)
from schemas.results import UpdaterResult
import logging

logger = logging.getLogger(__name__)

COE_ARCHIVE = "COE Bidding Results.zip"
POPULATION_FOLDER = "Vehicle Population"


def cars_config(base_url: Optional[str] = None) -> DatasetConfig:
    base_url = base_url or settings.LTA_DATAMALL_BASE_URL
    return DatasetConfig(
        url=f"{base_url}/Monthly New Registration of Cars by Make.zip",
        model=Car,
        record_schema=CarRecord,
        key_fields=("month", "make", "importer_type", "fuel_type", "vehicle_type"),
        csv_options=CSVTransformOptions(
            fields={
                "make": make_name,
                "vehicle_type": vehicle_type_name,
                "number": zero_if_empty,
            }
        ),
    )


def coe_config(base_url: Optional[str] = None) -> DatasetConfig:
    base_url = base_url or settings.LTA_DATAMALL_BASE_URL
    return DatasetConfig(
        url=f"{base_url}/{COE_ARCHIVE}",
        model=COE,
        record_schema=COERecord,
        key_fields=("month", "bidding_no", "vehicle_class"),
        csv_file="M11-coe_results.csv",
        csv_options=CSVTransformOptions(
            fields={
                "bidding_no": zero_if_empty,
                "quota": zero_if_empty,
                "bids_success": zero_if_empty,
                "bids_received": zero_if_empty,
                "premium": zero_if_empty,
            }
        ),
    )


def pqp_config(base_url: Optional[str] = None) -> DatasetConfig:
    base_url = base_url or settings.LTA_DATAMALL_BASE_URL
    return DatasetConfig(
        url=f"{base_url}/{COE_ARCHIVE}",
        model=PQP,
        record_schema=PQPRecord,
        key_fields=("month", "vehicle_class"),
        csv_file="M11-coe_results_pqp.csv",
        csv_options=CSVTransformOptions(fields={"pqp": zero_if_empty}),
    )


def deregistrations_config(base_url: Optional[str] = None) -> DatasetConfig:
    base_url = base_url or settings.LTA_DATAMALL_BASE_URL
    return DatasetConfig(
        url=f"{base_url}/Monthly De-Registered Motor Vehicles under Vehicle Quota System (VQS).zip",
        model=Deregistration,
        record_schema=DeregistrationRecord,
        key_fields=("month", "category"),
        csv_options=CSVTransformOptions(fields={"number": zero_if_empty}),
    )


def car_costs_config(url: Optional[str] = None) -> DatasetConfig:
    return DatasetConfig(
        url=url or settings.CAR_COST_XLSX_URL,
        model=CarCost,
        record_schema=CarCostRecord,
        key_fields=("month", "make", "model"),
        workbook=True,
    )


def car_population_config(base_url: Optional[str] = None) -> DatasetConfig:
    base_url = base_url or settings.LTA_DATAMALL_BASE_URL
    return DatasetConfig(
        url=f"{base_url}/{POPULATION_FOLDER}/Annual Car Population by Make.zip",
        model=CarPopulation,
        record_schema=CarPopulationRecord,
        key_fields=("year", "make", "fuel_type"),
        csv_options=CSVTransformOptions(fields={"number": zero_if_empty}),
        period_field="year",
    )


def vehicle_population_config(base_url: Optional[str] = None) -> DatasetConfig:
    base_url = base_url or settings.LTA_DATAMALL_BASE_URL
    return DatasetConfig(
        url=f"{base_url}/{POPULATION_FOLDER}/Annual Motor Vehicle Population by Type of Fuel Used.zip",
        model=VehiclePopulation,
        record_schema=VehiclePopulationRecord,
        key_fields=("year", "category", "fuel_type"),
        csv_options=CSVTransformOptions(
            column_mapping={"type": "category", "engine": "fuel_type"},
            fields={"number": zero_if_empty},
        ),
        period_field="year",
    )


async def update_cars(
    fetcher: ArchiveFetcher,
    gate: ChecksumGate,
    session_factory: async_sessionmaker[AsyncSession]
) -> UpdaterResult:
    return await Updater(cars_config(), fetcher, gate, session_factory).update()


async def update_coe(
    fetcher: ArchiveFetcher,
    gate: ChecksumGate,
    session_factory: async_sessionmaker[AsyncSession]
) -> UpdaterResult:
    """
    Update COE results and PQP rates from the shared archive.

    Both files are ingested; the COE results outcome is returned since it
    drives the workflow.
    """
    coe_result = await Updater(coe_config(), fetcher, gate, session_factory).update()
    logger.info(f"[COE] {coe_result.message}")

    pqp_result = await Updater(pqp_config(), fetcher, gate, session_factory).update()
    logger.info(f"[COE PQP] {pqp_result.message}")

    return coe_result


async def update_deregistrations(
    fetcher: ArchiveFetcher,
    gate: ChecksumGate,
    session_factory: async_sessionmaker[AsyncSession]
) -> UpdaterResult:
    return await Updater(deregistrations_config(), fetcher, gate, session_factory).update()


async def update_car_costs(
    fetcher: ArchiveFetcher,
    gate: ChecksumGate,
    session_factory: async_sessionmaker[AsyncSession]
) -> UpdaterResult:
    return await Updater(car_costs_config(), fetcher, gate, session_factory).update()


async def update_car_population(
    fetcher: ArchiveFetcher,
    gate: ChecksumGate,
    session_factory: async_sessionmaker[AsyncSession]
) -> UpdaterResult:
    return await Updater(car_population_config(), fetcher, gate, session_factory).update()


async def update_vehicle_population(
    fetcher: ArchiveFetcher,
    gate: ChecksumGate,
    session_factory: async_sessionmaker[AsyncSession]
) -> UpdaterResult:
    return await Updater(vehicle_population_config(), fetcher, gate, session_factory).update()
