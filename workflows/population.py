"""
Annual population workflows: car population by make, and motor vehicle
population by category and fuel type.

Both datasets are keyed by year. A pipeline ingests the yearly file, then
invalidates the cache tags of the latest stored year, the year list and the
totals. No post is written.
"""

from typing import List, Optional
from ingestion.datasets import update_car_population, update_vehicle_population
from schemas.results import UpdaterResult, WorkflowResult
from workflows import queries
from workflows.errors import ErrorCategory
from workflows.shared import (
    POST_COMMIT_RETRIES,
    WorkflowDependencies,
    last_updated_step,
    process_dataset,
    revalidate_cache,
    year_of,
)
from workflows.steps import WorkflowStep

CAR_POPULATION_TAG = "CAR POPULATION"
VEHICLE_POPULATION_TAG = "VEHICLE POPULATION"


def population_cache_tags(dataset: str, year: str) -> List[str]:
    return [f"{dataset}:year:{year}", f"{dataset}:years", f"{dataset}:totals"]


async def process_car_population_data(deps: WorkflowDependencies) -> UpdaterResult:
    return await process_dataset(deps, "car-population", update_car_population)


async def process_vehicle_population_data(deps: WorkflowDependencies) -> UpdaterResult:
    return await process_dataset(deps, "vehicle-population", update_vehicle_population)


async def get_car_population_latest_year(deps: WorkflowDependencies) -> Optional[str]:
    async with deps.session_factory() as session:
        return await queries.get_car_population_latest_year(session)


async def get_vehicle_population_latest_year(deps: WorkflowDependencies) -> Optional[str]:
    async with deps.session_factory() as session:
        return await queries.get_vehicle_population_latest_year(session)


async def revalidate_car_population_cache(deps: WorkflowDependencies, year: str) -> List[str]:
    return await revalidate_cache(deps.invalidator, population_cache_tags("car-population", year))


async def revalidate_vehicle_population_cache(deps: WorkflowDependencies, year: str) -> List[str]:
    return await revalidate_cache(deps.invalidator, population_cache_tags("vehicle-population", year))


CAR_PROCESS_DATA = WorkflowStep(
    "process-car-population-data",
    process_car_population_data,
    ErrorCategory.UPSTREAM_SOURCE,
    max_retries=3,
    context=CAR_POPULATION_TAG,
)
CAR_LAST_UPDATED = last_updated_step("car-population", CAR_POPULATION_TAG)
CAR_LATEST_YEAR = WorkflowStep(
    "get-car-population-latest-year",
    get_car_population_latest_year,
    ErrorCategory.STORAGE,
    context=CAR_POPULATION_TAG,
)
CAR_REVALIDATE_CACHE = WorkflowStep(
    "revalidate-car-population-cache",
    revalidate_car_population_cache,
    ErrorCategory.STORAGE,
    max_retries=POST_COMMIT_RETRIES,
    context=CAR_POPULATION_TAG,
)

VEHICLE_PROCESS_DATA = WorkflowStep(
    "process-vehicle-population-data",
    process_vehicle_population_data,
    ErrorCategory.UPSTREAM_SOURCE,
    max_retries=3,
    context=VEHICLE_POPULATION_TAG,
)
VEHICLE_LAST_UPDATED = last_updated_step("vehicle-population", VEHICLE_POPULATION_TAG)
VEHICLE_LATEST_YEAR = WorkflowStep(
    "get-vehicle-population-latest-year",
    get_vehicle_population_latest_year,
    ErrorCategory.STORAGE,
    context=VEHICLE_POPULATION_TAG,
)
VEHICLE_REVALIDATE_CACHE = WorkflowStep(
    "revalidate-vehicle-population-cache",
    revalidate_vehicle_population_cache,
    ErrorCategory.STORAGE,
    max_retries=POST_COMMIT_RETRIES,
    context=VEHICLE_POPULATION_TAG,
)


async def run_car_population_workflow(
    deps: WorkflowDependencies,
    month: Optional[str] = None
) -> WorkflowResult:
    """
    Run the annual car population pipeline.

    Args:
        deps: Workflow collaborators
        month: When given, its year replaces the latest stored year
    """
    run = deps.runtime.run

    result = await run(CAR_PROCESS_DATA, deps)
    if result.records_processed == 0:
        return WorkflowResult(message="No car population records processed.")

    await run(CAR_LAST_UPDATED, deps)

    year = year_of(month) if month else await run(CAR_LATEST_YEAR, deps)
    if not year:
        return WorkflowResult(message="No car population data found.")

    await run(CAR_REVALIDATE_CACHE, deps, year)

    return WorkflowResult(
        message=f"[{CAR_POPULATION_TAG}] Data processed and cache revalidated successfully"
    )


async def run_vehicle_population_workflow(
    deps: WorkflowDependencies,
    month: Optional[str] = None
) -> WorkflowResult:
    """Run the annual motor vehicle population pipeline"""
    run = deps.runtime.run

    result = await run(VEHICLE_PROCESS_DATA, deps)
    if result.records_processed == 0:
        return WorkflowResult(message="No vehicle population records processed.")

    await run(VEHICLE_LAST_UPDATED, deps)

    year = year_of(month) if month else await run(VEHICLE_LATEST_YEAR, deps)
    if not year:
        return WorkflowResult(message="No vehicle population data found.")

    await run(VEHICLE_REVALIDATE_CACHE, deps, year)

    return WorkflowResult(
        message=f"[{VEHICLE_POPULATION_TAG}] Data processed and cache revalidated successfully"
    )
