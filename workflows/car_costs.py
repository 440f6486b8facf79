"""
Car costs workflow: the monthly car cost workbook (OMV, ARF, COE and selling
prices per model).

No post is written; the pipeline ends after cache invalidation.
"""

from typing import List, Optional
from ingestion.datasets import update_car_costs
from schemas.results import UpdaterResult, WorkflowResult
from workflows import queries
from workflows.errors import ErrorCategory
from workflows.shared import (
    POST_COMMIT_RETRIES,
    WorkflowDependencies,
    last_updated_step,
    process_dataset,
    revalidate_cache,
)
from workflows.steps import WorkflowStep

TAG = "CAR COSTS"


def car_costs_cache_tags(month: str) -> List[str]:
    return [f"car-costs:month:{month}", "car-costs:months"]


async def process_car_costs_data(deps: WorkflowDependencies) -> UpdaterResult:
    return await process_dataset(deps, "car-costs", update_car_costs)


async def get_latest_month(deps: WorkflowDependencies) -> Optional[str]:
    async with deps.session_factory() as session:
        return await queries.get_car_costs_latest_month(session)


async def revalidate_car_costs_cache(deps: WorkflowDependencies, month: str) -> List[str]:
    return await revalidate_cache(deps.invalidator, car_costs_cache_tags(month))


PROCESS_DATA = WorkflowStep(
    "process-car-costs-data", process_car_costs_data, ErrorCategory.UPSTREAM_SOURCE, max_retries=3, context=TAG
)
LAST_UPDATED = last_updated_step("car-costs", TAG)
LATEST_MONTH = WorkflowStep("get-car-costs-latest-month", get_latest_month, ErrorCategory.STORAGE, context=TAG)
REVALIDATE_CACHE = WorkflowStep(
    "revalidate-car-costs-cache",
    revalidate_car_costs_cache,
    ErrorCategory.STORAGE,
    max_retries=POST_COMMIT_RETRIES,
    context=TAG,
)


async def run_car_costs_workflow(deps: WorkflowDependencies, month: Optional[str] = None) -> WorkflowResult:
    """Ingest the monthly car cost workbook and invalidate its cache tags"""
    run = deps.runtime.run

    result = await run(PROCESS_DATA, deps)
    if result.records_processed == 0:
        return WorkflowResult(message="No car cost records processed.")

    await run(LAST_UPDATED, deps)

    month = month or await run(LATEST_MONTH, deps)
    if not month:
        return WorkflowResult(message=f"[{TAG}] No car cost records found")

    await run(REVALIDATE_CACHE, deps, month)

    return WorkflowResult(message=f"[{TAG}] Data processed and cache revalidated successfully")
