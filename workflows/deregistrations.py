"""
Deregistrations workflow: monthly de-registered vehicles by category.

No post is written for this dataset; the pipeline ends after cache
invalidation.
"""

from typing import List, Optional
from ingestion.datasets import update_deregistrations
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

TAG = "DEREGISTRATIONS"


def deregistrations_cache_tags(month: str) -> List[str]:
    return [
        f"deregistrations:month:{month}",
        "deregistrations:months",
        f"deregistrations:year:{year_of(month)}",
    ]


async def process_deregistrations_data(deps: WorkflowDependencies) -> UpdaterResult:
    return await process_dataset(deps, "deregistrations", update_deregistrations)


async def get_latest_month(deps: WorkflowDependencies) -> Optional[str]:
    async with deps.session_factory() as session:
        return await queries.get_deregistrations_latest_month(session)


async def revalidate_deregistrations_cache(deps: WorkflowDependencies, month: str) -> List[str]:
    return await revalidate_cache(deps.invalidator, deregistrations_cache_tags(month))


PROCESS_DATA = WorkflowStep(
    "process-deregistrations-data",
    process_deregistrations_data,
    ErrorCategory.UPSTREAM_SOURCE,
    max_retries=3,
    context=TAG,
)
LAST_UPDATED = last_updated_step("deregistrations", TAG)
LATEST_MONTH = WorkflowStep(
    "get-deregistrations-latest-month", get_latest_month, ErrorCategory.STORAGE, context=TAG
)
REVALIDATE_CACHE = WorkflowStep(
    "revalidate-deregistrations-cache",
    revalidate_deregistrations_cache,
    ErrorCategory.STORAGE,
    max_retries=POST_COMMIT_RETRIES,
    context=TAG,
)


async def run_deregistrations_workflow(
    deps: WorkflowDependencies,
    month: Optional[str] = None
) -> WorkflowResult:
    run = deps.runtime.run

    result = await run(PROCESS_DATA, deps)
    if result.records_processed == 0:
        return WorkflowResult(message="No deregistration records processed.")

    await run(LAST_UPDATED, deps)

    month = month or await run(LATEST_MONTH, deps)
    if not month:
        return WorkflowResult(message="No deregistration data found.")

    await run(REVALIDATE_CACHE, deps, month)

    return WorkflowResult(message=f"[{TAG}] Data processed and cache revalidated successfully")
