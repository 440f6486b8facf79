"""
Cars workflow: new registrations by make.

process data -> latest month -> invalidate caches -> skip if a post exists
-> aggregate -> generate post -> publish -> invalidate posts cache
"""

from typing import Any, Dict, List, Optional
from ingestion.datasets import update_cars
from models.base import DataType
from schemas.results import SavedPost, UpdaterResult, WorkflowResult
from workflows import queries
from workflows.errors import ErrorCategory
from workflows.shared import (
    POST_COMMIT_RETRIES,
    WorkflowDependencies,
    check_existing_post,
    generate_post,
    last_updated_step,
    post_link,
    process_dataset,
    publish_to_all_platforms,
    revalidate_cache,
    revalidate_posts_cache,
    year_of,
)
from workflows.steps import WorkflowStep
import logging

logger = logging.getLogger(__name__)

TAG = "CARS"


def cars_cache_tags(month: str) -> List[str]:
    return [f"cars:month:{month}", f"cars:year:{year_of(month)}", "cars:months"]


async def process_cars_data(deps: WorkflowDependencies) -> UpdaterResult:
    return await process_dataset(deps, "cars", update_cars)


async def get_latest_month(deps: WorkflowDependencies) -> Optional[str]:
    async with deps.session_factory() as session:
        return await queries.get_cars_latest_month(session)


async def revalidate_cars_cache(deps: WorkflowDependencies, month: str) -> List[str]:
    return await revalidate_cache(deps.invalidator, cars_cache_tags(month))


async def check_existing_cars_post(deps: WorkflowDependencies, month: str):
    return await check_existing_post(deps.session_factory, month, DataType.CARS)


async def fetch_cars_data(deps: WorkflowDependencies, month: str) -> Dict[str, Any]:
    async with deps.session_factory() as session:
        return await queries.get_cars_aggregated_by_month(session, month)


async def generate_cars_post(deps: WorkflowDependencies, data: Dict[str, Any], month: str) -> SavedPost:
    return await generate_post(deps, data, month, DataType.CARS)


async def publish_cars_post(deps: WorkflowDependencies, post: SavedPost):
    return await publish_to_all_platforms(deps.publisher, post.title, post_link(post.slug))


async def revalidate_posts(deps: WorkflowDependencies) -> None:
    await revalidate_posts_cache(deps.invalidator)


PROCESS_DATA = WorkflowStep(
    "process-cars-data", process_cars_data, ErrorCategory.UPSTREAM_SOURCE, max_retries=3, context=TAG
)
LAST_UPDATED = last_updated_step("cars", TAG)
LATEST_MONTH = WorkflowStep("get-cars-latest-month", get_latest_month, ErrorCategory.STORAGE, context=TAG)
REVALIDATE_CACHE = WorkflowStep(
    "revalidate-cars-cache", revalidate_cars_cache, ErrorCategory.STORAGE, max_retries=POST_COMMIT_RETRIES, context=TAG
)
EXISTING_POST = WorkflowStep("check-existing-cars-post", check_existing_cars_post, ErrorCategory.STORAGE, context=TAG)
FETCH_DATA = WorkflowStep("fetch-cars-data", fetch_cars_data, ErrorCategory.STORAGE, context=TAG)
GENERATE_POST = WorkflowStep(
    "generate-cars-post", generate_cars_post, ErrorCategory.GENERATION_SERVICE, max_retries=3, context=TAG
)
PUBLISH = WorkflowStep("publish-cars-post", publish_cars_post, ErrorCategory.NETWORK, max_retries=3, context=TAG)
REVALIDATE_POSTS = WorkflowStep(
    "revalidate-posts-cache", revalidate_posts, ErrorCategory.STORAGE, max_retries=POST_COMMIT_RETRIES, context=TAG
)


async def run_cars_workflow(deps: WorkflowDependencies, month: Optional[str] = None) -> WorkflowResult:
    """
    Run the cars pipeline.

    Args:
        deps: Workflow collaborators
        month: Month to write about instead of the latest stored month
    """
    run = deps.runtime.run

    result = await run(PROCESS_DATA, deps)
    if result.records_processed == 0:
        return WorkflowResult(message="No car records processed. Skipped publishing to social media.")

    await run(LAST_UPDATED, deps)

    month = month or await run(LATEST_MONTH, deps)
    if not month:
        return WorkflowResult(message=f"[{TAG}] No car records found")

    await run(REVALIDATE_CACHE, deps, month)

    if deps.generator is None:
        return WorkflowResult(message=f"[{TAG}] Data processed and cache revalidated successfully")

    existing = await run(EXISTING_POST, deps, month)
    if existing:
        return WorkflowResult(message=f"[{TAG}] Data processed. Post already exists, skipping social media.")

    data = await run(FETCH_DATA, deps, month)
    post = await run(GENERATE_POST, deps, data, month)

    if deps.publisher is not None:
        await run(PUBLISH, deps, post)

    await run(REVALIDATE_POSTS, deps)

    return WorkflowResult(
        message=f"[{TAG}] Data processed and cache revalidated successfully",
        post_id=post.post_id,
    )
