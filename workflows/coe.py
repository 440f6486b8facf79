"""
COE workflow: bidding results and prevailing quota premiums.

A post is written once per month, after the second bidding exercise.
"""

from typing import Any, Dict, List, Optional
from ingestion.datasets import update_coe
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

TAG = "COE"

FINAL_BIDDING_NO = 2


def coe_cache_tags(month: str) -> List[str]:
    return ["coe:latest", "coe:months", f"coe:year:{year_of(month)}"]


async def process_coe_data(deps: WorkflowDependencies) -> UpdaterResult:
    return await process_dataset(deps, "coe", update_coe)


async def get_latest_record(deps: WorkflowDependencies) -> Optional[Dict[str, Any]]:
    async with deps.session_factory() as session:
        return await queries.get_coe_latest_record(session)


async def revalidate_coe_cache(deps: WorkflowDependencies, month: str) -> List[str]:
    return await revalidate_cache(deps.invalidator, coe_cache_tags(month))


async def check_existing_coe_post(deps: WorkflowDependencies, month: str):
    return await check_existing_post(deps.session_factory, month, DataType.COE)


async def fetch_coe_data(deps: WorkflowDependencies, month: str) -> Dict[str, Any]:
    async with deps.session_factory() as session:
        return await queries.get_coe_for_month(session, month)


async def generate_coe_post(deps: WorkflowDependencies, data: Dict[str, Any], month: str) -> SavedPost:
    return await generate_post(deps, data, month, DataType.COE)


async def publish_coe_post(deps: WorkflowDependencies, post: SavedPost):
    return await publish_to_all_platforms(deps.publisher, post.title, post_link(post.slug))


async def revalidate_posts(deps: WorkflowDependencies) -> None:
    await revalidate_posts_cache(deps.invalidator)


PROCESS_DATA = WorkflowStep(
    "process-coe-data", process_coe_data, ErrorCategory.UPSTREAM_SOURCE, max_retries=3, context=TAG
)
LAST_UPDATED = last_updated_step("coe", TAG)
LATEST_RECORD = WorkflowStep("get-coe-latest-record", get_latest_record, ErrorCategory.STORAGE, context=TAG)
REVALIDATE_CACHE = WorkflowStep(
    "revalidate-coe-cache", revalidate_coe_cache, ErrorCategory.STORAGE, max_retries=POST_COMMIT_RETRIES, context=TAG
)
EXISTING_POST = WorkflowStep("check-existing-coe-post", check_existing_coe_post, ErrorCategory.STORAGE, context=TAG)
FETCH_DATA = WorkflowStep("fetch-coe-data", fetch_coe_data, ErrorCategory.STORAGE, context=TAG)
GENERATE_POST = WorkflowStep(
    "generate-coe-post", generate_coe_post, ErrorCategory.GENERATION_SERVICE, max_retries=3, context=TAG
)
PUBLISH = WorkflowStep("publish-coe-post", publish_coe_post, ErrorCategory.NETWORK, max_retries=3, context=TAG)
REVALIDATE_POSTS = WorkflowStep(
    "revalidate-posts-cache", revalidate_posts, ErrorCategory.STORAGE, max_retries=POST_COMMIT_RETRIES, context=TAG
)


async def run_coe_workflow(deps: WorkflowDependencies, month: Optional[str] = None) -> WorkflowResult:
    """
    Run the COE pipeline.

    ``month`` is accepted for symmetry with the other pipelines; the gate on
    the second bidding exercise always reads the latest stored record.
    """
    run = deps.runtime.run

    result = await run(PROCESS_DATA, deps)
    if result.records_processed == 0:
        return WorkflowResult(message="No COE records processed. Skipped publishing to social media.")

    await run(LAST_UPDATED, deps)

    record = await run(LATEST_RECORD, deps)
    if not record:
        return WorkflowResult(message=f"[{TAG}] No COE records found")

    month = record["month"]
    await run(REVALIDATE_CACHE, deps, month)

    if record["bidding_no"] != FINAL_BIDDING_NO:
        return WorkflowResult(
            message=f"[{TAG}] Data processed. Waiting for second bidding exercise to generate post."
        )

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
