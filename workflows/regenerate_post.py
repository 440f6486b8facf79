"""
Regenerate the blog post of one month, replacing the stored post.

Used when a month's figures were corrected upstream or the generated text
needs rewriting. The post is saved in place and keeps its identifier; nothing
is published to social media.
"""

from typing import Any, Dict
from models.base import DataType
from schemas.results import SavedPost, WorkflowResult
from workflows import queries
from workflows.errors import ErrorCategory
from workflows.shared import POST_COMMIT_RETRIES, WorkflowDependencies, generate_post, revalidate_posts_cache
from workflows.steps import WorkflowStep
import logging

logger = logging.getLogger(__name__)

TAG = "REGENERATE"


async def fetch_post_data(deps: WorkflowDependencies, month: str, data_type: DataType) -> Dict[str, Any]:
    async with deps.session_factory() as session:
        if data_type == DataType.COE:
            return await queries.get_coe_for_month(session, month)
        return await queries.get_cars_aggregated_by_month(session, month)


async def regenerate(
    deps: WorkflowDependencies,
    data: Dict[str, Any],
    month: str,
    data_type: DataType
) -> SavedPost:
    return await generate_post(deps, data, month, data_type)


async def revalidate_posts(deps: WorkflowDependencies) -> None:
    await revalidate_posts_cache(deps.invalidator)


FETCH_DATA = WorkflowStep("fetch-post-data", fetch_post_data, ErrorCategory.STORAGE, context=TAG)
GENERATE_POST = WorkflowStep(
    "regenerate-post", regenerate, ErrorCategory.GENERATION_SERVICE, max_retries=3, context=TAG
)
REVALIDATE_POSTS = WorkflowStep(
    "revalidate-posts-cache", revalidate_posts, ErrorCategory.STORAGE, max_retries=POST_COMMIT_RETRIES, context=TAG
)


async def run_regenerate_post_workflow(
    deps: WorkflowDependencies,
    month: str,
    data_type: DataType
) -> WorkflowResult:
    """
    Rebuild and overwrite the ``data_type`` post for ``month``.

    Raises:
        ValueError: If ``data_type`` is unknown or no content generator is
            configured
    """
    data_type = DataType(data_type)
    if deps.generator is None:
        raise ValueError("Regenerating a post requires a content generator")

    run = deps.runtime.run

    data = await run(FETCH_DATA, deps, month, data_type)
    post = await run(GENERATE_POST, deps, data, month, data_type)
    await run(REVALIDATE_POSTS, deps)

    logger.info(f"[{TAG}] Regenerated {data_type.value} post for {month}: {post.title}")

    return WorkflowResult(
        message=f"[{TAG}] Successfully regenerated {data_type.value} post for {month}",
        post_id=post.post_id,
        title=post.title,
        slug=post.slug,
    )
