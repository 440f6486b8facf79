"""
Collaborators and steps shared by every dataset workflow
"""

import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol
import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from core.cache import CacheInvalidator
from core.config import settings
from ingestion.checksum import ChecksumGate, ChecksumStore
from ingestion.fetcher import ArchiveFetcher
from ingestion.loaders.postgres_loader import ConflictPolicy, PostgresLoader
from models import Post
from models.base import DataType, PostStatus
from schemas.results import GeneratedPost, SavedPost, UpdaterResult
from workflows import queries
from workflows.errors import ErrorCategory
from workflows.runtime import LocalStepRuntime
from workflows.steps import WorkflowStep
import logging

logger = logging.getLogger(__name__)

POSTS_CACHE_TAG = "posts:list"

# Retry budget of steps that run after rows are committed and the checksum cached
POST_COMMIT_RETRIES = 3

UpdateFunction = Callable[..., Awaitable[UpdaterResult]]


class ContentGenerator(Protocol):
    """Writes a blog post from aggregated dataset figures"""

    async def __call__(self, data: Dict[str, Any], month: str, data_type: DataType) -> GeneratedPost:
        ...


@dataclass(frozen=True)
class PublishResult:
    platform: str
    success: bool
    error: Optional[str] = None


class Publisher(Protocol):
    """Sends a message with a link to every enabled social channel"""

    async def publish(self, message: str, link: str) -> List[PublishResult]:
        ...


@dataclass
class WorkflowDependencies:
    """
    Capabilities a workflow needs, passed in explicitly.

    ``generator`` and ``publisher`` are optional; without a generator a
    pipeline stops after cache invalidation, without a publisher it skips
    the social-media step.
    """
    http_client: httpx.AsyncClient
    session_factory: async_sessionmaker[AsyncSession]
    cache: Any
    invalidator: CacheInvalidator
    generator: Optional[ContentGenerator] = None
    publisher: Optional[Publisher] = None
    runtime: Any = field(default_factory=LocalStepRuntime)
    temp_dir: Optional[str] = None

    def fetcher(self) -> ArchiveFetcher:
        return ArchiveFetcher(self.http_client, temp_dir=self.temp_dir)

    def checksum_gate(self) -> ChecksumGate:
        return ChecksumGate(ChecksumStore(self.cache))


def post_slug(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower())
    return slug.strip("-")


def year_of(month: str) -> str:
    return month.split("-")[0]


async def set_last_updated(cache, dataset: str) -> int:
    """Record when ``dataset`` last received new rows (epoch milliseconds)"""
    now = int(time.time() * 1000)
    await cache.set(f"last_updated:{dataset}", now)
    logger.info(f"Last updated {dataset}: {now}")
    return now


async def process_dataset(
    deps: WorkflowDependencies,
    dataset: str,
    update: UpdateFunction
) -> UpdaterResult:
    """Run a dataset's updater"""
    logger.info(f"Processing {dataset} data")

    result = await update(deps.fetcher(), deps.checksum_gate(), deps.session_factory)

    if result.records_processed == 0:
        logger.info(f"No changes for {dataset}")

    return result


def last_updated_step(dataset: str, context: str) -> WorkflowStep:
    """Step recording that ``dataset`` received new rows; run only after inserts"""

    async def mark_updated(deps: WorkflowDependencies) -> int:
        return await set_last_updated(deps.cache, dataset)

    return WorkflowStep(
        f"set-{dataset}-last-updated",
        mark_updated,
        ErrorCategory.STORAGE,
        max_retries=POST_COMMIT_RETRIES,
        context=context,
    )


async def revalidate_cache(invalidator: CacheInvalidator, tags: Iterable[str]) -> List[str]:
    tags = await invalidator.invalidate(tags)
    logger.info(f"[WORKFLOW] Cache invalidated for tags: {', '.join(tags)}")
    return tags


async def check_existing_post(
    session_factory: async_sessionmaker[AsyncSession],
    month: str,
    data_type: DataType
) -> Optional[Post]:
    async with session_factory() as session:
        return await queries.get_existing_post(session, month, data_type)


async def save_post(
    session_factory: async_sessionmaker[AsyncSession],
    post: GeneratedPost,
    month: str,
    data_type: DataType
) -> SavedPost:
    """
    Insert or update the post for ``(month, data_type)``.

    Regenerating a month's post overwrites its content in place; the post
    keeps its identifier.
    """
    now = datetime.now(timezone.utc)
    slug = post_slug(post.title)
    row = {
        "title": post.title,
        "slug": slug,
        "content": post.content,
        "excerpt": post.excerpt,
        "tags": post.tags,
        "highlights": post.highlights,
        "generation_metadata": post.metadata,
        "month": month,
        "data_type": data_type,
        "status": PostStatus.PUBLISHED,
        "published_at": now,
        "modified_at": now,
    }

    async with session_factory() as session:
        loader = PostgresLoader(session)
        await loader.load_batch(
            Post,
            [row],
            conflict=ConflictPolicy.DO_UPDATE,
            key_fields=("month", "data_type")
        )
        result = await session.execute(
            select(Post.uuid).where(Post.month == month, Post.data_type == data_type)
        )
        post_uuid = result.scalar_one()

    logger.info(f"Saved {data_type.value} post for {month}: {post.title}")
    return SavedPost(post_id=str(post_uuid), slug=slug, title=post.title)


async def generate_post(
    deps: WorkflowDependencies,
    data: Dict[str, Any],
    month: str,
    data_type: DataType
) -> SavedPost:
    post = await deps.generator(data, month, data_type)
    return await save_post(deps.session_factory, post, month, data_type)


async def publish_to_all_platforms(publisher: Publisher, title: str, link: str) -> List[PublishResult]:
    logger.info("Publishing to all enabled platforms")

    results = await publisher.publish(f"📰 New Blog Post: {title}", link)

    success_count = sum(1 for r in results if r.success)
    logger.info(
        f"Publishing complete: {success_count} successful, {len(results) - success_count} failed"
    )
    return results


async def revalidate_posts_cache(invalidator: CacheInvalidator) -> None:
    await invalidator.invalidate([POSTS_CACHE_TAG])
    logger.info("[WORKFLOW] Posts cache invalidated")


def post_link(slug: str) -> str:
    return f"{settings.SITE_URL}/blog/{slug}"
