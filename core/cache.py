"""
Key-value cache access (Redis)

The cache holds three kinds of values:
- content checksums of upstream files (one hash, no expiry)
- ``last_updated:<dataset>`` markers
- cache tags that downstream readers use to drop stale query results
"""

from typing import Iterable, List
import redis.asyncio as redis
from core.config import settings
import logging

logger = logging.getLogger(__name__)

INVALIDATION_CHANNEL = "cache:invalidate"


def create_redis_client(url: str = None) -> redis.Redis:
    """Create an asyncio Redis client that returns ``str`` values"""
    return redis.from_url(url or settings.REDIS_URL, decode_responses=True)


class CacheInvalidator:
    """
    Invalidate cached query results addressed by string tags.

    Each tag is a Redis key holding the cached payload for that tag
    (e.g. ``cars:month:2024-01``). Invalidation deletes the keys and
    announces the tags on a pub/sub channel so long-lived readers can
    drop in-process copies.
    """

    def __init__(self, client: redis.Redis, channel: str = INVALIDATION_CHANNEL):
        self.client = client
        self.channel = channel

    async def invalidate(self, tags: Iterable[str]) -> List[str]:
        tags = list(tags)
        if not tags:
            return tags

        await self.client.delete(*tags)
        for tag in tags:
            await self.client.publish(self.channel, tag)

        logger.info(f"Cache invalidated for tags: {', '.join(tags)}")
        return tags
