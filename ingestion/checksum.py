"""
Content checksums and the gate that decides whether a file needs processing.

A dataset file is processed only when its SHA-256 differs from the hash
recorded for it in the key-value cache. The new hash is recorded by
``ChecksumGate.commit`` which the updater calls only after the parsed
records have been persisted, so a failed insert is retried in full on the
next run rather than being skipped as "unchanged".
"""

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from core.config import settings
from core.exceptions import CacheError
import logging

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def calculate_checksum(source: Union[bytes, bytearray, str, Path]) -> str:
    """SHA-256 hex digest of a byte buffer or a file (streamed)"""
    h = hashlib.sha256()

    if isinstance(source, (bytes, bytearray)):
        h.update(source)
        return h.hexdigest()

    with Path(source).open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def slugify(value: str) -> str:
    """Lowercase, spaces to dashes; keeps dots so file names stay readable"""
    value = value.strip().lower()
    value = re.sub(r"\s+", "-", value)
    return re.sub(r"[^a-z0-9._-]", "", value)


class ChecksumStore:
    """
    Current known hash per file, kept in one Redis hash.

    The hash has no expiry; an entry is the last hash that was fully
    persisted for that file.
    """

    def __init__(self, client, hash_key: Optional[str] = None):
        self.client = client
        self.hash_key = hash_key or settings.CHECKSUM_CACHE_KEY

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.hget(self.hash_key, slugify(key))
        except Exception as e:
            raise CacheError(
                "Failed to read cached checksum",
                context={"key": key},
                original_exception=e
            )

    async def set(self, key: str, checksum: str) -> None:
        try:
            await self.client.hset(self.hash_key, mapping={slugify(key): checksum})
        except Exception as e:
            raise CacheError(
                "Failed to cache checksum",
                context={"key": key},
                original_exception=e
            )


@dataclass(frozen=True)
class ChecksumDecision:
    key: str
    checksum: str
    cached_checksum: Optional[str]

    @property
    def changed(self) -> bool:
        return self.cached_checksum != self.checksum

    @property
    def first_run(self) -> bool:
        return self.cached_checksum is None


class ChecksumGate:
    """Compare fresh content hashes with cached ones"""

    def __init__(self, store: ChecksumStore):
        self.store = store

    async def check(self, key: str, source: Union[bytes, str, Path]) -> ChecksumDecision:
        checksum = calculate_checksum(source)
        cached = await self.store.get(key)
        decision = ChecksumDecision(key=key, checksum=checksum, cached_checksum=cached)

        logger.info(f"Checksum for {key}: {checksum} (cached: {cached})")
        if decision.first_run:
            logger.info("No cached checksum found. This might be the first run.")
        elif not decision.changed:
            logger.info(f"File has not changed since last update (Checksum: {checksum})")
        else:
            logger.info("Checksum has changed.")

        return decision

    async def commit(self, decision: ChecksumDecision) -> None:
        """Record ``decision.checksum`` as the current known hash"""
        if not decision.changed:
            return
        await self.store.set(decision.key, decision.checksum)
        logger.info(f"Cached checksum for {decision.key}")
