"""
Test doubles and builders shared by unit and integration tests
"""

import io
import zipfile
from typing import Dict
from unittest.mock import MagicMock
import httpx


class InMemoryRedis:
    """The subset of the redis.asyncio client the engine uses, backed by dicts"""

    def __init__(self):
        self.values: Dict[str, object] = {}
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.published = []
        self.hset_calls = 0

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value):
        self.values[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += int(self.values.pop(key, None) is not None)
        return removed

    async def hget(self, name, key):
        return self.hashes.get(name, {}).get(key)

    async def hset(self, name, key=None, value=None, mapping=None):
        self.hset_calls += 1
        bucket = self.hashes.setdefault(name, {})
        if key is not None:
            bucket[key] = value
        bucket.update(mapping or {})
        return 1

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 0


def build_zip(files: Dict[str, str]) -> bytes:
    """Zip archive holding ``{name: text}``"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, text in files.items():
            zf.writestr(name, text)
    return buffer.getvalue()


def make_session_factory(session) -> MagicMock:
    """Stand-in for ``async_sessionmaker`` yielding ``session`` from ``async with``"""
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    return factory


def make_result(rows=None, scalar=None) -> MagicMock:
    """Stand-in for a SQLAlchemy ``Result``"""
    result = MagicMock()
    result.fetchall.return_value = list(rows or [])
    result.scalar_one.return_value = scalar
    result.scalar_one_or_none.return_value = scalar
    return result


def mock_http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
