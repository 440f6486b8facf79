"""
Database engine and session factories (SQLAlchemy async, asyncpg)

Workflow steps each open a short-lived session from ``async_session_maker``
and close it before the step returns, so connections are not pooled.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(url: Optional[str] = None) -> AsyncEngine:
    return create_async_engine(url or settings.DATABASE_URL, echo=False, poolclass=NullPool)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit; batches are flushed explicitly"""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


engine = create_engine()
async_session_maker = create_session_factory(engine)
