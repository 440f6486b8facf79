"""
Core utilities and configuration for the vehicle statistics ingestion engine.

This package provides foundational components used throughout ingestion and
the dataset workflows:

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    cache: Redis client factory and cache-tag invalidation
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.cache import create_redis_client, CacheInvalidator
    from core.exceptions import FetchError, RetryableError, FatalError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "create_redis_client",
    "CacheInvalidator",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "FetchError",
    "ArchiveError",
    "TransformationError",
    "ParseError",
    "SheetFormatError",
    "CacheError",
    "StepError",
    "RetryableError",
    "FatalError",
]
