"""
Workflow step error classification.

A failed step ends in exactly one of two outcomes:
- ``RetryableError`` with a backoff hint (milliseconds, or "30s" / "1m")
- ``FatalError``, which stops the pipeline

Classification looks at structured information first (HTTP status codes,
httpx and Redis connection errors, SQLAlchemy error types, including those
wrapped by ingestion exceptions) and falls back to matching the error
message. The same error, category and attempt always produce the
same decision.
"""

import enum
import re
from dataclasses import dataclass
from typing import Any, List, NoReturn, Optional
import httpx
from redis import exceptions as redis_exc
from sqlalchemy import exc as sa_exc
from core.exceptions import ETLException, FatalError, FetchError, RetryAfter, RetryableError, StepError
import logging

logger = logging.getLogger(__name__)


class ErrorCategory(str, enum.Enum):
    """What kind of dependency a step talks to"""
    NETWORK = "network"
    UPSTREAM_SOURCE = "upstream-source"
    GENERATION_SERVICE = "generation-service"
    STORAGE = "storage"


NETWORK_PATTERNS = (
    "econnrefused",
    "econnreset",
    "etimedout",
    "enotfound",
    "connection refused",
    "connection reset",
    "fetch failed",
    "network",
    "socket",
)

_SERVER_ERROR = re.compile(r"\b5\d{2}\b")


@dataclass(frozen=True)
class StepErrorDecision:
    retryable: bool
    message: str
    retry_after: Optional[RetryAfter] = None

    def to_exception(self, original: Any = None) -> StepError:
        cause = original if isinstance(original, Exception) else None
        if self.retryable:
            return RetryableError(self.message, self.retry_after, original_exception=cause)
        return FatalError(self.message, original_exception=cause)


def _retry(message: str, retry_after: RetryAfter) -> StepErrorDecision:
    return StepErrorDecision(retryable=True, message=message, retry_after=retry_after)


def _fatal(message: str) -> StepErrorDecision:
    return StepErrorDecision(retryable=False, message=message)


def _message_of(error: Exception) -> str:
    if isinstance(error, FetchError):
        return error.message
    return str(error) or type(error).__name__


def _status_code_of(error: Exception) -> Optional[int]:
    if isinstance(error, FetchError):
        return error.status_code
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def is_network_error(message: str) -> bool:
    lowered = message.lower()
    return any(pattern in lowered for pattern in NETWORK_PATTERNS)


def _is_server_error(message: str, status: Optional[int]) -> bool:
    if status is not None:
        return 500 <= status <= 599
    return bool(_SERVER_ERROR.search(message))


def _has_status(message: str, status: Optional[int], *codes: int) -> bool:
    if status is not None:
        return status in codes
    return any(str(code) in message for code in codes)


def _classify_upstream(message: str, status: Optional[int], attempt: int, prefix: str) -> StepErrorDecision:
    lowered = message.lower()

    if _is_server_error(message, status):
        return _retry(f"{prefix}Upstream server error: {message}", attempt ** 2 * 1000)
    if _has_status(message, status, 429) or "rate" in lowered:
        return _retry(f"{prefix}Upstream rate limited: {message}", "30s")
    if "timeout" in lowered:
        return _retry(f"{prefix}Upstream timeout: {message}", attempt * 5000)
    if _has_status(message, status, 401, 403):
        return _fatal(f"{prefix}Upstream auth error: {message}")
    return _fatal(f"{prefix}Upstream error: {message}")


def _classify_generation(message: str, status: Optional[int], attempt: int, prefix: str) -> StepErrorDecision:
    lowered = message.lower()

    if _has_status(message, status, 429) or "rate" in lowered:
        return _retry(f"{prefix}Generation rate limited: {message}", "1m")
    if _is_server_error(message, status) or "overload" in lowered:
        return _retry(f"{prefix}Generation server error: {message}", attempt ** 2 * 5000)
    if "model" in lowered or "capacity" in lowered:
        return _retry(f"{prefix}Generation capacity error: {message}", attempt * 30000)
    if "invalid" in lowered or _has_status(message, status, 401, 403):
        return _fatal(f"{prefix}Generation configuration error: {message}")
    return _retry(f"{prefix}Generation error: {message}", attempt * 10000)


def _classify_storage(message: str, attempt: int, prefix: str) -> StepErrorDecision:
    lowered = message.lower()

    if "pool" in lowered or "connection" in lowered:
        return _retry(f"{prefix}Database connection error: {message}", attempt * 2000)
    if "timeout" in lowered:
        return _retry(f"{prefix}Database timeout: {message}", attempt * 3000)
    if "constraint" in lowered or "duplicate" in lowered or "unique" in lowered:
        return _fatal(f"{prefix}Database constraint error: {message}")
    return _fatal(f"{prefix}Database error: {message}")


def _classify_structured(error: Exception, message: str, attempt: int, prefix: str) -> Optional[StepErrorDecision]:
    """Decisions that follow from the error's type alone"""
    if isinstance(error, (httpx.TransportError, redis_exc.ConnectionError, redis_exc.TimeoutError)):
        return _retry(f"{prefix}Network error: {message}", attempt ** 2 * 1000)
    if isinstance(error, sa_exc.IntegrityError):
        return _fatal(f"{prefix}Database constraint error: {message}")
    if isinstance(error, sa_exc.TimeoutError):
        return _retry(f"{prefix}Database timeout: {message}", attempt * 3000)
    if isinstance(error, (sa_exc.OperationalError, sa_exc.DisconnectionError)):
        return _retry(f"{prefix}Database connection error: {message}", attempt * 2000)
    return None


def _causes(error: Exception) -> List[Exception]:
    """Exceptions wrapped by ``error``, outermost first"""
    causes = []
    while isinstance(error, ETLException) and isinstance(error.original_exception, Exception):
        error = error.original_exception
        causes.append(error)
    return causes


def _classify_cause(error: Exception, message: str, attempt: int, prefix: str) -> Optional[StepErrorDecision]:
    """
    Network and database failures keep their meaning when wrapped.

    ``CacheError("Failed to read cached checksum")`` around a Redis
    connection error is retried like the connection error itself.
    """
    for cause in _causes(error):
        detail = f"{message}: {_message_of(cause)}"
        decision = _classify_structured(cause, detail, attempt, prefix)
        if decision is not None:
            return decision
        if is_network_error(_message_of(cause)):
            return _retry(f"{prefix}Network error: {detail}", attempt ** 2 * 1000)
    return None


def classify_error(
    error: Any,
    category: ErrorCategory,
    attempt: int = 1,
    context: Optional[str] = None
) -> StepErrorDecision:
    """
    Decide whether a failed step may be retried and with what backoff.

    Args:
        error: Whatever the step raised
        category: Dependency the step talks to
        attempt: 1-based attempt number supplied by the runtime
        context: Pipeline tag used as the message prefix (e.g. "COE")

    Returns:
        StepErrorDecision; messages are prefixed with ``[context] ``
    """
    prefix = f"[{context}] " if context else ""

    if isinstance(error, StepError):
        # Already classified by the step itself
        return StepErrorDecision(
            retryable=error.retryable,
            message=error.message,
            retry_after=getattr(error, "retry_after", None),
        )

    if not isinstance(error, Exception):
        return _fatal(f"{prefix}Unhandled error: {error}")

    message = _message_of(error)

    decision = _classify_structured(error, message, attempt, prefix)
    if decision is not None:
        return decision

    decision = _classify_cause(error, message, attempt, prefix)
    if decision is not None:
        return decision

    if is_network_error(message):
        return _retry(f"{prefix}Network error: {message}", attempt ** 2 * 1000)

    status = _status_code_of(error)
    category = ErrorCategory(category)

    if category == ErrorCategory.UPSTREAM_SOURCE:
        return _classify_upstream(message, status, attempt, prefix)
    if category == ErrorCategory.GENERATION_SERVICE:
        return _classify_generation(message, status, attempt, prefix)
    if category == ErrorCategory.STORAGE:
        return _classify_storage(message, attempt, prefix)
    if category == ErrorCategory.NETWORK:
        return _retry(f"{prefix}Network error: {message}", attempt ** 2 * 1000)

    return _fatal(f"{prefix}Unhandled error: {message}")


def handle_step_error(
    error: Any,
    category: ErrorCategory,
    attempt: int = 1,
    context: Optional[str] = None
) -> NoReturn:
    """Classify ``error`` and raise the resulting RetryableError or FatalError"""
    decision = classify_error(error, category, attempt, context)

    if decision.retryable:
        logger.warning(f"{decision.message} (attempt {attempt}, retry after {decision.retry_after})")
    else:
        logger.error(f"{decision.message} (attempt {attempt})")

    if isinstance(error, StepError):
        raise error

    raise decision.to_exception(error)
