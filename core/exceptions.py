"""
Custom exceptions for the ingestion engine with structured error context.

This module provides the exception hierarchy used by the fetch, parse and
load stages, plus the two terminal outcomes a workflow step can raise once
an error has been classified.

Exception Hierarchy:
    ETLException (base)
    ├── ExtractionError
    │   ├── FetchError
    │   └── ArchiveError
    ├── TransformationError
    │   └── ParseError
    │       └── SheetFormatError
    ├── CacheError
    └── StepError
        ├── RetryableError
        └── FatalError
"""

from typing import Optional, Dict, Any, Union
from datetime import datetime, timezone


class ETLException(Exception):
    """
    Base exception for all ingestion-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (url, file, dataset, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        return self.message

    def describe(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(ETLException):
    """Base exception for download and extraction failures."""
    pass


class FetchError(ExtractionError):
    """
    Raised when an upstream dataset responds with a non-2xx status.

    The message always carries the status code so that message-based
    classification still works when the structured field is lost.

    Context includes:
        - url: The dataset URL
        - status_code: HTTP status code
        - response_body: Response body, truncated to 500 characters
    """

    def __init__(
        self,
        url: str,
        status_code: int,
        response_body: str = "",
        reason: str = ""
    ):
        self.url = url
        self.status_code = status_code
        self.response_body = response_body[:500]
        message = f"HTTP error! status: {status_code}"
        if reason:
            message += f" {reason}"
        super().__init__(
            message,
            context={
                "url": url,
                "status_code": status_code,
                "response_body": self.response_body,
            },
        )


class ArchiveError(ExtractionError):
    """
    Raised when a downloaded body is not a readable archive or an entry
    would be extracted outside the working directory.
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(ETLException):
    """Base exception for parsing and coercion failures."""
    pass


class ParseError(TransformationError):
    """
    Raised when a raw file cannot be turned into records.

    Context should include:
        - file_path: Path to the file (if on disk)
        - line_number: Row that failed (if applicable)
    """
    pass


class SheetFormatError(ParseError):
    """Raised when a workbook's sheet name does not describe a reporting month."""
    pass


# ============================================================================
# Cache Errors
# ============================================================================

class CacheError(ETLException):
    """Raised when the key-value cache cannot be read or written."""
    pass


# ============================================================================
# Step outcomes
# ============================================================================

RetryAfter = Union[int, str]


class StepError(ETLException):
    """Classified outcome of a failed workflow step."""

    retryable: bool = False


class RetryableError(StepError):
    """
    The step may be re-invoked by the runtime.

    ``retry_after`` is a hint for the runtime: milliseconds as an int, or a
    duration string such as ``"30s"`` or ``"1m"``.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        retry_after: RetryAfter,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        self.context["retry_after"] = retry_after


class FatalError(StepError):
    """The step must not be retried; the pipeline instance fails."""
    pass
