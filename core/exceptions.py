"""
Custom exceptions for the disclosure sync pipeline with structured error context.

This module provides the exception hierarchy used by the dispatcher, the
page crawler, the normalizer, the reconciliation engine and the
orchestrator. Each exception carries context information for debugging.

Exception Hierarchy:
    SyncException (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   └── APIExtractionError
    │       ├── NetworkError (retryable)
    │       ├── RateLimitError (retryable)
    │       ├── AuthenticationError (fatal for the run)
    │       ├── ServerError
    │       ├── ResourceNotFoundError
    │       └── RequestCancelledError
    ├── TransformationError
    │   └── RecordError
    │       └── NormalizationError
    ├── LoadError
    │   └── DatabaseError
    │       ├── DatabaseConnectionError
    │       └── PersistenceConflictError
    ├── CheckpointError
    ├── SyncInProgressError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (endpoint, page, record position, etc.)
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
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


class ConfigurationError(SyncException):
    """Raised when required settings (e.g. FMP_API_KEY) are missing or invalid."""
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors the dispatcher retries transparently.

    Used for transient errors like:
    - Network timeouts and connection resets
    - Rate limiting (HTTP 429)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(SyncException):
    """
    Mixin for errors that must NOT be retried.

    - Authentication failures (HTTP 401, 403)
    - Resource not found (HTTP 404)
    - Malformed records
    """
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(SyncException):
    """Base exception for data extraction failures."""
    pass


class APIExtractionError(ExtractionError):
    """
    Exception raised when a provider API call fails.

    Context should include:
        - endpoint: The API path that failed
        - page: Page number (if applicable)
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated)
    """
    pass


class NetworkError(RetryableError, APIExtractionError):
    """No response received (timeout, connection error). Retried by the dispatcher."""
    pass


class RateLimitError(RetryableError, APIExtractionError):
    """Rate limiting (HTTP 429 or local window exhaustion), retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, APIExtractionError):
    """Authentication failures (HTTP 401, 403). Fatal for the whole run."""
    pass


class ServerError(APIExtractionError):
    """Provider 5xx. Not retried by the dispatcher; the crawler skips the page."""
    pass


class ResourceNotFoundError(NonRetryableError, APIExtractionError):
    """Resource not found errors (HTTP 404)."""
    pass


class RequestCancelledError(APIExtractionError):
    """Pending request rejected because the dispatcher queue was cleared."""
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(SyncException):
    """Base exception for data transformation failures."""
    pass


class RecordError(NonRetryableError, TransformationError):
    """
    A single source record could not be processed.

    Context should include:
        - sync_type: senate, house or insiders
        - position: 1-based position of the record in the fetched set
        - symbol: Ticker symbol of the record (if present)
        - trader: Trader name of the record (if present)
    """
    pass


class NormalizationError(RecordError):
    """A raw record is malformed or missing required fields."""
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(SyncException):
    """Base exception for data loading failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Type of database operation (INSERT, UPDATE, SELECT)
        - table_name: Name of the table
    """
    pass


class DatabaseConnectionError(RetryableError, DatabaseError):
    """Database unreachable. Fatal for the current source, safe to resume later."""
    pass


class PersistenceConflictError(DatabaseError):
    """Unique identity collision while inserting a trade."""
    pass


# ============================================================================
# Orchestration Errors
# ============================================================================

class CheckpointError(SyncException):
    """
    Exception raised when checkpoint management fails.

    Context should include:
        - sync_type: senate, house or insiders
        - operation: Operation that failed (load, begin, advance, complete, fail)
    """
    pass


class SyncInProgressError(SyncException):
    """A sync run was requested while another one is still active."""
    pass
