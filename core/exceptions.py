"""
Custom exceptions for the ETL pipeline with structured error context.

This module provides the exception hierarchy used by connectors, the
pipeline stages and the orchestrator. Each exception carries a context
dictionary for debugging and for the job log metadata.

Exception Hierarchy:
    ETLException (base)
    ├── ConnectorError
    │   ├── NetworkError
    │   ├── ConnectorTimeoutError
    │   ├── RateLimitError
    │   ├── AuthenticationError
    │   └── MalformedResponseError
    ├── ExtractionError
    ├── TransformError
    ├── LoadError
    │   ├── DatabaseError
    │   └── DatabaseConnectionError
    ├── JobLogError
    ├── AlreadyRunningError
    ├── OrchestrationFatalError
    │   └── RunCancelledError
    └── RetryableError / NonRetryableError (mixins)

Nothing in the core retries automatically. The ``retryable`` flag is
reported to callers so that the trigger (API client, scheduler) can decide.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class ETLException(Exception):
    """
    Base exception for all ETL-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (source, job id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    retryable = False

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None
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
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "retryable": self.retryable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(ETLException):
    """
    Mixin for transient errors a caller may retry.

    Use this for:
    - Network failures and timeouts
    - Rate limiting (HTTP 429)
    - Temporary database connection issues
    """

    retryable = True


class NonRetryableError(ETLException):
    """
    Mixin for permanent errors.

    Use this for:
    - Authentication failures (HTTP 401, 403)
    - Responses that cannot be decoded
    """

    retryable = False


# ============================================================================
# Connector Errors
# ============================================================================

class ConnectorError(ETLException):
    """
    Raised by a source connector when fetching documents fails.

    Context should include:
        - source: Connector name
        - url: The endpoint that failed
        - status_code: HTTP status code (if applicable)
    """

    retryable = True


class NetworkError(RetryableError, ConnectorError):
    """Transport-level failures (DNS, connection reset, TLS)."""
    pass


class ConnectorTimeoutError(RetryableError, ConnectorError):
    """A connector call did not answer within the configured timeout."""
    pass


class RateLimitError(RetryableError, ConnectorError):
    """Rate limiting errors (HTTP 429)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[BaseException] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, ConnectorError):
    """Authentication failures (HTTP 401, 403)."""
    pass


class MalformedResponseError(NonRetryableError, ConnectorError):
    """Provider answered with something that is not the expected document shape."""
    pass


# ============================================================================
# Stage Errors
# ============================================================================

class ExtractionError(ETLException):
    """
    Extraction failed for one source.

    Wraps the first connector or persistence failure; the cause is chained.
    Context should include:
        - source: Connector name
        - records_persisted: Records written before the failure
    """

    @property
    def retryable(self) -> bool:
        cause = self.original_exception
        return isinstance(cause, ETLException) and cause.retryable


class TransformError(ETLException):
    """
    Derivation failed for a single raw record.

    Never fatal to the batch. Context should include:
        - raw_data_id: ID of the raw record
        - source: Source of the raw record
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(ETLException):
    """Base exception for persistence failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when database operations fail.

    Context should include:
        - operation: Store operation name (insert_raw, close_job_log, ...)
        - table_name: Name of the table
    """
    pass


class DatabaseConnectionError(RetryableError, DatabaseError):
    """Database unreachable or the operation timed out."""
    pass


class JobLogError(ETLException):
    """Invalid job log transition (closing twice, closing to running)."""
    pass


# ============================================================================
# Orchestration Errors
# ============================================================================

class AlreadyRunningError(ETLException):
    """
    Another orchestration run holds the pipeline lease.

    Context should include:
        - holder: Job id of the active run
    """
    pass


class OrchestrationFatalError(ETLException):
    """
    The run could not start or finish (job log or persistence unavailable).
    """
    pass


class RunCancelledError(OrchestrationFatalError):
    """The run was cancelled before it finished."""
    pass
