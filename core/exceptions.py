"""
Custom exceptions for the sync pipeline with structured error context.

This module provides the exception hierarchy used by the warehouse and PMS
sync paths. Each exception carries context information for debugging and
monitoring.

Exception Hierarchy:
    SyncException (base)
    ├── ConfigurationError
    ├── ExtractionError
    │   ├── WarehouseQueryError
    │   └── PMSRequestError
    ├── TransformationError
    │   ├── ValidationError
    │   └── NormalizationError
    ├── LoadError
    │   ├── UpsertError
    │   └── SchemaMismatchError
    ├── RetryExhaustedError
    ├── WebhookSignatureError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (entity, operation, etc.)
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


class ConfigurationError(SyncException):
    """Missing or inconsistent configuration (credentials, base URLs, secrets)."""
    pass


# ============================================================================
# Extraction Errors
# ============================================================================

class ExtractionError(SyncException):
    """Base exception for data extraction failures."""
    pass


class WarehouseQueryError(ExtractionError):
    """
    Exception raised when a warehouse query fails.

    Context should include:
        - operation: Named query (e.g. getLeases)
        - entity: Entity being synchronized
    """
    pass


class PMSRequestError(ExtractionError):
    """
    Exception raised when a PMS REST call fails.

    Context should include:
        - endpoint: Request path
        - status_code: HTTP status code (if applicable)
    """
    pass


# ============================================================================
# Transformation Errors
# ============================================================================

class TransformationError(SyncException):
    """Base exception for data transformation failures."""
    pass


class ValidationError(TransformationError):
    """
    Exception raised when a record is missing required fields.

    Context should include:
        - entity: Entity type
        - missing_fields: Names of the absent fields
    """
    pass


class NormalizationError(TransformationError):
    """
    Exception raised when a field cannot be converted to its canonical type.

    Context should include:
        - field_name: Name of the field
        - field_kind: date or numeric
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(SyncException):
    """Base exception for data loading failures."""
    pass


class UpsertError(LoadError):
    """
    Exception raised when a batch upsert fails and is rolled back.

    Context should include:
        - entity: Entity type
        - record_count: Size of the rolled back batch
    """
    pass


class SchemaMismatchError(LoadError):
    """A record carries columns that do not exist on the target table."""
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Server errors (HTTP 5xx)
    - Rate limiting (HTTP 429)
    """
    pass


class NonRetryableError(SyncException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Malformed requests (HTTP 400)
    - Authentication failures (HTTP 401, 403)
    """
    pass


class NetworkError(RetryableError, PMSRequestError):
    """Connection-level errors and timeouts."""
    pass


class ServerError(RetryableError, PMSRequestError):
    """HTTP 5xx and other non-terminal HTTP responses."""
    pass


class RateLimitError(RetryableError, PMSRequestError):
    """Rate limiting errors (HTTP 429)."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class BadRequestError(NonRetryableError, ExtractionError):
    """Malformed request (HTTP 400 or rejected warehouse query)."""
    pass


class AuthenticationError(NonRetryableError, ExtractionError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class RetryExhaustedError(SyncException):
    """
    Raised when every configured attempt of an operation failed.

    The last underlying error is chained as ``__cause__``; context carries
    ``operation`` and ``attempts``.
    """

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        super().__init__(
            f"{operation} failed after {attempts} attempts",
            context={"operation": operation, "attempts": attempts},
            original_exception=last_error
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class WebhookSignatureError(NonRetryableError):
    """Inbound webhook signature missing or invalid."""
    pass
