"""
Consolidated exception system with error codes, context, and correlation support.

Every error raised by the injector derives from BaseError, which logs itself
on construction and carries the current batch run id as its correlation id.
"""

import threading
import traceback
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

_thread_local = threading.local()


class ErrorCode(str, Enum):
    """Standardized error codes."""

    # System errors (1xxx)
    INTERNAL_ERROR = "1000"
    DATABASE_ERROR = "1001"
    CONNECTION_ERROR = "1002"
    CONFIGURATION_ERROR = "1003"
    TIMEOUT_ERROR = "1004"

    # Validation errors (2xxx)
    VALIDATION_FAILED = "2000"
    INVALID_FORMAT = "2001"
    MISSING_REQUIRED = "2002"

    # Resource errors (3xxx)
    NOT_FOUND = "3000"

    # Business logic errors (4xxx)
    UNSUPPORTED_PROVIDER = "4000"

    # External service errors (5xxx)
    EXTERNAL_API_ERROR = "5002"
    INTEGRATION_ERROR = "5003"
    AUTHENTICATION_FAILED = "5005"
    SUBPROCESS_ERROR = "5006"


class BaseError(Exception):
    """Base exception with context, error codes, logging, and error chaining."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """
        Initialize base error with rich context.

        Args:
            message: Human-readable error message
            error_code: Standardized error code from ErrorCode enum
            status_code: Severity expressed as an HTTP-like status
            cause: Original exception that caused this error
            **context: Additional context information
        """
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.error_id = str(uuid.uuid4())
        self.context = context

        correlation_id = get_correlation_id()
        if correlation_id:
            self.context["correlation_id"] = correlation_id

        self.context["error_id"] = self.error_id

        if cause:
            self.context["cause"] = {
                "type": type(cause).__name__,
                "message": str(cause),
                "traceback": traceback.format_exception(type(cause), cause, cause.__traceback__),
            }

        self._log_error()

        super().__init__(message)

    def _log_error(self) -> None:
        """Log error with appropriate level based on status code."""
        # Imported lazily: the logger module imports this one
        from .utils.logger import get_logger

        logger = get_logger()

        log_data = {
            "error_id": self.error_id,
            "error_code": self.error_code.value,
            "status_code": self.status_code,
            "error_message": self.message,
            "timestamp": self.timestamp,
            "context": {k: v for k, v in self.context.items() if k not in ["cause", "traceback"]},
        }

        if self.status_code >= 500:
            logger.error(
                f"Error {self.error_code.value}: {self.message}", extra=log_data, exc_info=self.cause
            )
        elif self.status_code >= 400:
            logger.warning(f"Client error {self.error_code.value}: {self.message}", extra=log_data)
        else:
            logger.info(f"Error {self.error_code.value}: {self.message}", extra=log_data)

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """
        Convert to a serializable dict, e.g. for the additional_data blob.

        Args:
            include_cause: Include cause type and message

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        result: Dict[str, Any] = {
            "error": {
                "id": self.error_id,
                "code": self.error_code.value,
                "message": self.message,
                "timestamp": self.timestamp,
                "context": {
                    k: v
                    for k, v in self.context.items()
                    if k not in ["cause", "error_id", "correlation_id"]
                },
            }
        }

        if "correlation_id" in self.context:
            result["error"]["correlation_id"] = self.context["correlation_id"]

        if include_cause and "cause" in self.context:
            result["error"]["cause"] = {
                "type": self.context["cause"]["type"],
                "message": self.context["cause"]["message"],
            }

        return result


class ConfigurationError(BaseError):
    """Required settings are missing or invalid. Fatal before any record is touched."""

    def __init__(
        self,
        message: str,
        missing: Optional[List[str]] = None,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """Initialize configuration error with the list of missing settings."""
        self.missing = list(missing or [])
        if self.missing:
            context["missing"] = self.missing
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, 500, cause, **context)


class ValidationError(BaseError):
    """Validation errors."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """Initialize validation error with field context."""
        if field:
            context["field"] = field
        super().__init__(message, error_code, 400, cause, **context)


class RecordValidationError(ValidationError):
    """A fetched credential row lacks fields required for injection."""

    def __init__(self, message: str, missing_fields: List[str], **context: Any):
        self.missing_fields = list(missing_fields)
        super().__init__(
            message,
            error_code=ErrorCode.MISSING_REQUIRED,
            missing_fields=self.missing_fields,
            **context,
        )


class UnsupportedProviderError(ValidationError):
    """The record's provider has no n8n credential type mapping."""

    def __init__(self, provider: str, **context: Any):
        self.provider = provider
        super().__init__(
            f"Unsupported provider: {provider}",
            field="provider",
            error_code=ErrorCode.UNSUPPORTED_PROVIDER,
            provider=provider,
            **context,
        )


class RepositoryError(BaseError):
    """Repository layer errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """Initialize repository error with database context."""
        super().__init__(message, error_code, status_code, cause, **context)


class WriteBackError(RepositoryError):
    """Persisting an injection outcome to the credential store failed."""


class TransportError(BaseError):
    """Delivering a credential to n8n failed."""

    def __init__(
        self,
        message: str,
        transport: str,
        error_code: ErrorCode = ErrorCode.INTEGRATION_ERROR,
        cause: Optional[Exception] = None,
        **context: Any,
    ):
        """Initialize transport error with transport context."""
        context["transport"] = transport
        super().__init__(message, error_code, 502, cause, **context)


class AuthenticationError(TransportError):
    """Logging in to n8n failed. Fatal for the whole batch."""

    def __init__(self, message: str, transport: str = "api", cause: Optional[Exception] = None, **context: Any):
        super().__init__(
            message, transport, error_code=ErrorCode.AUTHENTICATION_FAILED, cause=cause, **context
        )


def missing_settings_error(missing: List[str]) -> ConfigurationError:
    """
    Factory for configuration errors listing missing settings.

    Args:
        missing: Environment variable names that are required but unset

    Returns:
        Configured ConfigurationError instance
    """
    return ConfigurationError(
        f"Missing required configuration: {', '.join(missing)}",
        missing=missing,
    )


# Correlation ID management
def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current thread."""
    _thread_local.correlation_id = correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the current thread's correlation ID."""
    return getattr(_thread_local, "correlation_id", None)


def clear_correlation_id() -> None:
    """Clear the current thread's correlation ID."""
    if hasattr(_thread_local, "correlation_id"):
        delattr(_thread_local, "correlation_id")
