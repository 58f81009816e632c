"""
Unit tests for the exception system.

Tests the exception classes, factory functions, and correlation id handling.
"""

from unittest.mock import patch

from n8n_credential_injector.exceptions import (
    AuthenticationError,
    BaseError,
    ConfigurationError,
    ErrorCode,
    RecordValidationError,
    RepositoryError,
    TransportError,
    UnsupportedProviderError,
    ValidationError,
    WriteBackError,
    clear_correlation_id,
    get_correlation_id,
    missing_settings_error,
    set_correlation_id,
)


class TestBaseError:
    """Test BaseError class."""

    def test_basic_error_creation(self):
        error = BaseError("Test error message")

        assert error.message == "Test error message"
        assert error.error_code == ErrorCode.INTERNAL_ERROR
        assert error.status_code == 500
        assert error.cause is None
        assert error.context["error_id"] == error.error_id
        assert str(error) == "Test error message"

    def test_error_with_cause(self):
        original_error = ValueError("Original error")
        error = BaseError("Wrapped error", cause=original_error)

        assert error.cause is original_error
        assert error.context["cause"]["type"] == "ValueError"
        assert error.context["cause"]["message"] == "Original error"

    def test_correlation_id_in_context(self):
        set_correlation_id("run-123")
        error = BaseError("Correlated error")

        assert error.context["correlation_id"] == "run-123"
        assert error.to_dict()["error"]["correlation_id"] == "run-123"

    def test_to_dict(self):
        error = BaseError("Dict error", error_code=ErrorCode.DATABASE_ERROR, table="x")
        data = error.to_dict()

        assert data["error"]["code"] == ErrorCode.DATABASE_ERROR.value
        assert data["error"]["message"] == "Dict error"
        assert data["error"]["context"] == {"table": "x"}

    def test_to_dict_include_cause(self):
        error = BaseError("Outer", cause=RuntimeError("inner"))
        data = error.to_dict(include_cause=True)

        assert data["error"]["cause"] == {"type": "RuntimeError", "message": "inner"}

    @patch("n8n_credential_injector.utils.logger.get_logger")
    def test_logs_on_construction(self, mock_get_logger):
        BaseError("Server side")
        ValidationError("Client side")

        logger = mock_get_logger.return_value
        assert logger.error.call_count == 1
        assert logger.warning.call_count == 1
        assert "Server side" in logger.error.call_args[0][0]


class TestDomainErrors:
    """Test the injector's error subclasses."""

    def test_configuration_error(self):
        error = missing_settings_error(["DATABASE_URL", "N8N_ENCRYPTION_KEY"])

        assert isinstance(error, ConfigurationError)
        assert error.error_code == ErrorCode.CONFIGURATION_ERROR
        assert error.missing == ["DATABASE_URL", "N8N_ENCRYPTION_KEY"]
        assert error.message == "Missing required configuration: DATABASE_URL, N8N_ENCRYPTION_KEY"

    def test_unsupported_provider(self):
        error = UnsupportedProviderError("unsupported_xyz", user_id="u1")

        assert isinstance(error, ValidationError)
        assert error.provider == "unsupported_xyz"
        assert error.message == "Unsupported provider: unsupported_xyz"
        assert error.error_code == ErrorCode.UNSUPPORTED_PROVIDER
        assert error.status_code == 400
        assert error.context["field"] == "provider"
        assert error.context["user_id"] == "u1"

    def test_record_validation_error(self):
        error = RecordValidationError("Missing", missing_fields=["client_id"])

        assert error.missing_fields == ["client_id"]
        assert error.error_code == ErrorCode.MISSING_REQUIRED

    def test_write_back_error_is_repository_error(self):
        error = WriteBackError("Update failed", error_code=ErrorCode.DATABASE_ERROR)
        assert isinstance(error, RepositoryError)

    def test_transport_error(self):
        error = TransportError("Boom", transport="n8n_cli", error_code=ErrorCode.TIMEOUT_ERROR)

        assert error.context["transport"] == "n8n_cli"
        assert error.status_code == 502
        assert error.error_code == ErrorCode.TIMEOUT_ERROR

    def test_authentication_error(self):
        error = AuthenticationError("Login rejected")

        assert isinstance(error, TransportError)
        assert error.error_code == ErrorCode.AUTHENTICATION_FAILED
        assert error.context["transport"] == "api"


class TestCorrelationId:
    """Test thread-local correlation id helpers."""

    def test_set_get_clear(self):
        assert get_correlation_id() is None
        set_correlation_id("abc")
        assert get_correlation_id() == "abc"
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_clear_without_value(self):
        clear_correlation_id()
        assert get_correlation_id() is None
