"""
Base injection transport interface and the result model shared by all transports.

A transport delivers one credential payload to n8n. Concrete transports
implement `prepare()` and `_deliver()`; `inject()` turns every delivery
failure into an InjectionResult so a single record never aborts the batch.
"""

import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field

from ..exceptions import BaseError, ErrorCode
from ..schemas.credential_schemas import CredentialRecord, InjectionPayload
from ..utils.logger import get_logger


class InjectionResult(BaseModel):
    """
    Outcome of delivering one credential to n8n.

    Contains success status, the credential id n8n stores the credential
    under, and diagnostics written to the record's additional_data.
    """

    success: bool = Field(description="Whether n8n accepted the credential")
    transport_name: str = Field(description="Name of the transport that ran")

    credential_id: Optional[str] = Field(default=None, description="n8n credential id")
    message: Optional[str] = Field(default=None, description="Human-readable error message")
    error_code: Optional[str] = Field(default=None, description="Machine-readable error code")
    details: Dict[str, Any] = Field(default_factory=dict, description="Transport diagnostics")

    execution_duration_ms: float = Field(default=0.0, description="Time taken in milliseconds")
    completed_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="When delivery finished"
    )

    @classmethod
    def create_success(
        cls,
        transport_name: str,
        credential_id: str,
        execution_duration_ms: float,
        details: Optional[Dict[str, Any]] = None,
    ) -> "InjectionResult":
        """Create a successful injection result."""
        return cls(
            success=True,
            transport_name=transport_name,
            credential_id=credential_id,
            execution_duration_ms=execution_duration_ms,
            details=details or {},
        )

    @classmethod
    def create_failure(
        cls,
        transport_name: str,
        message: str,
        execution_duration_ms: float,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "InjectionResult":
        """Create a failed injection result."""
        return cls(
            success=False,
            transport_name=transport_name,
            message=message or "Injection failed",
            error_code=error_code,
            execution_duration_ms=execution_duration_ms,
            details=details or {},
        )


class InjectionTransport(ABC):
    """
    Abstract base class for all injection transports.

    Lifecycle per batch: `prepare()` once, `inject()` per record, `close()`
    once. A failing `prepare()` raises and is fatal for the batch.
    """

    method_name: str = "unknown"
    # prepare() opens an authenticated session with n8n
    authenticates: bool = False

    def __init__(self):
        self.logger = get_logger()
        self._transport_name = self.__class__.__name__
        self._prepared = False

    @property
    def is_prepared(self) -> bool:
        return self._prepared

    @abstractmethod
    def prepare(self) -> None:
        """
        Make the transport ready for delivery (login, tool check, connection check).

        Raises:
            AuthenticationError: If the n8n login is rejected
            TransportError: If the transport cannot be made ready
        """

    @abstractmethod
    def _deliver(
        self, payload: InjectionPayload, record: CredentialRecord
    ) -> Tuple[str, Dict[str, Any]]:
        """
        Deliver one payload.

        Returns:
            Tuple of (credential_id, details)

        Raises:
            TransportError: If n8n did not accept the credential
        """

    def inject(self, payload: InjectionPayload, record: CredentialRecord) -> InjectionResult:
        """
        Deliver one payload and report the outcome. Never raises.

        Args:
            payload: Credential in n8n's shape
            record: Source record the payload was built from

        Returns:
            InjectionResult
        """
        base_details = {
            "method": self.method_name,
            "user_id": record.user_id,
            "provider": record.provider,
            "token_source": record.token_source,
        }

        start_time = time.time()
        try:
            credential_id, details = self._deliver(payload, record)
        except BaseError as e:
            duration_ms = (time.time() - start_time) * 1000
            return InjectionResult.create_failure(
                transport_name=self._transport_name,
                message=e.message,
                execution_duration_ms=duration_ms,
                error_code=e.error_code.value,
                details={
                    **base_details,
                    "error_type": e.context.get("error_type", "transport_error"),
                    "timestamp": datetime.now(UTC),
                    **e.to_dict(include_cause=True),
                },
            )
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.logger.error(
                f"Unexpected error during {self.method_name} injection: {e}",
                extra={**base_details, "error_type": type(e).__name__},
                exc_info=True,
            )
            return InjectionResult.create_failure(
                transport_name=self._transport_name,
                message=str(e) or type(e).__name__,
                execution_duration_ms=duration_ms,
                error_code=ErrorCode.INTERNAL_ERROR.value,
                details={
                    **base_details,
                    "error_type": "unexpected_error",
                    "timestamp": datetime.now(UTC),
                },
            )

        duration_ms = (time.time() - start_time) * 1000
        return InjectionResult.create_success(
            transport_name=self._transport_name,
            credential_id=credential_id,
            execution_duration_ms=duration_ms,
            details={**base_details, **details},
        )

    def close(self) -> None:
        """Release sessions, engines and other resources. Safe to call twice."""

    def get_transport_info(self) -> Dict[str, Any]:
        """
        Get transport metadata for logging and debugging.

        Returns:
            Dictionary with transport information, without secrets
        """
        return {
            "transport_name": self._transport_name,
            "method": self.method_name,
            "prepared": self._prepared,
        }

    def __enter__(self) -> "InjectionTransport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
