"""
Pydantic schemas for credential records and the n8n payloads built from them.

Defines the structure of a pending row read from the credential store, the
credential object n8n accepts, and the status written back after an attempt.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..constants import (
    ADDITIONAL_DATA_VERSION,
    DEFAULT_TOKEN_SOURCE,
    OAUTH_GRANT_TYPE,
    OAUTH_TOKEN_TYPE,
    REQUIRED_PAYLOAD_FIELDS,
)
from ..utils.json_utils import dumps


class CredentialRecord(BaseModel):
    """A row of user_social_credentials as seen by the injector."""

    model_config = ConfigDict(from_attributes=True, extra="ignore", frozen=True)

    user_id: str = Field(..., min_length=1, description="Owner of the credential")
    provider: str = Field(..., description="OAuth provider, e.g. google")
    token_source: str = Field(default=DEFAULT_TOKEN_SOURCE, description="Origin of the tokens")

    access_token: Optional[str] = Field(default=None, description="OAuth access token")
    refresh_token: str = Field(default="", description="OAuth refresh token")
    client_id: Optional[str] = Field(default=None, description="OAuth client id")
    client_secret: Optional[str] = Field(default=None, description="OAuth client secret")

    injection_requested_at: Optional[datetime] = Field(
        default=None, description="When injection was requested (FIFO key)"
    )

    @field_validator("token_source", mode="before")
    @classmethod
    def default_token_source(cls, v):
        """Rows without a token source belong to the default one."""
        return v or DEFAULT_TOKEN_SOURCE

    @field_validator("refresh_token", mode="before")
    @classmethod
    def default_refresh_token(cls, v):
        return v or ""

    @classmethod
    def from_row(cls, row: Any) -> "CredentialRecord":
        """Build a record from an ORM row or a mapping."""
        if isinstance(row, dict):
            return cls.model_validate(row)
        return cls.model_validate(row, from_attributes=True)

    def missing_fields(self) -> List[str]:
        """Names of required payload fields that are absent or empty."""
        return [name for name in REQUIRED_PAYLOAD_FIELDS if not getattr(self, name)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def key(self) -> Dict[str, str]:
        """Composite identity used for write-back and logging."""
        return {
            "user_id": self.user_id,
            "provider": self.provider,
            "token_source": self.token_source,
        }

    def __repr__(self) -> str:
        """Representation without token material."""
        return (
            f"CredentialRecord(user_id='{self.user_id}', provider='{self.provider}', "
            f"token_source='{self.token_source}')"
        )

    __str__ = __repr__


class OAuth2CredentialData(BaseModel):
    """The `data` section of an n8n OAuth2 credential. Serialized with n8n's camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    client_id: str = Field(..., alias="clientId")
    client_secret: str = Field(..., alias="clientSecret")
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(default="", alias="refreshToken")
    token_type: str = Field(default=OAUTH_TOKEN_TYPE, alias="tokenType")
    grant_type: str = Field(default=OAUTH_GRANT_TYPE, alias="grantType")


class InjectionPayload(BaseModel):
    """A credential in the shape n8n imports, exports and accepts over its API."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="n8n credential id")
    name: str = Field(..., description="Display name in n8n")
    type: str = Field(..., description="n8n credential type, e.g. googleOAuth2Api")
    data: OAuth2CredentialData

    def to_n8n(self) -> Dict[str, Any]:
        """Full credential object, as written to an import file."""
        return self.model_dump(mode="json", by_alias=True)

    def to_api_body(self) -> Dict[str, Any]:
        """Body for POST /api/v1/credentials (n8n assigns the id)."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})

    def __repr__(self) -> str:
        return f"InjectionPayload(id='{self.id}', name='{self.name}', type='{self.type}')"

    __str__ = __repr__


class InjectionStatusUpdate(BaseModel):
    """Columns written back to the credential store after one injection attempt."""

    injected_to_n8n: bool
    injection_requested: bool = False
    injected_at: Optional[datetime] = None
    injection_error: Optional[str] = None
    injection_attempted_at: datetime
    n8n_credential_id: Optional[str] = None
    n8n_credential_ids: Optional[str] = None
    additional_data: str
    updated_at: datetime

    @classmethod
    def build(
        cls,
        success: bool,
        attempted_at: datetime,
        injection_method: str,
        platform: str,
        credential_id: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "InjectionStatusUpdate":
        """
        Build the write-back for a finished attempt.

        Args:
            success: Whether the credential reached n8n
            attempted_at: Timestamp of the attempt
            injection_method: Transport identifier recorded in additional_data
            platform: Runtime platform recorded in additional_data
            credential_id: n8n credential id returned by the transport
            message: Error message on failure
            details: Transport diagnostics

        Returns:
            InjectionStatusUpdate ready for the repository
        """
        error = None if success else (message or "Injection failed")
        additional_data = {
            "injection_method": injection_method,
            "success": success,
            "error": error,
            "details": details or {},
            "timestamp": attempted_at,
            "platform": platform,
            "version": ADDITIONAL_DATA_VERSION,
        }
        return cls(
            injected_to_n8n=success,
            injection_requested=False,
            injected_at=attempted_at if success else None,
            injection_error=error,
            injection_attempted_at=attempted_at,
            n8n_credential_id=credential_id,
            n8n_credential_ids=dumps([credential_id]) if credential_id else None,
            additional_data=dumps(additional_data),
            updated_at=attempted_at,
        )

    def to_columns(self) -> Dict[str, Any]:
        """Column values for the UPDATE. Credential id columns are left untouched when unset."""
        columns = self.model_dump(exclude={"n8n_credential_id", "n8n_credential_ids"})
        if self.n8n_credential_id:
            columns["n8n_credential_id"] = self.n8n_credential_id
            columns["n8n_credential_ids"] = self.n8n_credential_ids
        return columns
