from .credential_schemas import (
    CredentialRecord,
    InjectionPayload,
    InjectionStatusUpdate,
    OAuth2CredentialData,
)

__all__ = [
    "CredentialRecord",
    "InjectionPayload",
    "InjectionStatusUpdate",
    "OAuth2CredentialData",
]
