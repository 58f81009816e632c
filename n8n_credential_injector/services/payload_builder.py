"""
Build n8n OAuth2 credential payloads from pending credential records.

Everything here is pure apart from the generated id and the timestamp
passed in by the caller.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from ..constants import PROVIDER_CREDENTIAL_TYPES, CredentialIdStrategy
from ..exceptions import RecordValidationError, UnsupportedProviderError
from ..schemas.credential_schemas import (
    CredentialRecord,
    InjectionPayload,
    OAuth2CredentialData,
)

CREDENTIAL_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "n8n-credential-injector")


def credential_type_for(provider: str) -> str:
    """
    Map a provider name to its n8n credential type.

    Raises:
        UnsupportedProviderError: If the provider is not in the table
    """
    credential_type = PROVIDER_CREDENTIAL_TYPES.get(provider)
    if credential_type is None:
        raise UnsupportedProviderError(provider)
    return credential_type


def credential_name(provider: str, now: datetime) -> str:
    """Display name, e.g. 'Google OAuth2 - 2025-01-15 10:30' (UTC, minute precision)."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{provider.capitalize()} OAuth2 - {now.strftime('%Y-%m-%d %H:%M')}"


def generate_credential_id(
    record: CredentialRecord,
    strategy: CredentialIdStrategy = CredentialIdStrategy.RANDOM,
) -> str:
    """
    Choose the n8n credential id for one attempt.

    The deterministic strategy hashes the request identity so a re-delivered
    request maps onto the same credential id.
    """
    if strategy == CredentialIdStrategy.DETERMINISTIC:
        requested_at = record.injection_requested_at
        # Store timestamps without an offset are UTC
        if requested_at is not None and requested_at.tzinfo is None:
            requested_at = requested_at.replace(tzinfo=timezone.utc)
        epoch = str(int(requested_at.timestamp())) if requested_at else ""
        name = "|".join([record.user_id, record.provider, record.token_source, epoch])
        return str(uuid.uuid5(CREDENTIAL_ID_NAMESPACE, name))
    return str(uuid.uuid4())


def build_payload(
    record: CredentialRecord,
    now: datetime,
    credential_id: Optional[str] = None,
) -> InjectionPayload:
    """
    Transform a credential record into the object n8n imports.

    Args:
        record: Pending credential record
        now: Timestamp used for the display name
        credential_id: Id to assign; a random UUID4 when omitted

    Returns:
        InjectionPayload

    Raises:
        UnsupportedProviderError: If the provider has no n8n credential type
        RecordValidationError: If required payload fields are missing
    """
    credential_type = credential_type_for(record.provider)

    missing = record.missing_fields()
    if missing:
        raise RecordValidationError(
            f"Credential record is missing required fields: {', '.join(missing)}",
            missing_fields=missing,
            **record.key(),
        )

    return InjectionPayload(
        id=credential_id or str(uuid.uuid4()),
        name=credential_name(record.provider, now),
        type=credential_type,
        data=OAuth2CredentialData(
            client_id=record.client_id,
            client_secret=record.client_secret,
            access_token=record.access_token,
            refresh_token=record.refresh_token or "",
        ),
    )
