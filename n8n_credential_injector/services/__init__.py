"""Service layer for business logic."""

from .payload_builder import (
    build_payload,
    credential_name,
    credential_type_for,
    generate_credential_id,
)

__all__ = [
    "build_payload",
    "credential_name",
    "credential_type_for",
    "generate_credential_id",
]
