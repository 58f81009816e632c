"""
Model for the user_social_credentials table of the hosted store.

Just the data structure - no business logic or class methods.
The schema is owned by the store; this mapping covers the columns the
injector reads and writes.
"""

from sqlalchemy import Boolean, Column, DateTime, Index, String, Text

from ..constants import DEFAULT_TOKEN_SOURCE, SOURCE_CREDENTIALS_TABLE
from .db_base import UpdatedAtMixin
from .db_config import Base


class UserSocialCredential(Base, UpdatedAtMixin):
    """OAuth credential of one user for one provider, plus its injection queue state."""

    __tablename__ = SOURCE_CREDENTIALS_TABLE

    # Identity
    user_id = Column(String(255), primary_key=True)
    provider = Column(String(50), primary_key=True)
    token_source = Column(String(50), primary_key=True, default=DEFAULT_TOKEN_SOURCE)

    # Payload
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    client_id = Column(Text, nullable=True)
    client_secret = Column(Text, nullable=True)

    # Queue state, set by the requester
    injection_requested = Column(Boolean, nullable=False, default=False)
    injection_requested_at = Column(DateTime(timezone=True), nullable=True)

    # Outcome, written only by the injector
    injected_to_n8n = Column(Boolean, nullable=False, default=False)
    injected_at = Column(DateTime(timezone=True), nullable=True)
    injection_attempted_at = Column(DateTime(timezone=True), nullable=True)
    injection_error = Column(Text, nullable=True)
    n8n_credential_id = Column(String(255), nullable=True)
    n8n_credential_ids = Column(Text, nullable=True)  # JSON-serialized list
    additional_data = Column(Text, nullable=True)  # JSON-serialized diagnostic blob

    __table_args__ = (
        Index("ix_user_social_credentials_pending", "injection_requested", "injected_to_n8n"),
    )
