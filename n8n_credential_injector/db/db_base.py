"""
Shared column helpers for the injector's SQLAlchemy models.
"""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime


def utc_now():
    """Return current UTC time with timezone info attached."""
    return datetime.now(UTC)


class UpdatedAtMixin:
    """Mixin for the updated_at column maintained by whoever writes the row."""

    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=True)
