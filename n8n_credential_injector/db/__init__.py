"""
SQLAlchemy models and connection management for the credential store.
"""

from .db_base import UpdatedAtMixin, utc_now
from .db_config import (
    Base,
    DatabaseManager,
    create_db_engine,
    import_all_models,
    init_db,
)
from .db_credential_models import UserSocialCredential

__all__ = [
    # Base definitions
    "Base",
    "UpdatedAtMixin",
    "utc_now",
    # Configuration
    "DatabaseManager",
    "create_db_engine",
    "import_all_models",
    "init_db",
    # Models
    "UserSocialCredential",
]
