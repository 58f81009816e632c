from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..exceptions import ConfigurationError
from ..utils import get_logger

# Base class for all SQLAlchemy models
Base: Any = declarative_base()


def create_db_engine(connection_string: str, echo: bool = False) -> Engine:
    """
    Create an engine for a single-owner, single-threaded batch run.

    Args:
        connection_string: SQLAlchemy URL
        echo: Echo SQL statements

    Returns:
        Engine with a one-connection pool
    """
    if connection_string.startswith("sqlite"):
        return create_engine(
            connection_string, echo=echo, connect_args={"check_same_thread": False}
        )
    return create_engine(
        connection_string,
        echo=echo,
        pool_size=1,
        max_overflow=0,
        pool_pre_ping=True,
    )


class DatabaseManager:
    """
    Owns the engine and session factory for one database.
    """

    def __init__(self, connection_string: Optional[str], echo: bool = False):
        if not connection_string:
            raise ConfigurationError(
                "Database connection string is required",
                missing=["DATABASE_URL"],
            )
        self.engine = create_db_engine(connection_string, echo=echo)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        return self.session_factory()

    def close(self) -> None:
        self.engine.dispose()


def import_all_models():
    """Import all models to ensure they're registered with SQLAlchemy metadata."""
    from sqlalchemy.orm import configure_mappers

    from .db_credential_models import UserSocialCredential  # noqa

    configure_mappers()


def init_db(db_manager: DatabaseManager) -> None:
    """
    Initialize the database, creating all tables.

    The hosted store already owns its schema; this is for local and test databases.

    Args:
        db_manager: DatabaseManager instance to use for table creation
    """
    get_logger().warning("Initializing DB")
    import_all_models()
    db_manager.create_tables()
