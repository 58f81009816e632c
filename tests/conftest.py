"""
Test fixtures for the credential injector.

This module provides shared test fixtures including database setup,
configuration, and a clean logging state for every test.
"""

import pytest
from sqlalchemy.orm import Session

from n8n_credential_injector.config import AppConfig
from n8n_credential_injector.db import DatabaseManager, import_all_models, init_db
from n8n_credential_injector.exceptions import clear_correlation_id
from n8n_credential_injector.utils.logger import reset_logging
from tests.fixtures.configs import build_config
from tests.fixtures.factories import InjectedCredentialFactory, UserSocialCredentialFactory

FACTORIES = (UserSocialCredentialFactory, InjectedCredentialFactory)


@pytest.fixture(scope="session")
def db_manager() -> DatabaseManager:
    """Create SQLite in-memory database manager with all models registered."""
    import_all_models()
    manager = DatabaseManager("sqlite:///:memory:")
    yield manager
    manager.close()


@pytest.fixture(scope="function")
def db_session(db_manager: DatabaseManager) -> Session:
    """
    Create a database session for each test.

    Tables are created before and dropped after every test so each test
    starts from an empty queue.
    """
    init_db(db_manager)
    session = db_manager.get_session()
    for factory_class in FACTORIES:
        factory_class._meta.sqlalchemy_session = session

    yield session

    session.rollback()
    session.close()
    for factory_class in FACTORIES:
        factory_class._meta.sqlalchemy_session = None
    db_manager.drop_tables()


@pytest.fixture(autouse=True)
def clean_context():
    """Reset module-level logging and correlation state between tests."""
    yield
    reset_logging()
    clear_correlation_id()


@pytest.fixture
def app_config() -> AppConfig:
    """Complete configuration for the CLI transport."""
    return build_config()
