"""Pytest configuration for Storefront Python Toolkit."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront_toolkit.catalog.models import Base
from storefront_toolkit.config import StorefrontConfig, set_config
from storefront_toolkit.soft_delete import SoftDeleteMediator

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def pytest_configure(config):
    """Configure pytest with custom settings."""
    # Add custom markers
    config.addinivalue_line("markers", "scenario: end-to-end soft delete scenario")


@pytest.fixture(autouse=True)
def storefront_config():
    """Isolate every test from STOREFRONT_* variables of the host."""
    config = StorefrontConfig(environment="test", database_url="sqlite:///:memory:")
    set_config(config)
    yield config
    set_config(None)


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def now():
    """Time the mediator fixture stamps deletions with."""
    return FIXED_NOW


@pytest.fixture
def mediator(db_session):
    """Soft delete mediator with a fixed clock."""
    return SoftDeleteMediator(db_session, clock=lambda: FIXED_NOW)
