"""
Pytest configuration and fixtures
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from reminder.core.database import create_session_factory, init_schema

from fakes import NOW, RecordingPublisher


@pytest.fixture
def clock():
    """Fixed clock at NOW"""
    return lambda: NOW


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite shared across threads, with the store schema created"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return create_session_factory(sqlite_engine)
