"""
Pytest configuration and shared fixtures.
"""
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from seedsweep.core.locks import DeletionGuard
from seedsweep.db.database import create_db_engine
from seedsweep.db.models import Base
from seedsweep.services.registry import Enabled, IntegrationRegistry


@pytest.fixture(scope="function")
def test_engine():
    """Create an in-memory SQLite engine (foreign keys on) for testing."""
    engine = create_db_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_session(test_engine):
    """Create a test database session."""
    # expire_on_commit=False: tests inspect objects after the services commit
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False)
    session = TestSessionLocal()
    yield session
    session.close()


@pytest.fixture
def failing_commit(test_session, monkeypatch):
    """Make the Nth commit on test_session fail with a database error."""
    def _fail(n):
        real_commit = test_session.commit
        calls = {"count": 0}

        def commit():
            calls["count"] += 1
            if calls["count"] == n:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            real_commit()

        monkeypatch.setattr(test_session, "commit", commit)
    return _fail


@pytest.fixture
def guard():
    """A fresh deletion guard, isolated from the process-wide one."""
    return DeletionGuard()


@pytest.fixture
def sonarr():
    client = MagicMock(name="sonarr")
    client.get_series.return_value = []
    return client


@pytest.fixture
def radarr():
    client = MagicMock(name="radarr")
    client.get_movies.return_value = []
    return client


@pytest.fixture
def overseerr():
    client = MagicMock(name="overseerr")
    client.get_requests.return_value = []
    client.find_request_by_media_id.return_value = None
    return client


@pytest.fixture
def prowlarr():
    client = MagicMock(name="prowlarr")
    client.get_indexers.return_value = []
    return client


@pytest.fixture
def qbittorrent():
    client = MagicMock(name="qbittorrent")
    client.get_torrents.return_value = []
    return client


@pytest.fixture
def make_registry():
    """Build a registry where only the given clients are enabled."""
    def _make(**clients):
        return IntegrationRegistry({name: Enabled(client) for name, client in clients.items()})
    return _make
