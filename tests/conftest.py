# tests/conftest.py

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.pool import StaticPool

from identity.db.session import create_session_factory, create_tables
from identity.models import ContactIdentity, DirectoryUser
from identity.verification.code_manager import VerificationCodeManager
from tests.fakes import FakeClock, InMemoryCodeStore, InMemoryDirectory


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0))


@pytest.fixture
def code_store():
    return InMemoryCodeStore()


@pytest.fixture
def manager(code_store, clock):
    return VerificationCodeManager(code_store, clock=clock)


@pytest.fixture
def directory():
    return InMemoryDirectory([
        DirectoryUser(id=1, name="Ana Souza", email="a@x.com"),
        DirectoryUser(id=2, name="Bruno", phone="11999990000"),
        DirectoryUser(id=3, name="Carla", email="carla@x.com", phone="+55 (21) 98888-7777"),
    ])


@pytest.fixture
def contacts():
    return [
        ContactIdentity(id="c1", display_name="Ana", emails=["  A@X.com "]),
        ContactIdentity(id="c2", display_name="bruno mobile", phone_numbers=["(11) 99999-0000"]),
        ContactIdentity(id="c3", display_name="Nobody"),
        ContactIdentity(id="c4", display_name="Stranger", emails=["who@y.com"]),
    ]


@pytest.fixture
def session_factory():
    """SQLite in-memory database shared by every session of a test."""
    factory = create_session_factory(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    create_tables(factory)
    return factory


@pytest.fixture
def mock_redis():
    """Mock Redis client for testing."""
    mock = MagicMock()
    with patch("redis.from_url", return_value=mock):
        yield mock
