from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from lostfound.core.boxes import BoxCommandQueue
from lostfound.core.identity import IdentityStore
from lostfound.core.passwords import PasswordHasher
from lostfound.core.ratelimit import MemoryWindowStore, RateLimiter
from lostfound.core.tokens import TokenCodec
from lostfound.dependencies import (
    get_box_queue,
    get_password_hasher,
    get_token_codec,
)
from lostfound.main import app
from lostfound.models.schema import Box, Role
from lostfound.shared.config import Auth, Devices
from lostfound.shared.db import get_engine

TEST_SECRET = "test-secret-not-for-production"
TEST_PASSWORD = "correct horse"


class FakeClock:
    """Controllable clock: call it for a naive UTC datetime, ``time()`` for epoch."""

    def __init__(self, start: datetime = datetime(2026, 1, 11, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def time(self) -> float:
        return self.now.replace(tzinfo=UTC).timestamp()

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def auth_config():
    return Auth(secret=TEST_SECRET, allow_query_token=True)


@pytest.fixture
def codec(auth_config, clock):
    return TokenCodec(auth_config, clock=clock.time)


@pytest.fixture(scope="session")
def hasher():
    # Lowest bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


@pytest.fixture
def store(engine):
    return IdentityStore(engine)


@pytest.fixture
def queue(engine, clock):
    return BoxCommandQueue(engine, Devices(), clock=clock)


@pytest.fixture
def make_box(engine):
    def _make_box(box_id="BOX_A1", name="Front desk", location="Lobby"):
        with Session(engine) as session:
            box = Box(box_id=box_id, box_name=name, location=location)
            session.add(box)
            session.commit()
            session.refresh(box)
            return box

    return _make_box


@pytest.fixture
def make_user(store, codec, hasher):
    def _make_user(email="founder@example.com", role=Role.FOUNDER, name="Test User"):
        user = store.create(
            name=name,
            email=email,
            password_hash=hasher.hash(TEST_PASSWORD),
            role=role,
        )
        return user, codec.issue({"subject_id": user.user_id})

    return _make_user


@pytest.fixture
def client(engine, codec, hasher, queue):
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_token_codec] = lambda: codec
    app.dependency_overrides[get_password_hasher] = lambda: hasher
    app.dependency_overrides[get_box_queue] = lambda: queue

    previous_limiter = app.state.rate_limiter
    app.state.rate_limiter = RateLimiter(MemoryWindowStore(), max_requests=10_000)

    with TestClient(app) as test_client:
        yield test_client

    app.state.rate_limiter = previous_limiter
    app.dependency_overrides.clear()
