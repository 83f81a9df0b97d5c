# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from sporetag.db.session import Base
from sporetag.db.session import get_db as app_get_session
from sporetag.main import app as fastapi_app
from sporetag.models import Spore
from sporetag.services.rate_limit import RateLimiter, RateLimitStore, get_rate_limiter

TEST_DB_URL = "sqlite://"
START_MILLIS = 1_700_000_000_000


class FakeClock:
    """Controllable epoch-millisecond clock."""

    def __init__(self, now: int = START_MILLIS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float = 0, millis: int = 0) -> None:
        self.now += int(seconds * 1000) + millis


class FakeRedis:
    """In-memory stand-in for the subset of the Redis client the limiter uses.

    Values are stored as bytes and expire according to the shared clock.
    """

    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self._data: dict[str, tuple[bytes, int | None]] = {}
        self.set_calls = 0

    def _expired(self, name: str) -> bool:
        _, expires_at = self._data[name]
        return expires_at is not None and self._clock() >= expires_at

    def get(self, name: str) -> bytes | None:
        if name not in self._data:
            return None
        if self._expired(name):
            del self._data[name]
            return None
        return self._data[name][0]

    def set(self, name: str, value: str | bytes, ex: int | None = None) -> bool:
        raw = value.encode() if isinstance(value, str) else value
        expires_at = self._clock() + ex * 1000 if ex is not None else None
        self._data[name] = (raw, expires_at)
        self.set_calls += 1
        return True

    def ttl(self, name: str) -> int:
        if self.get(name) is None:
            return -2
        _, expires_at = self._data[name]
        if expires_at is None:
            return -1
        return (expires_at - self._clock()) // 1000


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture()
def rate_limiter(fake_redis: FakeRedis, clock: FakeClock) -> RateLimiter:
    return RateLimiter(
        RateLimitStore(fake_redis),
        max_submissions=5,
        window_seconds=3600,
        clock=clock,
    )


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    rate_limiter: RateLimiter,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_rate_limiter, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


def make_spore(session: Session, **overrides: Any) -> Spore:
    """Insert a spore directly, bypassing validation and throttling."""
    values: dict[str, Any] = {
        "lat": 0.0,
        "lng": 0.0,
        "message": "hello",
        "cookie_id": "seed",
        "ip_address": "127.0.0.1",
    }
    values.update(overrides)
    spore = Spore(**values)
    session.add(spore)
    session.commit()
    session.refresh(spore)
    return spore


@pytest.fixture()
def seeded_spores(db_session: Session) -> list[Spore]:
    """Seed a spread of spores across the globe in insertion order."""
    coordinates = [
        (-33.9, 18.4),   # Cape Town
        (51.5, -0.1),    # London
        (40.7, -74.0),   # New York
        (35.7, 139.7),   # Tokyo
        (-33.8, 151.2),  # Sydney
        (48.9, 2.3),     # Paris
        (-34.6, -58.4),  # Buenos Aires
    ]
    return [
        make_spore(db_session, lat=lat, lng=lng, message=f"spore {index}")
        for index, (lat, lng) in enumerate(coordinates)
    ]


@pytest.fixture()
def spore_factory(db_session: Session):
    """Return a helper that inserts spores directly."""

    def _factory(**overrides: Any) -> Spore:
        return make_spore(db_session, **overrides)

    return _factory
