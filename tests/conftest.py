import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from passwordless.core.database import Base
from passwordless.core.redis import RedisClient
from passwordless.models import otp_code, session, user  # noqa: F401


class FakeClock:
    """Callable clock the services read instead of the wall clock"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Rate limiting falls open without Redis"""
    monkeypatch.setattr(RedisClient, "_is_available", False)


@pytest.fixture
def sent_codes():
    return []


@pytest.fixture
def fake_sender(sent_codes):
    def send(to_address: str, code: str) -> bool:
        sent_codes.append((to_address, code))
        return True

    return send
