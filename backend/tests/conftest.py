import os

# Settings() is built at import time; keep tests off any real database or .env key
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tablewatch.db.base import Base
from tablewatch.models import Booking, MonitorJob, PushToken, SearchCache, UserNotification  # noqa: F401
from tablewatch.services.providers.types import QueryIntent
from tests.fakes import utc


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def intent() -> QueryIntent:
    return QueryIntent(
        party_size=2,
        date_time=utc(2024, 6, 1, 19, 0),
        location="Lincoln Park",
        cuisine="sushi",
    )

