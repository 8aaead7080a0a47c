import os

# settings are read at import time by the db module
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

# FORCE model registration
import corgi_buddy.models  # noqa

from corgi_buddy.core.config import Settings
from corgi_buddy.core.container import build_container
from corgi_buddy.db.base import Base
from corgi_buddy.db.engine import build_engine
from corgi_buddy.db.session import get_db
from corgi_buddy.main import create_app
from corgi_buddy.tests.fakes import FakeChainClient, RecordingNotifications, RecordingSleep


@pytest.fixture
def settings():
    return Settings(
        jwt_secret_key=os.environ["JWT_SECRET_KEY"],
        database_url="sqlite://",
        log_level="WARNING",
        retry_initial_delay_ms=100,
        retry_max_attempts=3,
        admin_api_key="admin-key",
        telegram_webhook_secret="hook-secret",
        reconciliation_enabled=False,
    )


@pytest.fixture
def engine(tmp_path):
    # file-backed so concurrent sessions get their own connections
    engine = build_engine(f"sqlite:///{tmp_path / 'corgi.db'}")
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def chain():
    return FakeChainClient()


@pytest.fixture
def notifications():
    return RecordingNotifications()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def container(settings, session_factory, chain, notifications, sleep):
    return build_container(
        settings,
        session_factory=session_factory,
        chain=chain,
        notifications=notifications,
        sleep=sleep,
    )


@pytest.fixture
def app(settings, session_factory, chain, notifications, sleep):
    app = create_app(
        settings,
        session_factory=session_factory,
        chain=chain,
        notifications=notifications,
        sleep=sleep,
    )

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c
