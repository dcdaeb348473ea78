import os

# Ensure JWT_SECRET exists before importing applytrack.main (it calls require_jwt_secret() at import time).
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")

from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from applytrack.core.base import Base
from applytrack.core import config as app_config
from applytrack.core.security import create_access_token, hash_password

# Import models so they register with SQLAlchemy metadata.
from applytrack.models.user import User  # noqa: F401
from applytrack.models.job_application import JobApplication  # noqa: F401
from applytrack.models.notification_outbox import NotificationOutbox  # noqa: F401

from applytrack.core.database import get_db, get_session_factory
from applytrack.dependencies.auth import get_current_user
from applytrack.dependencies.realtime import get_realtime
from applytrack.services.realtime import NOTIFICATION_EVENT, ConnectionRegistry


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture()
def db_session(db_engine, session_factory):
    # The in-memory DB persists across tests (StaticPool); reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _task_sessions(monkeypatch, session_factory):
    """
    Celery runs inline in tests (no broker). Point the task's session factory at
    the test database so outbox rows are delivered against SQLite, not Postgres.
    """
    from applytrack.tasks import notifications as notification_tasks

    monkeypatch.setattr(notification_tasks, "_with_db_session", lambda: session_factory())


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests tweak the process-global settings object; restore after each test.
    """
    keys = [
        "EMAIL_ENABLED",
        "EMAIL_PROVIDER",
        "FROM_EMAIL",
        "RESEND_API_KEY",
        "ENABLE_RATE_LIMITING",
        "LOGIN_RATE_LIMIT",
        "NOTIFICATION_EMAIL_MAX_ATTEMPTS",
        "FRONTEND_BASE_URL",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    app_config.settings.EMAIL_ENABLED = False
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)
        app_config.settings.ENABLE_RATE_LIMITING = False


@pytest.fixture()
def app(db_session, session_factory):
    app_config.settings.JWT_SECRET = app_config.settings.JWT_SECRET or "test_jwt_secret"

    import applytrack.main as main

    fastapi_app = main.app

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_session_factory] = lambda: session_factory
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


def _make_user(email: str, name: str, *, is_admin: bool = False) -> User:
    return User(
        email=email,
        name=name,
        password_hash=hash_password("test_password_123"),
        is_active=True,
        is_admin=is_admin,
    )


@pytest.fixture()
def users(db_session):
    """
    Two distinct active users for ownership / isolation tests.
    """
    user_a = _make_user("test@example.com", "Test User")
    user_b = _make_user("other@example.com", "Other User")
    db_session.add_all([user_a, user_b])
    db_session.commit()
    db_session.refresh(user_a)
    db_session.refresh(user_b)
    return user_a, user_b


@pytest.fixture()
def admin_user(db_session):
    admin = _make_user("admin@example.com", "Admin User", is_admin=True)
    db_session.add(admin)
    db_session.commit()
    db_session.refresh(admin)
    return admin


@pytest.fixture()
def access_token():
    def _token(user: User) -> str:
        return create_access_token(subject=user.email)

    return _token


@pytest.fixture()
def client(app, users):
    """
    Default client authenticated as user_a.
    """
    user_a, _ = users
    app.dependency_overrides[get_current_user] = lambda: user_a
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture()
def client_for(app):
    """
    Context manager to create a client authenticated as an arbitrary user.

    Usage:
        with client_for(user) as c:
            ...
    """

    @contextmanager
    def _client_for(user: User):
        app.dependency_overrides[get_current_user] = lambda: user
        with TestClient(app) as c:
            yield c
        app.dependency_overrides.pop(get_current_user, None)

    return _client_for


class RecordingRegistry(ConnectionRegistry):
    """Registry that remembers every publish, in order, alongside a shared call log."""

    def __init__(self, calls: list) -> None:
        super().__init__()
        self.published: list[tuple[int, str, dict]] = []
        self._calls = calls

    def publish(self, user_id, data, *, event=NOTIFICATION_EVENT):
        self.published.append((user_id, event, data))
        self._calls.append(("realtime", user_id, data))
        return super().publish(user_id, data, event=event)


@pytest.fixture()
def notification_calls():
    """Ordered log of notification side effects across both channels."""
    return []


@pytest.fixture()
def realtime(app, notification_calls):
    registry = RecordingRegistry(notification_calls)
    app.dependency_overrides[get_realtime] = lambda: registry
    return registry


@pytest.fixture()
def sent_emails(monkeypatch, notification_calls):
    """
    Enable email and capture deliveries instead of calling a provider.
    """
    from applytrack.tasks import notifications as notification_tasks

    app_config.settings.EMAIL_ENABLED = True
    outbox: list[dict] = []

    def _fake_send(to_email, subject, body, *, html=None):
        outbox.append({"to": to_email, "subject": subject, "body": body, "html": html})
        notification_calls.append(("email", to_email, subject))
        return f"msg_{len(outbox)}"

    monkeypatch.setattr(notification_tasks, "send_email", _fake_send)
    return outbox
