import os

# Settings read ENV at import time; must be set before livechat is imported.
os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from typing import Any, Dict, List, Optional, Sequence, Tuple
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from livechat.auth.current_user import CurrentUser, get_current_user
from livechat.core.broadcaster import get_broadcaster
from livechat.core.notifier import get_staff_notifier
from livechat.db import Base, SessionLocal, engine, get_db
from livechat.main import create_app
import livechat.models  # noqa: F401 register all models with Base

pytest_plugins = [
    "tests.fixtures.guest_session_fixtures",
    "tests.fixtures.conversation_fixtures",
    "tests.fixtures.message_fixtures",
]


class RecordingBroadcaster:
    """Collects (channel, event, payload) instead of publishing."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, str, Dict[str, Any]]] = []

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((channel, event, payload))


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    def __call__(
        self,
        user_ids: Sequence[UUID],
        message: str,
        link: Optional[str] = None,
        conversation_id: Optional[UUID] = None,
    ) -> None:
        self.calls.append(
            {
                "user_ids": list(user_ids),
                "message": message,
                "link": link,
                "conversation_id": conversation_id,
            }
        )


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the shared in-memory engine."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def current_user():
    return CurrentUser(id=uuid4(), roles=frozenset({"staff"}))


@pytest.fixture(scope="function")
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(db, current_user, broadcaster, notifier):
    app = create_app(testing=True)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    app.dependency_overrides[get_staff_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client
