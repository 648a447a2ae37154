"""Shared test fixtures and configuration for backend tests."""
import time

import pytest
from fastapi.testclient import TestClient

from pairchat.auth.service import TokenService
from pairchat.config import AppSettings, ChatSettings, JWTSecrets, Secrets, StorageSettings
from pairchat.main import create_app
from pairchat.messages.service import MessageStore
from pairchat.users.service import UserDirectory

TEST_SECRET = "test-secret-key"


class FakeConnection:
    """In-memory stand-in for a WebSocket.

    Records every frame sent to it. With ``fail=True`` every send raises,
    like a socket that has already gone away.
    """

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent = []
        self.accepted = False
        self.closed_code = None

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000) -> None:
        self.closed_code = code

    async def send_json(self, data) -> None:
        if self.fail:
            raise RuntimeError("connection is closed")
        self.sent.append(data)

    def frames(self, frame_type: str) -> list:
        return [f for f in self.sent if f["type"] == frame_type]


def wait_for(predicate, timeout: float = 2.0) -> None:
    """Poll until ``predicate()`` is true; server-side cleanup runs on another thread."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.01)


@pytest.fixture
def wait_until():
    return wait_for


@pytest.fixture
def fake_connection():
    """Factory for FakeConnection instances."""
    return FakeConnection


@pytest.fixture
def settings():
    """Settings with in-memory databases and a known JWT secret."""
    return AppSettings(
        chat=ChatSettings(max_content_length=64),
        storage=StorageSettings(messages_db_path=":memory:", users_db_path=":memory:"),
        secrets=Secrets(jwt=JWTSecrets(secret_key=TEST_SECRET)),
    )


@pytest.fixture
def tokens():
    return TokenService(secret_key=TEST_SECRET)


@pytest.fixture
def store():
    message_store = MessageStore(db_path=":memory:")
    yield message_store
    message_store.close()


@pytest.fixture
def directory(store):
    user_directory = UserDirectory(store, db_path=":memory:")
    yield user_directory
    user_directory.close()


@pytest.fixture
def api_client(settings):
    """Provide a TestClient with the lifespan running (stores, gateway)."""
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def make_user(api_client):
    """Create a directory user and return (user_id, token)."""
    def _make(username: str):
        state = api_client.app.state
        user = state.directory.create_user(username, username.title())
        return user.userId, state.token_service.issue(user.userId)
    return _make
