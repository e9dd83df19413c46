"""
Shared fixtures.

Every test gets its own SQLite database file and an app built by
``create_app`` whose completion provider is replaced with ``FakeProvider``.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from velora.api.deps import get_completion_provider
from velora.core.config import Settings
from velora.main import create_app
from velora.services.auth_service import AuthService
from velora.services.conversation_store import ConversationStore
from velora.services.database import Database
from velora.services.jwt_service import JWTService

TEST_SECRET = "test-secret-key-for-testing-only-0123456789"
TEST_PASSWORD = "Password123"


class FakeProvider:
    """Stands in for ``CompletionProvider``; replays canned fragments."""

    def __init__(self, fragments=None, open_error=None, fail_after=None, delay=None):
        self.fragments = fragments if fragments is not None else ["Hello", " there", "!"]
        self.open_error = open_error
        self.fail_after = fail_after
        self.delay = delay
        self.calls: list[list[dict]] = []
        self.finished = False

    async def open_stream(self, messages):
        self.calls.append(messages)
        if self.open_error is not None:
            raise self.open_error
        return self._generate()

    async def _generate(self):
        for index, fragment in enumerate(self.fragments):
            if self.fail_after is not None and index == self.fail_after:
                raise ConnectionError("upstream dropped")
            if self.delay is not None:
                await asyncio.sleep(self.delay)
            yield fragment
        self.finished = True

    async def close(self):
        pass


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'velora-test.db'}",
        JWT_SECRET_KEY=TEST_SECRET,
        OPENAI_API_KEY=None,
        BCRYPT_ROUNDS=4,
        ENABLE_RATE_LIMITING=False,
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def app(settings, provider):
    application = create_app(settings)
    application.dependency_overrides[get_completion_provider] = lambda: provider
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def register_and_login(client: TestClient, email: str, password: str = TEST_PASSWORD) -> dict[str, str]:
    """Create an account and return the Authorization header for it."""
    response = client.post("/api/register", json={"email": email, "password": password})
    assert response.status_code == 200, response.text

    response = client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def auth_headers(client):
    return register_and_login(client, "alice@example.com")


@pytest.fixture
def other_auth_headers(client):
    return register_and_login(client, "bob@example.com")


# =============================================================================
# Service-level fixtures (no HTTP)
# =============================================================================


@pytest.fixture
async def database(settings):
    db = Database(settings)
    assert await db.connect()
    yield db
    await db.close()


@pytest.fixture
def jwt_service(settings):
    return JWTService(settings)


@pytest.fixture
def auth_service(database, jwt_service):
    return AuthService(database, jwt_service, bcrypt_rounds=4)


@pytest.fixture
def store(database):
    return ConversationStore(database)
