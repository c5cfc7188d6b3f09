"""Pytest configuration and shared fixtures.

MongoDB is replaced by mongomock and Redis by fakeredis, so the suite runs
without any external service. Every test starts with empty collections.
"""

import mongomock
import pytest
import fakeredis
from fastapi.testclient import TestClient

from main import create_app
from vidnet.connections.mongo import close_mongo, init_mongo
from vidnet.connections.redis import set_redis
from vidnet.models import Account
from vidnet.services.auth import TokenIssuer
from vidnet.services.graph import GraphQueryEngine
from vidnet.services.media import get_media_storage
from vidnet.services.session import SessionManager
from vidnet.utils.config import Settings


class FakeMedia:
    """Records best-effort deletes instead of talking to the bucket."""

    def __init__(self):
        self.discarded: list[str] = []

    def discard(self, url):
        if url:
            self.discarded.append(url)


@pytest.fixture(autouse=True)
def mongo(settings):
    init_mongo(settings, mongo_client_class=mongomock.MongoClient)
    yield
    close_mongo()


@pytest.fixture(autouse=True)
def redis_client():
    client = fakeredis.FakeRedis(decode_responses=True)
    set_redis(client)
    yield client
    set_redis(None)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        mongo_url="mongodb://localhost:27017",
        mongo_db="vidnet_test",
        jwt_secret_key="test-secret-key",
        access_token_expires_minutes=15,
        refresh_token_expires_days=10,
        subscription_toggle_window_seconds=0,
        change_password_window_seconds=0,
        media_public_base_url="https://media.test/bucket",
    )


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def app(settings, media):
    application = create_app(settings)
    application.dependency_overrides[get_media_storage] = lambda: media
    return application


@pytest.fixture
def client(app) -> TestClient:
    """No lifespan: connections come from the fixtures above."""
    return TestClient(app)


@pytest.fixture
def sessions(settings) -> SessionManager:
    return SessionManager(settings)


@pytest.fixture
def graph() -> GraphQueryEngine:
    return GraphQueryEngine()


@pytest.fixture
def issuer(settings) -> TokenIssuer:
    return TokenIssuer(settings)


@pytest.fixture
def make_account(sessions):
    """Factory registering an account with password `password123`."""

    def _make(username: str, email: str | None = None, full_name: str | None = None) -> Account:
        return sessions.register(
            full_name=full_name or username.title(),
            email=email or f"{username.lower()}@example.com",
            username=username,
            password="password123",
            avatar=f"https://media.test/bucket/avatars/{username.lower()}.png",
        )

    return _make


@pytest.fixture
def auth_headers(issuer):
    """Authorization header carrying a fresh access token for an account."""

    def _headers(account: Account) -> dict:
        token = issuer.issue_pair(account.id).access_token
        return {"Authorization": f"Bearer {token}"}

    return _headers
