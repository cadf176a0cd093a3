import asyncio
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from dmchat.config import Settings
from dmchat.main import create_app
from dmchat.repositories.memory import memory_store
from dmchat.utils.security import create_access_token


@pytest.fixture
def settings():
    return Settings(jwt_secret="test-secret", heartbeat_interval_seconds=3600, log_level="DEBUG")


@pytest.fixture
def store():
    return memory_store()


@pytest.fixture
def users(store):
    async def seed():
        return SimpleNamespace(
            alice=await store.users.create_user("alice", "Alice Liddell", "alice@example.com"),
            bob=await store.users.create_user("bob", "Bob Builder", "bob@example.com"),
            carol=await store.users.create_user("carol", "Carol Danvers", "carol@example.com"),
        )

    return asyncio.run(seed())


@pytest.fixture
def app(settings, store, users):
    return create_app(settings=settings, store=store)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth(settings):
    def headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id, settings)}"}

    return headers


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met in time")
        time.sleep(0.01)
