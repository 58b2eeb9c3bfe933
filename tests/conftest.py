"""
Shared fixtures: fresh storage, fresh room stores and a scripted model gateway.
"""
import os

# Tests never talk to real vendors or a configured database.
for _key in ("DATABASE_URL", "ANTHROPIC_API_KEY", "OPENAI_API_KEY"):
    os.environ.pop(_key, None)

import pytest
from fastapi.testclient import TestClient

from cliprelay.config import reload_settings
from cliprelay.db.engine import init_db, make_engine
from cliprelay.deps import get_gateway, get_storage
from cliprelay.llm import ModelResult
from cliprelay.main import app
from cliprelay.rooms import RoomStore, get_desktop_inbox, get_phone_inbox
from cliprelay.storage import MemoryStorage, SqlStorage

reload_settings()


class FakeGateway:
    """
    Stand-in for ``ModelGateway``.

    Replies are consumed in order; an exception instance is raised instead
    of returned. Every call is recorded as ``(model, request)``.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls = []

    def available_providers(self):
        return ["fake"]

    async def complete(self, model, request):
        self.calls.append((model, request))
        reply = self.replies.pop(0) if self.replies else "{}"
        if isinstance(reply, Exception):
            raise reply
        return ModelResult(
            provider="fake",
            model=model,
            text=reply,
            input_tokens=100,
            output_tokens=50,
            cost_usd=0.001,
            elapsed_ms=12,
        )


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def sql_storage():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield SqlStorage(engine)
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def any_storage(request):
    """Run a test against both storage backends."""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def desktop_inbox():
    return RoomStore("desktop_inbox", ttl_seconds=3600)


@pytest.fixture
def phone_inbox():
    return RoomStore("phone_inbox", ttl_seconds=3600)


@pytest.fixture
def client(memory_storage, fake_gateway, desktop_inbox, phone_inbox):
    """Test client with isolated state per test."""
    app.dependency_overrides[get_storage] = lambda: memory_storage
    app.dependency_overrides[get_gateway] = lambda: fake_gateway
    app.dependency_overrides[get_desktop_inbox] = lambda: desktop_inbox
    app.dependency_overrides[get_phone_inbox] = lambda: phone_inbox
    yield TestClient(app)
    app.dependency_overrides.clear()
