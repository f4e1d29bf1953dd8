import pytest
from fastapi.testclient import TestClient

from leadbot.api.lead import get_relay_client
from leadbot.main import app
from leadbot.services import lead_service
from leadbot.services.chat_store import MemoryStore
from leadbot.services.lead_service import LeadRelayClient
from leadbot.services.session_service import SessionRegistry, get_registry


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    """Stands in for requests.Session: records posts, replays a canned response or error."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def registry():
    reg = SessionRegistry(store=MemoryStore(), generator_factory=lambda: None)
    yield reg
    reg.clear()


@pytest.fixture
def client(registry):
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_relay_client] = lambda: LeadRelayClient(url="")
    lead_service.clear_all()
    yield TestClient(app)
    app.dependency_overrides.clear()
    lead_service.clear_all()
