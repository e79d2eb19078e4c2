"""Configure pytest fixtures for formations tests."""

from typing import Callable, Dict, List, Tuple, Union

import httpx
import pytest

from formations.core.config import BackendConfig, reset_settings
from formations.core.models import Session, User
from formations.data.backend_client import BackendClient

BACKEND_URL = "https://backend.test"
ANON_KEY = "anon-key"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """Routes requests by (method, path) and records everything it receives."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Responder] = {}

    def route(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method, path)] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"message": f"no route for {request.url.path}"})
        if callable(responder):
            return responder(request)
        return responder

    def paths(self) -> List[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    """Keep developer env vars, .env files and cached settings out of tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("SUPABASE_URL", "SUPABASE_ANON_KEY", "REQUEST_TIMEOUT", "DEBUG"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def backend_config() -> BackendConfig:
    return BackendConfig(url=BACKEND_URL, anon_key=ANON_KEY)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client(backend_config, fake_backend):
    backend = BackendClient(backend_config, transport=httpx.MockTransport(fake_backend.handler))
    yield backend
    backend.close()


@pytest.fixture
def user() -> User:
    return User(id="user-1", email="ada@example.com")


@pytest.fixture
def session(user) -> Session:
    return Session(access_token="user-jwt", refresh_token="refresh-1", user=user)
