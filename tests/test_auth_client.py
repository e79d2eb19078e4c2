"""Validate sign-in, user resolution and session persistence."""

import httpx
import pytest

from formations.core.exceptions import AuthenticationError, BackendError
from formations.core.models import Session
from formations.data.auth_client import AuthClient, SessionStore

TOKEN = "/auth/v1/token"

GRANT = {
    "access_token": "new-jwt",
    "refresh_token": "refresh-2",
    "token_type": "bearer",
    "expires_in": 3600,
    "user": {"id": "user-1", "email": "ada@example.com", "role": "authenticated"},
}


@pytest.fixture
def auth(client):
    return AuthClient(client)


class TestSignIn:
    def test_password_grant(self, auth, fake_backend):
        fake_backend.route("POST", TOKEN, httpx.Response(200, json=GRANT))

        session = auth.sign_in_with_password("ada@example.com", "secret")

        assert session.access_token == "new-jwt"
        assert session.user.id == "user-1"
        assert session.expires_at is not None
        assert not session.is_expired
        assert fake_backend.requests[0].url.params["grant_type"] == "password"

    def test_rejected_credentials(self, auth, fake_backend):
        fake_backend.route(
            "POST",
            TOKEN,
            httpx.Response(
                400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"}
            ),
        )

        with pytest.raises(BackendError) as exc:
            auth.sign_in_with_password("ada@example.com", "wrong")

        assert exc.value.message == "Invalid login credentials"

    def test_refresh(self, auth, fake_backend, session):
        fake_backend.route("POST", TOKEN, httpx.Response(200, json=GRANT))

        refreshed = auth.refresh_session(session)

        assert refreshed.refresh_token == "refresh-2"
        assert fake_backend.requests[0].url.params["grant_type"] == "refresh_token"

    def test_refresh_without_token(self, auth):
        with pytest.raises(AuthenticationError):
            auth.refresh_session(Session(access_token="jwt"))


class TestGetUser:
    def test_no_session_makes_no_request(self, auth, fake_backend):
        assert auth.get_user(None) is None
        assert fake_backend.requests == []

    def test_resolves_user(self, auth, fake_backend, session):
        fake_backend.route(
            "GET", "/auth/v1/user", httpx.Response(200, json={"id": "user-1", "email": "ada@example.com"})
        )

        user = auth.get_user(session)

        assert user.id == "user-1"
        assert fake_backend.requests[0].headers["authorization"] == "Bearer user-jwt"

    def test_transport_failure_is_anonymous(self, auth, fake_backend, session):
        def unreachable(request):
            raise httpx.ConnectError("refused", request=request)

        fake_backend.route("GET", "/auth/v1/user", unreachable)

        assert auth.get_user(session) is None

    def test_sign_out_failure_is_not_raised(self, auth, fake_backend, session):
        fake_backend.route("POST", "/auth/v1/logout", httpx.Response(500, json={"msg": "down"}))

        auth.sign_out(session)


class TestSessionStore:
    def test_round_trip(self, tmp_path, session):
        store = SessionStore(tmp_path / "nested" / "session.json")

        store.save(session)
        loaded = store.load()

        assert loaded == session

    def test_missing_file(self, tmp_path):
        assert SessionStore(tmp_path / "none.json").load() is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json", encoding="utf-8")

        assert SessionStore(path).load() is None

    def test_clear(self, tmp_path, session):
        store = SessionStore(tmp_path / "session.json")
        store.save(session)

        store.clear()
        store.clear()

        assert store.load() is None
