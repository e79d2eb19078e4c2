"""Session handling against the backend auth service."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import structlog

from formations.core.exceptions import AuthenticationError, DataAccessError
from formations.core.models import Session, User
from formations.data.backend_client import BackendClient

logger = structlog.get_logger(__name__)


class AuthClient:
    """Sign-in, refresh and user resolution for explicit sessions."""

    def __init__(self, backend: BackendClient):
        self.backend = backend

    def sign_in_with_password(self, email: str, password: str) -> Session:
        """
        Exchange credentials for a session.

        Raises:
            BackendError: When the credentials are rejected
        """
        payload = self.backend.auth_request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = Session.from_auth_response(payload or {})
        logger.info("Signed in", email=email, user_id=session.user.id if session.user else None)
        return session

    def refresh_session(self, session: Session) -> Session:
        """Trade the session's refresh token for a new session."""
        if not session.refresh_token:
            raise AuthenticationError("Session has no refresh token")
        payload = self.backend.auth_request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": session.refresh_token},
        )
        return Session.from_auth_response(payload or {})

    def get_user(self, session: Optional[Session]) -> Optional[User]:
        """
        Resolve the user behind a session.

        No request is made for an anonymous caller. A rejected token or an
        unreachable auth service resolves to no user.
        """
        if session is None or not session.access_token:
            return None

        try:
            payload = self.backend.auth_request("GET", "/user", session=session)
        except DataAccessError as e:
            logger.warning("Could not resolve current user", error=str(e))
            return None

        if not isinstance(payload, dict) or not payload.get("id"):
            return None
        return User.model_validate(payload)

    def sign_out(self, session: Session) -> None:
        """Revoke the session remotely; failures are only logged."""
        try:
            self.backend.auth_request("POST", "/logout", session=session)
        except DataAccessError as e:
            logger.warning("Sign-out request failed", error=str(e))


class SessionStore:
    """JSON file holding the CLI's signed-in session."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[Session]:
        if not self.path.exists():
            return None
        try:
            return Session.model_validate(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable session file", path=str(self.path), error=str(e))
            return None

    def save(self, session: Session) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(session.model_dump_json(), encoding="utf-8")
        self.path.chmod(0o600)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
