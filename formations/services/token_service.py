"""Per-user token balance and consumption."""

from typing import Any, Optional

import structlog

from formations.core.config import BackendConfig
from formations.core.exceptions import AuthenticationError, DataAccessError
from formations.core.models import Session, UserProfile
from formations.data.auth_client import AuthClient
from formations.data.backend_client import BackendClient
from formations.data.query import Query

logger = structlog.get_logger(__name__)


class TokenService:
    """
    Read and spend the caller's tokens.

    The balance check and decrement happen atomically in the backend
    procedure; this service only reads the balance or triggers the call.
    """

    def __init__(
        self,
        client: BackendClient,
        auth: Optional[AuthClient] = None,
        config: Optional[BackendConfig] = None,
    ):
        self.client = client
        self.auth = auth or AuthClient(client)
        self.config = config or client.config

    def get_user_tokens(self, session: Optional[Session] = None) -> int:
        """Return the caller's token balance; 0 when anonymous or unreadable."""
        user = self.auth.get_user(session)
        if user is None:
            return 0

        query = (
            Query(self.config.profiles_table)
            .select("tokens")
            .eq("user_id", user.id)
            .as_single()
        )
        try:
            result = self.client.execute(query, session=session)
            profile = UserProfile.model_validate(result.data or {})
        except (DataAccessError, ValueError) as e:
            logger.error("Error fetching user tokens", user_id=user.id, error=str(e))
            return 0

        return profile.tokens or 0

    def use_token(self, formation_id: int, session: Optional[Session] = None) -> Any:
        """
        Spend one token to unlock a formation's notes.

        Args:
            formation_id: Formation to unlock
            session: Caller session

        Returns:
            The procedure's result, unchanged

        Raises:
            AuthenticationError: When no user is signed in
            BackendError: When the procedure fails (e.g. no tokens left)
            DataAccessError: On transport failure
        """
        user = self.auth.get_user(session)
        if user is None:
            logger.warning("User not authenticated", formation_id=formation_id)
            raise AuthenticationError("User not authenticated")

        try:
            result = self.client.rpc(
                self.config.consume_procedure,
                {"p_user_id": user.id, "p_formation_id": formation_id},
                session=session,
            )
        except DataAccessError as e:
            logger.error(
                "Error using token", user_id=user.id, formation_id=formation_id, error=str(e)
            )
            raise

        logger.info("Token used", user_id=user.id, formation_id=formation_id)
        return result
