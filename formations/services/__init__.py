"""Formation and token operations exposed to callers."""

from formations.services.formation_service import FormationService
from formations.services.token_service import TokenService

__all__ = ["FormationService", "TokenService"]
