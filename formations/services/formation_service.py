"""Formation listing and detail retrieval."""

from typing import Any, Dict, Mapping, Optional, Union

import structlog

from formations.core.config import BackendConfig
from formations.core.exceptions import DataAccessError, RecordNotFoundError
from formations.core.models import (
    Formation,
    FormationDetail,
    FormationFilters,
    FormationPage,
    Session,
    SortDirection,
)
from formations.data.backend_client import BackendClient
from formations.data.query import Query, build_formation_query

logger = structlog.get_logger(__name__)


class FormationService:
    """Read formations from the listing table and resolve their notes."""

    def __init__(self, client: BackendClient, config: Optional[BackendConfig] = None):
        """Initialise the service with a backend client and its configuration."""
        self.client = client
        self.config = config or client.config

    def list_formations(
        self,
        page: int = 1,
        page_size: int = 500,
        filters: Optional[Union[FormationFilters, Mapping[str, Any]]] = None,
        sort_by: Optional[str] = None,
        sort_direction: Optional[Union[SortDirection, str]] = None,
        session: Optional[Session] = None,
    ) -> FormationPage:
        """
        Fetch one page of formations matching the filters.

        Args:
            page: 1-based page number
            page_size: Rows per page
            filters: Search text, track categories, catch-all category,
                department and city
            sort_by: Column to order by (unordered when None)
            sort_direction: "asc" for ascending, anything else descending
            session: Caller session (anonymous if None)

        Returns:
            The page of formations and the total match count

        Raises:
            ValidationError: On an invalid page or page size
            DataAccessError: On any backend failure
        """
        query = build_formation_query(
            self.config.listing_table,
            page=page,
            page_size=page_size,
            filters=filters,
            sort_by=sort_by,
            sort_direction=sort_direction,
        )

        try:
            result = self.client.execute(query, session=session)
        except DataAccessError as e:
            logger.error("Error fetching formations", page=page, page_size=page_size, error=str(e))
            raise

        rows = result.data or []
        logger.debug("Fetched formations", page=page, rows=len(rows), count=result.count)
        return FormationPage(
            data=[Formation.model_validate(row) for row in rows],
            count=result.count,
            page=page,
            page_size=page_size,
        )

    def fetch_formation(
        self, formation_id: int, session: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Fetch exactly one listing row by id.

        Raises:
            RecordNotFoundError: When no row (or several) matched
            DataAccessError: On any other backend failure
        """
        query = Query(self.config.listing_table).select("*").eq("id", formation_id).as_single()
        try:
            result = self.client.execute(query, session=session)
        except DataAccessError as e:
            logger.error("Error fetching formation", formation_id=formation_id, error=str(e))
            raise

        if not isinstance(result.data, dict):
            logger.error(
                "Error fetching formation", formation_id=formation_id, error="no single row"
            )
            raise RecordNotFoundError(
                f"Formation {formation_id} not found", details={"formation_id": formation_id}
            )
        return result.data

    def get_formation(
        self, formation_id: int, session: Optional[Session] = None
    ) -> FormationDetail:
        """
        Fetch a formation and, for a signed-in caller, its notes.

        The notes request never fails the call: a refused or failed request
        returns the formation locked, with the reason in ``error``.

        Args:
            formation_id: Formation identifier
            session: Caller session; anonymous callers get a locked record
                without a second request

        Returns:
            The formation merged with ``notes``, ``locked`` and ``error``

        Raises:
            RecordNotFoundError: When the formation does not resolve to one row
            DataAccessError: On any other failure of the primary read
        """
        record = self.fetch_formation(formation_id, session=session)

        if session is None or not session.access_token:
            return FormationDetail.model_validate({**record, "notes": None, "locked": True})

        try:
            response = self.client.invoke_function(
                self.config.notes_function, {"formation_id": formation_id}, session=session
            )
        except DataAccessError as e:
            logger.error("Error fetching notes", formation_id=formation_id, error=str(e))
            return FormationDetail.model_validate(
                {**record, "notes": None, "locked": True, "error": str(e)}
            )

        payload = response.payload if isinstance(response.payload, dict) else {}

        if not response.ok:
            error = payload.get("error")
            logger.info(
                "Notes locked",
                formation_id=formation_id,
                status_code=response.status_code,
                error=error,
            )
            return FormationDetail.model_validate(
                {
                    **record,
                    "notes": None,
                    "locked": True,
                    "error": str(error) if error is not None else None,
                }
            )

        return FormationDetail.model_validate(
            {**record, "notes": payload.get("notes"), "locked": False}
        )
