"""
HTTP adapter for the managed backend.

Executes ``Query`` values against the REST interface, calls stored
procedures and edge functions, and issues auth requests. Every call is a
single request: no retries, no caching, no rate limiting.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx
import structlog

from formations.core.config import BackendConfig, validate_required_settings
from formations.core.exceptions import BackendError, DataAccessError, RecordNotFoundError
from formations.core.models import Session
from formations.data.query import Query

logger = structlog.get_logger(__name__)

REST_PATH = "/rest/v1"
AUTH_PATH = "/auth/v1"

NOT_SINGLE_ROW_CODE = "PGRST116"

_CONTENT_RANGE = re.compile(r"^(?:\d+-\d+|\*)/(\d+|\*)$")


@dataclass
class QueryResult:
    """Rows returned by a read, with the total count when one was requested."""

    data: Any
    count: Optional[int] = None


@dataclass
class FunctionResponse:
    """Decoded edge function response; non-success statuses are not raised."""

    status_code: int
    payload: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def parse_content_range(value: Optional[str]) -> Optional[int]:
    """Extract the total from a ``Content-Range`` header (``0-24/1234``)."""
    if not value:
        return None
    match = _CONTENT_RANGE.match(value.strip())
    if not match or match.group(1) == "*":
        return None
    return int(match.group(1))


def error_from_response(response: httpx.Response) -> BackendError:
    """Build a ``BackendError`` from a non-success backend response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if not isinstance(body, dict):
        body = {}

    message = (
        body.get("message")
        or body.get("msg")
        or body.get("error_description")
        or body.get("error")
        or response.text
        or response.reason_phrase
        or f"HTTP {response.status_code}"
    )
    code = body.get("code") or body.get("error_code")
    code = str(code) if code is not None else None

    error_cls = RecordNotFoundError if code == NOT_SINGLE_ROW_CODE else BackendError
    return error_cls(
        str(message),
        code=code,
        hint=body.get("hint"),
        status_code=response.status_code,
        details={"details": body.get("details"), "path": response.request.url.path},
    )


class BackendClient:
    """
    Thin client for the backend's REST, RPC, auth and function endpoints.
    """

    def __init__(
        self,
        config: BackendConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.config = config

        missing = validate_required_settings(config)
        if missing:
            # Calls are still attempted and will fail remotely
            logger.error("Missing backend environment variables", missing=missing)

        self.client = httpx.Client(
            base_url=config.url,
            timeout=httpx.Timeout(timeout),
            headers={"apikey": config.anon_key},
            transport=transport,
        )

        logger.debug("Backend client initialized", url=config.url or None)

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.client.close()

    def _headers(
        self, session: Optional[Session] = None, extra: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        """Bearer the session's access token, or the public key when anonymous."""
        token = session.access_token if session and session.access_token else self.config.anon_key
        headers = {"Authorization": f"Bearer {token}"}
        if extra:
            headers.update(extra)
        return headers

    def _send(
        self,
        method: str,
        path: str,
        session: Optional[Session] = None,
        headers: Optional[Mapping[str, str]] = None,
        **kwargs,
    ) -> httpx.Response:
        """
        Send one request.

        Raises:
            DataAccessError: When the request could not be completed
        """
        logger.debug(
            "Making backend request", method=method, path=path, authenticated=bool(session)
        )
        try:
            return self.client.request(
                method, path, headers=self._headers(session, headers), **kwargs
            )
        except httpx.HTTPError as e:
            logger.error("Backend request failed", method=method, path=path, error=str(e))
            raise DataAccessError(
                f"Backend request failed: {e}", details={"method": method, "path": path}
            ) from e

    def _check(self, response: httpx.Response, operation: str) -> httpx.Response:
        if response.is_success:
            return response
        error = error_from_response(response)
        logger.error(
            "Backend returned an error",
            operation=operation,
            status_code=response.status_code,
            code=error.code,
            error=error.message,
        )
        raise error

    def _decode(self, response: httpx.Response, operation: str) -> Any:
        """
        Decode a JSON body.

        Raises:
            DataAccessError: When the body is not JSON
        """
        try:
            return response.json()
        except ValueError as e:
            logger.error(
                "Backend returned a non-JSON body",
                operation=operation,
                status_code=response.status_code,
                error=str(e),
            )
            raise DataAccessError(
                f"Backend returned a non-JSON body: {e}",
                details={"operation": operation, "status_code": response.status_code},
            ) from e

    def execute(self, query: Query, session: Optional[Session] = None) -> QueryResult:
        """
        Run a read query.

        Args:
            query: Query to execute
            session: Caller session (anonymous if None)

        Returns:
            Rows (a single object for single-row queries) and the total count

        Raises:
            BackendError: On a non-success response
            RecordNotFoundError: When a single-row query matched zero or several rows
            DataAccessError: On transport failure or a non-JSON body
        """
        response = self._send(
            "GET",
            f"{REST_PATH}/{query.table}",
            session=session,
            headers=query.to_headers(),
            params=query.to_params(),
        )
        operation = f"select:{query.table}"
        self._check(response, operation=operation)
        return QueryResult(
            data=self._decode(response, operation),
            count=parse_content_range(response.headers.get("content-range")),
        )

    def rpc(
        self, name: str, params: Optional[Dict[str, Any]] = None, session: Optional[Session] = None
    ) -> Any:
        """Call a stored procedure and return its decoded result verbatim."""
        response = self._send(
            "POST", f"{REST_PATH}/rpc/{name}", session=session, json=params or {}
        )
        operation = f"rpc:{name}"
        self._check(response, operation=operation)
        if not response.content:
            return None
        return self._decode(response, operation)

    def invoke_function(
        self, name: str, body: Dict[str, Any], session: Optional[Session] = None
    ) -> FunctionResponse:
        """
        POST a JSON body to an edge function.

        Raises:
            DataAccessError: On transport failure or a non-JSON body
        """
        path = f"{self.config.functions_path.rstrip('/')}/{name}"
        response = self._send(
            "POST",
            path,
            session=session,
            headers={"Content-Type": "application/json"},
            json=body,
        )
        return FunctionResponse(
            status_code=response.status_code, payload=self._decode(response, f"function:{name}")
        )

    def auth_request(
        self,
        method: str,
        path: str,
        session: Optional[Session] = None,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Call an auth endpoint; returns decoded JSON or None for an empty body."""
        response = self._send(
            method, f"{AUTH_PATH}{path}", session=session, json=json, params=params
        )
        operation = f"auth:{path}"
        self._check(response, operation=operation)
        if not response.content:
            return None
        return self._decode(response, operation)

    def health_check(self) -> Dict[str, Any]:
        """Check that the backend answers."""
        try:
            self.auth_request("GET", "/health")
            return {"status": "healthy", "url": self.config.url}
        except DataAccessError as e:
            return {"status": "unhealthy", "url": self.config.url, "error": str(e)}
