"""Validate the HTTP adapter against a fake backend."""

import json

import httpx
import pytest

from formations.core.config import BackendConfig
from formations.core.exceptions import BackendError, DataAccessError, RecordNotFoundError
from formations.data.backend_client import BackendClient, parse_content_range
from formations.data.query import Query

ANON_KEY = "anon-key"


class TestContentRange:
    @pytest.mark.parametrize(
        "header,expected",
        [("0-24/1234", 1234), ("*/0", 0), ("0-9/*", None), (None, None), ("garbage", None)],
    )
    def test_parse(self, header, expected):
        assert parse_content_range(header) == expected


class TestExecute:
    def test_anonymous_read_uses_public_key(self, client, fake_backend):
        fake_backend.route(
            "GET",
            "/rest/v1/formation_list",
            httpx.Response(200, json=[{"id": 1}], headers={"content-range": "0-0/42"}),
        )

        result = client.execute(Query("formation_list").select("*", count="exact").eq("ville", "Lyon"))

        assert result.data == [{"id": 1}]
        assert result.count == 42
        request = fake_backend.requests[0]
        assert request.headers["apikey"] == ANON_KEY
        assert request.headers["authorization"] == f"Bearer {ANON_KEY}"
        assert request.headers["prefer"] == "count=exact"
        assert request.url.params["ville"] == "eq.Lyon"

    def test_session_token_is_sent(self, client, fake_backend, session):
        fake_backend.route("GET", "/rest/v1/formation_list", httpx.Response(200, json=[]))

        client.execute(Query("formation_list"), session=session)

        assert fake_backend.requests[0].headers["authorization"] == "Bearer user-jwt"

    def test_error_body_is_parsed(self, client, fake_backend):
        fake_backend.route(
            "GET",
            "/rest/v1/formation_list",
            httpx.Response(
                400,
                json={"code": "42703", "message": "column does not exist", "hint": None},
            ),
        )

        with pytest.raises(BackendError) as exc:
            client.execute(Query("formation_list"))

        assert exc.value.code == "42703"
        assert exc.value.status_code == 400
        assert exc.value.message == "column does not exist"

    def test_single_row_violation_is_not_found(self, client, fake_backend):
        fake_backend.route(
            "GET",
            "/rest/v1/formation_list",
            httpx.Response(
                406,
                json={"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"},
            ),
        )

        with pytest.raises(RecordNotFoundError):
            client.execute(Query("formation_list").eq("id", 9).as_single())

    def test_transport_failure_is_wrapped(self, client, fake_backend):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        fake_backend.route("GET", "/rest/v1/formation_list", boom)

        with pytest.raises(DataAccessError) as exc:
            client.execute(Query("formation_list"))

        assert not isinstance(exc.value, BackendError)
        assert isinstance(exc.value.__cause__, httpx.ConnectError)

    def test_non_json_success_body_is_data_access_error(self, client, fake_backend):
        fake_backend.route(
            "GET", "/rest/v1/formation_list", httpx.Response(200, text="<html>proxy</html>")
        )

        with pytest.raises(DataAccessError) as exc:
            client.execute(Query("formation_list"))

        assert not isinstance(exc.value, BackendError)
        assert exc.value.details["operation"] == "select:formation_list"


class TestRpcAndFunctions:
    def test_rpc_returns_result_verbatim(self, client, fake_backend, session):
        fake_backend.route(
            "POST",
            "/rest/v1/rpc/use_token_for_formation",
            httpx.Response(200, json={"success": True, "remaining": 4}),
        )

        result = client.rpc("use_token_for_formation", {"p_user_id": "u", "p_formation_id": 3}, session)

        assert result == {"success": True, "remaining": 4}
        assert json.loads(fake_backend.requests[0].read()) == {"p_user_id": "u", "p_formation_id": 3}

    def test_rpc_empty_body(self, client, fake_backend):
        fake_backend.route("POST", "/rest/v1/rpc/noop", httpx.Response(204))

        assert client.rpc("noop") is None

    def test_function_error_status_is_returned(self, client, fake_backend, session):
        fake_backend.route(
            "POST",
            "/functions/v1/get-formation-notes",
            httpx.Response(403, json={"error": "Formation not unlocked"}),
        )

        response = client.invoke_function("get-formation-notes", {"formation_id": 3}, session)

        assert not response.ok
        assert response.status_code == 403
        assert response.payload == {"error": "Formation not unlocked"}
        request = fake_backend.requests[0]
        assert request.headers["authorization"] == "Bearer user-jwt"
        assert request.headers["apikey"] == ANON_KEY
        assert request.headers["content-type"] == "application/json"

    def test_function_non_json_body_is_data_access_error(self, client, fake_backend, session):
        fake_backend.route(
            "POST", "/functions/v1/get-formation-notes", httpx.Response(502, text="Bad Gateway")
        )

        with pytest.raises(DataAccessError) as exc:
            client.invoke_function("get-formation-notes", {"formation_id": 3}, session)

        assert exc.value.details["status_code"] == 502
        assert isinstance(exc.value.__cause__, ValueError)

    def test_rpc_non_json_body_is_data_access_error(self, client, fake_backend):
        fake_backend.route("POST", "/rest/v1/rpc/noop", httpx.Response(200, text="ok"))

        with pytest.raises(DataAccessError):
            client.rpc("noop")


class TestHealthAndConfig:
    def test_health_check(self, client, fake_backend):
        fake_backend.route("GET", "/auth/v1/health", httpx.Response(200, json={"name": "auth"}))

        assert client.health_check()["status"] == "healthy"

    def test_health_check_unhealthy(self, client, fake_backend):
        fake_backend.route("GET", "/auth/v1/health", httpx.Response(503, json={"message": "down"}))

        health = client.health_check()
        assert health["status"] == "unhealthy"
        assert health["error"] == "down"

    def test_missing_configuration_does_not_block_construction(self):
        backend = BackendClient(BackendConfig())

        assert backend.config.url == ""
        assert backend.config.anon_key == ""
        backend.close()
