"""Tests for the Base API request executor."""

from __future__ import annotations

import errno
import json
from typing import Any

import httpx
import pytest

from basecrm.errors import (
    ApiError,
    ConnectionError_,
    ErrorKind,
    RateLimitError,
    RequestError,
    ResourceError,
    ServerError,
    UnknownError,
)
from basecrm.http_client import API_VERSION_PREFIX, HttpClient, raise_for_status
from basecrm.models import Configuration


VALIDATION_ERROR_BODY: dict[str, Any] = {
    "errors": [
        {
            "error": {
                "code": "blank",
                "message": "can't be blank",
                "resource": "lead",
                "field": "last_name",
            },
            "meta": {"type": "error"},
        }
    ],
    "meta": {
        "type": "errors",
        "http_status": "422 Unprocessable Entity",
        "logref": "6f7a0e0c",
    },
}


def _capture(status_code: int = 200, **response_kwargs: Any):
    """Build a handler that records every request and returns a fixed response."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status_code, **response_kwargs)

    return handler, seen


class _ClosingTransport(httpx.MockTransport):
    """MockTransport that counts how often the owning client closes it."""

    def __init__(self, handler) -> None:
        super().__init__(handler)
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


# ---------------------------------------------------------------------------
# URL and headers
# ---------------------------------------------------------------------------


class TestRequestBuilding:
    def test_url_has_version_prefix(self, make_client) -> None:
        handler, seen = _capture(json={"data": {}})
        make_client(handler).get("/leads")

        assert API_VERSION_PREFIX == "/v2"
        assert str(seen[0].url) == "https://api.example.com/v2/leads"

    def test_query_params_keep_given_order(self, make_client) -> None:
        handler, seen = _capture(json={"items": []})
        make_client(handler).get("/leads", {"a": "1", "b": "2"})

        assert str(seen[0].url).endswith("/v2/leads?a=1&b=2")

    def test_query_params_are_url_encoded(self, make_client) -> None:
        handler, seen = _capture(json={"items": []})
        make_client(handler).get("/contacts", {"name": "Acme & Co"})

        assert seen[0].url.params["name"] == "Acme & Co"
        assert "Acme+%26+Co" in str(seen[0].url)

    def test_empty_params_add_no_query_string(self, make_client) -> None:
        handler, seen = _capture(json={"items": []})
        make_client(handler).get("/leads", {})

        assert "?" not in str(seen[0].url)

    def test_delete_sends_query_params(self, make_client) -> None:
        handler, seen = _capture(204)
        make_client(handler).delete("/tags/3", {"force": "true"})

        assert seen[0].method == "DELETE"
        assert str(seen[0].url).endswith("/v2/tags/3?force=true")

    def test_standard_headers(self, make_client, config: Configuration) -> None:
        handler, seen = _capture(json={"data": {}})
        make_client(handler).get("/users/self")

        headers = seen[0].headers
        assert headers["user-agent"] == "basecrm-tests/1.0"
        assert headers["authorization"] == f"Bearer {config.access_token}"
        assert headers["accept"] == "application/json"
        assert "content-type" not in headers

    def test_wire_method_is_upper_case(self, make_client) -> None:
        handler, seen = _capture(json={"data": {}})
        make_client(handler).request("get", "/leads/1")

        assert seen[0].method == "GET"

    def test_unsupported_method_rejected(self, make_client) -> None:
        handler, seen = _capture()
        with pytest.raises(ValueError):
            make_client(handler).request("TRACE", "/leads")
        assert seen == []


# ---------------------------------------------------------------------------
# Request envelope
# ---------------------------------------------------------------------------


class TestRequestBody:
    @pytest.mark.parametrize("method", ["POST", "PUT", "PATCH"])
    def test_body_wrapped_in_data_envelope(self, make_client, method: str) -> None:
        handler, seen = _capture(json={"data": {"id": 1}})
        body = {"last_name": "Doe", "tags": ["vip"], "custom_fields": {"tier": 2}}
        make_client(handler).request(method, "/leads", body=body)

        assert json.loads(seen[0].content) == {"data": body}
        assert seen[0].headers["content-type"] == "application/json"

    def test_post_put_patch_helpers(self, make_client) -> None:
        handler, seen = _capture(json={"data": {}})
        client = make_client(handler)
        client.post("/leads", {"a": 1})
        client.put("/leads/1", {"a": 2})
        client.patch("/leads/1", {"a": 3})

        assert [r.method for r in seen] == ["POST", "PUT", "PATCH"]
        assert [json.loads(r.content) for r in seen] == [
            {"data": {"a": 1}},
            {"data": {"a": 2}},
            {"data": {"a": 3}},
        ]

    def test_empty_mapping_is_still_sent(self, make_client) -> None:
        handler, seen = _capture(json={"data": {}})
        make_client(handler).post("/leads", {})

        assert json.loads(seen[0].content) == {"data": {}}

    def test_post_without_body_sends_nothing(self, make_client) -> None:
        handler, seen = _capture(json={"data": {}})
        make_client(handler).post("/calls/1/complete")

        assert seen[0].content == b""
        assert "content-type" not in seen[0].headers

    def test_body_ignored_for_get(self, make_client) -> None:
        handler, seen = _capture(json={"data": {}})
        make_client(handler).request("GET", "/leads", body={"ignored": True})

        assert seen[0].content == b""
        assert "content-type" not in seen[0].headers


# ---------------------------------------------------------------------------
# Successful responses
# ---------------------------------------------------------------------------


class TestSuccess:
    def test_created_resource_unwrapped(self, make_client) -> None:
        handler, _ = _capture(201, json={"data": {"id": 1}, "meta": {"type": "lead"}})

        assert make_client(handler).post("/leads", {"last_name": "Doe"}) == (201, {"id": 1})

    def test_collection_unwrapped_in_order(self, make_client) -> None:
        items = [{"data": {"id": 3}}, {"data": {"id": 1}}, {"data": {"id": 2}}]
        handler, _ = _capture(json={"items": items, "meta": {"count": 3}})

        status, resource = make_client(handler).get("/leads")
        assert status == 200
        assert resource == items

    def test_null_items_returned_as_object(self, make_client) -> None:
        handler, _ = _capture(json={"items": None})

        assert make_client(handler).get("/leads") == (200, {"items": None})

    def test_bare_object_returned_unchanged(self, make_client) -> None:
        handler, _ = _capture(json={"status": "ok"})

        assert make_client(handler).get("/health") == (200, {"status": "ok"})

    def test_empty_body_yields_none(self, make_client) -> None:
        handler, _ = _capture(204)

        assert make_client(handler).delete("/leads/1") == (204, None)

    def test_redirect_status_is_not_an_error(self, make_client) -> None:
        handler, _ = _capture(304, json={"data": {"id": 9}})

        assert make_client(handler).get("/leads/9") == (304, {"id": 9})


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class TestErrorClassification:
    def test_422_raises_resource_error(self, make_client) -> None:
        handler, _ = _capture(422, json=VALIDATION_ERROR_BODY)

        with pytest.raises(ResourceError) as exc_info:
            make_client(handler).post("/leads", {"last_name": ""})

        exc = exc_info.value
        assert exc.kind == ErrorKind.RESOURCE
        assert exc.http_code == 422
        assert exc.response == VALIDATION_ERROR_BODY
        assert exc.errors[0].field == "last_name"
        assert exc.logref == "6f7a0e0c"
        assert "can't be blank" in str(exc)

    def test_resource_error_is_not_a_request_error(self, make_client) -> None:
        handler, _ = _capture(422, json=VALIDATION_ERROR_BODY)

        with pytest.raises(ApiError) as exc_info:
            make_client(handler).post("/leads", {})

        assert type(exc_info.value) is ResourceError
        assert not isinstance(exc_info.value, RequestError)

    def test_429_raises_rate_limit_error(self, make_client) -> None:
        handler, _ = _capture(429, json={"errors": []})

        with pytest.raises(RateLimitError) as exc_info:
            make_client(handler).get("/leads")

        assert exc_info.value.kind == ErrorKind.RATE_LIMIT
        assert exc_info.value.http_code == 429

    def test_404_raises_request_error(self, make_client) -> None:
        body = {"errors": [{"error": {"code": "not_found", "message": "Lead not found"}}]}
        handler, _ = _capture(404, json=body)

        with pytest.raises(RequestError) as exc_info:
            make_client(handler).get("/leads/404")

        exc = exc_info.value
        assert type(exc) is RequestError
        assert exc.kind == ErrorKind.REQUEST
        assert exc.http_code == 404
        assert exc.response == body
        assert str(exc) == "HTTP 404: Lead not found"

    def test_error_body_is_not_unwrapped(self, make_client) -> None:
        handler, _ = _capture(400, json={"data": {"hint": "x"}})

        with pytest.raises(RequestError) as exc_info:
            make_client(handler).get("/leads")

        assert exc_info.value.response == {"data": {"hint": "x"}}

    def test_error_without_body(self, make_client) -> None:
        handler, _ = _capture(401)

        with pytest.raises(RequestError) as exc_info:
            make_client(handler).get("/leads")

        assert exc_info.value.http_code == 401
        assert exc_info.value.response is None

    def test_500_raises_server_error(self, make_client) -> None:
        handler, _ = _capture(500, json={"message": "boom"})

        with pytest.raises(ServerError) as exc_info:
            make_client(handler).get("/leads")

        assert exc_info.value.kind == ErrorKind.SERVER
        assert exc_info.value.http_code == 500
        assert exc_info.value.response == {"message": "boom"}

    def test_out_of_taxonomy_status_raises_unknown_error(self, make_client) -> None:
        handler, _ = _capture(600, text='{"odd": true}')

        with pytest.raises(UnknownError) as exc_info:
            make_client(handler).get("/leads")

        assert exc_info.value.http_code == 600
        assert exc_info.value.response == '{"odd": true}'

    def test_non_json_body_raises_unknown_error(self, make_client) -> None:
        handler, _ = _capture(200, text="<html>maintenance</html>")

        with pytest.raises(UnknownError) as exc_info:
            make_client(handler).get("/leads")

        exc = exc_info.value
        assert exc.kind == ErrorKind.UNKNOWN
        assert exc.http_code == 200
        assert exc.response == "<html>maintenance</html>"
        assert "HTTP response body=<html>maintenance</html>" in str(exc)

    def test_undecodable_content_encoding_raises_unknown_error(self, make_client) -> None:
        handler, _ = _capture(200, headers={"Content-Encoding": "gzip"}, content=b"notgzip")

        with pytest.raises(UnknownError) as exc_info:
            make_client(handler).get("/leads")

        exc = exc_info.value
        assert exc.kind == ErrorKind.UNKNOWN
        assert exc.response is None
        assert isinstance(exc.__cause__, httpx.DecodingError)

    def test_non_json_error_body_raises_unknown_error(self, make_client) -> None:
        handler, _ = _capture(502, text="Bad Gateway")

        with pytest.raises(UnknownError):
            make_client(handler).get("/leads")

    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            (400, RequestError),
            (403, RequestError),
            (409, RequestError),
            (422, ResourceError),
            (429, RateLimitError),
            (499, RequestError),
            (503, ServerError),
            (599, ServerError),
            (199, UnknownError),
            (600, UnknownError),
        ],
    )
    def test_raise_for_status_table(self, code: int, expected: type) -> None:
        with pytest.raises(expected):
            raise_for_status(code, "{}", {})


# ---------------------------------------------------------------------------
# Transport failures
# ---------------------------------------------------------------------------


class TestConnectionErrors:
    def test_connect_error_raises_connection_error(self, make_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused")

        with pytest.raises(ConnectionError_) as exc_info:
            make_client(handler).get("/leads")

        exc = exc_info.value
        assert exc.kind == ErrorKind.CONNECTION
        assert exc.http_code is None
        assert exc.errno == "ConnectError"
        assert exc.error_message == "Connection refused"
        assert isinstance(exc.__cause__, httpx.ConnectError)

    def test_errno_taken_from_os_error(self, make_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused") from ConnectionRefusedError(
                errno.ECONNREFUSED, "Connection refused"
            )

        with pytest.raises(ConnectionError_) as exc_info:
            make_client(handler).get("/leads")

        assert exc_info.value.errno == errno.ECONNREFUSED
        assert f"[{errno.ECONNREFUSED}]" in str(exc_info.value)

    def test_timeout_raises_connection_error(self, make_client) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out")

        with pytest.raises(ConnectionError_) as exc_info:
            make_client(handler).get("/leads")

        assert exc_info.value.errno == "ReadTimeout"


# ---------------------------------------------------------------------------
# Resource ownership
# ---------------------------------------------------------------------------


class TestTransportLifecycle:
    def _client(self, config: Configuration, handler) -> tuple[HttpClient, _ClosingTransport]:
        transport = _ClosingTransport(handler)
        return HttpClient(config, transport=transport), transport

    def test_closed_after_success(self, config: Configuration) -> None:
        client, transport = self._client(
            config, lambda request: httpx.Response(200, json={"data": {}})
        )
        client.get("/leads")
        client.get("/leads")

        assert transport.closed == 2

    def test_closed_after_http_error(self, config: Configuration) -> None:
        client, transport = self._client(config, lambda request: httpx.Response(500))

        with pytest.raises(ServerError):
            client.get("/leads")
        assert transport.closed == 1

    def test_closed_after_transport_error(self, config: Configuration) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused")

        client, transport = self._client(config, handler)

        with pytest.raises(ConnectionError_):
            client.get("/leads")
        assert transport.closed == 1


# ---------------------------------------------------------------------------
# Verbose trace
# ---------------------------------------------------------------------------


class TestVerboseTrace:
    def test_trace_written_to_stderr(self, make_client, plain_output, capfd) -> None:
        handler, _ = _capture(201, json={"data": {"id": 7}})
        client = make_client(handler, verbose=True)

        assert client.post("/leads", {"last_name": "Doe"}) == (201, {"id": 7})

        captured = capfd.readouterr()
        assert captured.out == ""
        assert "> POST https://api.example.com/v2/leads" in captured.err
        assert "> Authorization: Bearer ***" in captured.err
        assert '{"data": {"last_name": "Doe"}}' in captured.err
        assert "< 201" in captured.err
        assert client.config.access_token not in captured.err

    def test_no_trace_by_default(self, make_client, plain_output, capfd) -> None:
        handler, _ = _capture(json={"data": {}})
        make_client(handler).get("/leads")

        assert capfd.readouterr().err == ""
