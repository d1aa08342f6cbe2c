"""Tests for the HTTP request model and httpx transport."""

from __future__ import annotations

import json

import httpx
import pytest

from watch_notifications.exceptions import TransportError
from watch_notifications.transport import HttpRequest, HttpResponse, HttpTransport
from watch_notifications.xcontent.params import FULL, HIDE_SECRETS, REDACTED
from watch_notifications.xcontent.value import StructuredValueBuilder, from_python

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def request_() -> HttpRequest:
    return HttpRequest.post_json(
        "https://hooks.example.com/services/T0/B0/secret?token=abc",
        from_python({"text": "hello", "service_key": "s3cret"}),
        secret_fields=frozenset({"service_key"}),
    )


def emit(value: HttpRequest | HttpResponse, params) -> dict:
    builder = StructuredValueBuilder()
    value.to_xcontent(builder, params)
    return builder.build().to_python()


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


# ============================================================================
# Tests
# ============================================================================


class TestHttpRequest:
    """Tests for HttpRequest."""

    def test_post_json(self, request_: HttpRequest) -> None:
        assert request_.method == "POST"
        assert request_.scheme == "https"
        assert request_.host == "hooks.example.com"
        assert request_.port is None
        assert request_.path == "/services/T0/B0/secret"
        assert request_.params == {"token": "abc"}
        assert request_.headers == {"Content-Type": "application/json"}

    def test_url(self, request_: HttpRequest) -> None:
        assert request_.url == "https://hooks.example.com/services/T0/B0/secret?token=abc"

    def test_body_text(self, request_: HttpRequest) -> None:
        assert json.loads(request_.body_text()) == {"text": "hello", "service_key": "s3cret"}

    def test_redacted(self, request_: HttpRequest) -> None:
        """Paths, query values and secret body fields are masked."""
        document = emit(request_, HIDE_SECRETS)
        assert document["path"] == REDACTED
        assert document["params"] == {"token": REDACTED}
        assert document["body"] == {"text": "hello", "service_key": REDACTED}
        assert "headers" not in document
        assert document["method"] == "post"

    def test_unredacted(self, request_: HttpRequest) -> None:
        document = emit(request_, FULL)
        assert document["path"] == "/services/T0/B0/secret"
        assert document["body"]["service_key"] == "s3cret"
        assert document["headers"] == {"Content-Type": "application/json"}

    def test_params_and_headers_are_read_only(self, request_: HttpRequest) -> None:
        """Credentials in query params cannot be changed after the request is built."""
        with pytest.raises(TypeError):
            request_.params["token"] = "other"  # type: ignore[index]
        with pytest.raises(TypeError):
            request_.headers["Authorization"] = "x"  # type: ignore[index]
        assert request_.url.endswith("token=abc")


class TestHttpResponse:
    """Tests for HttpResponse."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [(200, True), (204, True), (299, True), (301, False), (404, False), (500, False)],
    )
    def test_is_success(self, status: int, expected: bool) -> None:
        assert HttpResponse(status).is_success is expected

    def test_headers_hidden(self) -> None:
        response = HttpResponse(200, {"x-request-id": "1"}, "ok")
        assert emit(response, HIDE_SECRETS) == {"status": 200, "body": "ok"}
        assert emit(response, FULL)["headers"] == {"x-request-id": "1"}

    def test_headers_are_read_only(self) -> None:
        headers = {"x-request-id": "1"}
        response = HttpResponse(200, headers)
        headers["x-request-id"] = "2"
        assert response.headers == {"x-request-id": "1"}
        with pytest.raises(TypeError):
            response.headers["x-request-id"] = "3"  # type: ignore[index]


class TestHttpTransport:
    """Tests for HttpTransport."""

    def test_send(self, request_: HttpRequest) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok")

        with HttpTransport(client=mock_client(handler)) as transport:
            response = transport.send(request_)

        assert response.status == 200
        assert response.body == "ok"
        assert seen[0].method == "POST"
        assert seen[0].url.params["token"] == "abc"
        assert json.loads(seen[0].content)["text"] == "hello"

    def test_error_status_is_a_response(self, request_: HttpRequest) -> None:
        transport = HttpTransport(client=mock_client(lambda r: httpx.Response(500, text="down")))
        response = transport.send(request_)
        assert response.status == 500
        assert not response.is_success

    def test_timeout(self, request_: HttpRequest) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        transport = HttpTransport(client=mock_client(handler))
        with pytest.raises(TransportError, match="timed out"):
            transport.send(request_)

    def test_connect_error(self, request_: HttpRequest) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = HttpTransport(client=mock_client(handler))
        with pytest.raises(TransportError, match="connection refused"):
            transport.send(request_)
