"""Outbound HTTP request/response model and the httpx-backed transport."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

import httpx

from watch_notifications.exceptions import TransportError
from watch_notifications.xcontent.params import HIDE_SECRETS, REDACTED, SerializationParams
from watch_notifications.xcontent.value import ObjectValue, Primitive, StructuredValue

if TYPE_CHECKING:
    from watch_notifications.xcontent.tokens import DocumentBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpRequest:
    """An outbound HTTP request built from a rendered message.

    Attributes:
        method: HTTP method.
        scheme: ``http`` or ``https``.
        host: Target host.
        port: Target port, or None for the scheme default.
        path: Request path. Webhook paths commonly embed credentials.
        params: Query parameters.
        headers: Request headers.
        body: JSON body as a structured value.
        secret_fields: Top-level body fields masked when secrets are hidden.
    """

    method: str
    scheme: str
    host: str
    path: str
    port: int | None = None
    params: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: StructuredValue | None = None
    secret_fields: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @classmethod
    def post_json(
        cls,
        url: str,
        body: StructuredValue,
        *,
        headers: Mapping[str, str] | None = None,
        secret_fields: frozenset[str] = frozenset(),
    ) -> HttpRequest:
        """Create a JSON POST request for a full URL."""
        parsed = httpx.URL(url)
        return cls(
            method="POST",
            scheme=parsed.scheme,
            host=parsed.host,
            port=parsed.port,
            path=parsed.path,
            params=dict(parsed.params),
            headers={"Content-Type": "application/json", **(headers or {})},
            body=body,
            secret_fields=secret_fields,
        )

    @property
    def url(self) -> str:
        return str(
            httpx.URL(
                scheme=self.scheme,
                host=self.host,
                port=self.port,
                path=self.path,
                params=dict(self.params),
            )
        )

    def body_text(self) -> str | None:
        if self.body is None:
            return None
        return json.dumps(self.body.to_python())

    def to_xcontent(
        self, builder: DocumentBuilder, params: SerializationParams = HIDE_SECRETS
    ) -> None:
        builder.start_object()
        builder.field("host", self.host)
        if self.port is not None:
            builder.field("port", self.port)
        builder.field("scheme", self.scheme)
        builder.field("method", self.method.lower())
        builder.field("path", REDACTED if params.hide_secrets else self.path)
        if self.params:
            builder.start_object("params")
            for name, value in self.params.items():
                builder.field(name, REDACTED if params.hide_secrets else value)
            builder.end_object()
        if self.headers and not params.hide_headers:
            builder.field("headers", dict(self.headers))
        if self.body is not None:
            builder.field_name("body")
            self._redacted_body(self.body, params).emit(builder)
        builder.end_object()

    def _redacted_body(
        self, body: StructuredValue, params: SerializationParams
    ) -> StructuredValue:
        if not params.hide_secrets or not isinstance(body, ObjectValue):
            return body
        return ObjectValue(
            {
                name: Primitive(REDACTED) if name in self.secret_fields else value
                for name, value in body.fields.items()
            }
        )


@dataclass(frozen=True)
class HttpResponse:
    """The response to an outbound request."""

    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    def to_xcontent(
        self, builder: DocumentBuilder, params: SerializationParams = HIDE_SECRETS
    ) -> None:
        builder.start_object()
        builder.field("status", self.status)
        if self.headers and not params.hide_headers:
            builder.field("headers", dict(self.headers))
        if self.body is not None:
            builder.field("body", self.body)
        builder.end_object()


class HttpTransport:
    """Synchronous httpx transport implementing ``send(request) -> response``.

    Any httpx error is raised as ``TransportError`` so callers can record it.
    """

    def __init__(
        self,
        *,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: HTTP request timeout in seconds.
            client: Optional preconfigured client (mainly for tests).
        """
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, request: HttpRequest) -> HttpResponse:
        """Send a request and return its response.

        Raises:
            TransportError: If no response could be obtained.
        """
        try:
            response = self._client.request(
                request.method,
                request.url,
                headers=dict(request.headers),
                content=request.body_text(),
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Request to {request.host} timed out")
            raise TransportError(f"request to [{request.host}] timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Request to {request.host} failed: {e}")
            raise TransportError(f"request to [{request.host}] failed: {e}") from e

        logger.debug(f"Request to {request.host} returned {response.status_code}")
        return HttpResponse(
            status=response.status_code,
            headers=dict(response.headers),
            body=response.text,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpTransport:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
