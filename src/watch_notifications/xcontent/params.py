"""Serialization parameters controlling redaction of sensitive fields."""

from __future__ import annotations

from dataclasses import dataclass

REDACTED = "::redacted::"


@dataclass(frozen=True)
class SerializationParams:
    """Parameters for emitting results.

    Attributes:
        hide_secrets: Mask request paths, query parameters, secret body
            fields and attachment bytes.
        hide_headers: Omit request and response headers.
        debug: Include diagnostic detail such as exception types.
    """

    hide_secrets: bool = True
    hide_headers: bool = True
    debug: bool = False


HIDE_SECRETS = SerializationParams()
FULL = SerializationParams(hide_secrets=False, hide_headers=False, debug=True)
