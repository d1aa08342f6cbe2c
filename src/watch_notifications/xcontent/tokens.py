"""Token-stream and builder interfaces for structured documents."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol


class Token(Enum):
    """Tokens produced by a structured-document parser."""

    START_OBJECT = "start_object"
    END_OBJECT = "end_object"
    START_ARRAY = "start_array"
    END_ARRAY = "end_array"
    FIELD_NAME = "field_name"
    VALUE_STRING = "value_string"
    VALUE_NUMBER = "value_number"
    VALUE_BOOLEAN = "value_boolean"
    VALUE_NULL = "value_null"

    @property
    def is_value(self) -> bool:
        """Return True for scalar value tokens."""
        return self in _VALUE_TOKENS


_VALUE_TOKENS = frozenset(
    {Token.VALUE_STRING, Token.VALUE_NUMBER, Token.VALUE_BOOLEAN, Token.VALUE_NULL}
)


class DocumentParser(Protocol):
    """Pull parser over a structured document."""

    def next_token(self) -> Token | None:
        """Advance and return the new current token (None at end of stream)."""
        ...

    def current_token(self) -> Token | None:
        """Return the current token without advancing."""
        ...

    def current_name(self) -> str | None:
        """Return the field name the current token belongs to."""
        ...

    def text(self) -> str:
        """Return the current scalar value as text."""
        ...

    def boolean_value(self) -> bool:
        """Return the current boolean value."""
        ...

    def value(self) -> Any:
        """Return the current scalar value as-is."""
        ...

    def skip_children(self) -> None:
        """Skip past the object or array that starts at the current token."""
        ...


class DocumentBuilder(Protocol):
    """Push builder producing a structured document."""

    def start_object(self, name: str | None = None) -> DocumentBuilder: ...

    def end_object(self) -> DocumentBuilder: ...

    def start_array(self, name: str | None = None) -> DocumentBuilder: ...

    def end_array(self) -> DocumentBuilder: ...

    def field_name(self, name: str) -> DocumentBuilder: ...

    def field(self, name: str, value: Any) -> DocumentBuilder: ...

    def value(self, value: Any) -> DocumentBuilder: ...
