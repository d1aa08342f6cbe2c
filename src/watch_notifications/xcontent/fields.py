"""Declarative field tables for parsing field-tagged documents.

Each template type declares an ``ObjectParser`` listing its fields. A field
entry binds a ``ParseField`` (preferred name plus any deprecated aliases) to
a reader, which pulls the value off the token stream, and a setter, which
hands the value to the type's builder. ``ObjectParser.parse`` performs the
single left-to-right scan shared by every type.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from watch_notifications.exceptions import (
    FieldParseError,
    MissingFieldError,
    StructuralParseError,
    UnexpectedFieldError,
)
from watch_notifications.xcontent.tokens import DocumentParser, Token

logger = logging.getLogger(__name__)

B = TypeVar("B")

DeprecationHook = Callable[[str, str], None]
"""Called with (used name, preferred name) when a deprecated alias is seen."""


def log_deprecation(used_name: str, preferred_name: str) -> None:
    """Default deprecation hook: log a warning."""
    logger.warning(
        "Deprecated field [%s] used, expected [%s] instead", used_name, preferred_name
    )


_deprecation_hook: DeprecationHook = log_deprecation


def set_deprecation_hook(hook: DeprecationHook | None) -> None:
    """Install the process-wide deprecation hook (None restores the default)."""
    global _deprecation_hook
    _deprecation_hook = hook or log_deprecation


def get_deprecation_hook() -> DeprecationHook:
    return _deprecation_hook


@dataclass(frozen=True)
class ParseField:
    """A field name together with the deprecated names it also accepts."""

    name: str
    deprecated_names: tuple[str, ...] = ()

    def match(self, candidate: str, on_deprecated: DeprecationHook | None = None) -> bool:
        if candidate == self.name:
            return True
        if candidate in self.deprecated_names:
            (on_deprecated or _deprecation_hook)(candidate, self.name)
            return True
        return False


Reader = Callable[[DocumentParser, str], Any]
Setter = Callable[[B, Any], Any]


@dataclass(frozen=True)
class FieldEntry(Generic[B]):
    """One row of a field table."""

    field: ParseField
    reader: Reader
    setter: Setter[B]
    required: bool = False


class ObjectParser(Generic[B]):
    """Parses one object into a builder using a field table.

    Args:
        context: Human-readable name used in error messages
            (e.g. "chat message").
        entries: The field table.
    """

    def __init__(self, context: str, entries: list[FieldEntry[B]]) -> None:
        self.context = context
        self.entries = entries

    def _lookup(self, name: str, on_deprecated: DeprecationHook | None) -> FieldEntry[B]:
        for entry in self.entries:
            if entry.field.match(name, on_deprecated):
                return entry
        raise UnexpectedFieldError(self.context, name)

    def parse(
        self,
        parser: DocumentParser,
        builder: B,
        on_deprecated: DeprecationHook | None = None,
    ) -> B:
        """Scan the object at the current token, feeding values into ``builder``.

        Raises:
            UnexpectedFieldError: For a field not in the table.
            FieldParseError: For a malformed or repeated value.
            MissingFieldError: When a required field never appeared.
        """
        if parser.current_token() is None:
            parser.next_token()
        if parser.current_token() != Token.START_OBJECT:
            raise StructuralParseError(
                f"could not parse {self.context}. expected an object but found "
                f"[{parser.current_token()}]"
            )

        seen: set[str] = set()
        while (token := parser.next_token()) != Token.END_OBJECT:
            if token is None:
                raise StructuralParseError(
                    f"could not parse {self.context}. unexpected end of document"
                )
            if token != Token.FIELD_NAME:
                continue
            name = parser.current_name() or ""
            entry = self._lookup(name, on_deprecated)
            preferred = entry.field.name
            if preferred in seen:
                raise FieldParseError(self.context, preferred, "field is defined more than once")
            seen.add(preferred)

            parser.next_token()
            try:
                entry.setter(builder, entry.reader(parser, preferred))
            except FieldParseError:
                raise
            except (StructuralParseError, ValueError) as e:
                raise FieldParseError(self.context, preferred, str(e)) from e

        for entry in self.entries:
            if entry.required and entry.field.name not in seen:
                raise MissingFieldError(self.context, entry.field.name)
        return builder


# ============================================================================
# Readers
# ============================================================================


def read_text(parser: DocumentParser, field: str) -> str:
    """Read a string (or number) as text."""
    return parser.text()


def read_bool(parser: DocumentParser, field: str) -> bool:
    """Read a boolean value."""
    return parser.boolean_value()


def read_text_list(parser: DocumentParser, field: str) -> list[str]:
    """Read a single string or an array of strings."""
    if parser.current_token() == Token.START_ARRAY:
        values = []
        while (token := parser.next_token()) != Token.END_ARRAY:
            if token is None:
                raise StructuralParseError("unexpected end of document inside array")
            values.append(parser.text())
        return values
    return [parser.text()]


def object_reader(parse: Callable[[DocumentParser], Any]) -> Reader:
    """Build a reader for a nested object using its type's ``parse``."""

    def read(parser: DocumentParser, field: str) -> Any:
        return parse(parser)

    return read


def object_list_reader(parse: Callable[[DocumentParser], Any]) -> Reader:
    """Build a reader accepting either one nested object or an array of them."""

    def read(parser: DocumentParser, field: str) -> list[Any]:
        if parser.current_token() != Token.START_ARRAY:
            return [parse(parser)]
        items = []
        while (token := parser.next_token()) != Token.END_ARRAY:
            if token is None:
                raise StructuralParseError("unexpected end of document inside array")
            items.append(parse(parser))
        return items

    return read


def set_key(key: str) -> Setter[dict[str, Any]]:
    """Build a setter that stores the value under ``key`` in a dict target."""

    def setter(target: dict[str, Any], value: Any) -> None:
        target[key] = value

    return setter
