"""Token parser over plain Python documents (as produced by ``json.loads``)."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any

from watch_notifications.exceptions import StructuralParseError
from watch_notifications.xcontent.tokens import Token


def _tokenize(document: Any, name: str | None = None) -> Iterator[tuple[Token, str | None, Any]]:
    """Flatten a document into (token, field name, value) triples."""
    if isinstance(document, Mapping):
        yield Token.START_OBJECT, name, None
        for key, value in document.items():
            yield Token.FIELD_NAME, str(key), None
            yield from _tokenize(value, str(key))
        yield Token.END_OBJECT, name, None
    elif isinstance(document, (list, tuple)):
        yield Token.START_ARRAY, name, None
        for item in document:
            yield from _tokenize(item, name)
        yield Token.END_ARRAY, name, None
    elif document is None:
        yield Token.VALUE_NULL, name, None
    elif isinstance(document, bool):
        yield Token.VALUE_BOOLEAN, name, document
    elif isinstance(document, (int, float)):
        yield Token.VALUE_NUMBER, name, document
    elif isinstance(document, str):
        yield Token.VALUE_STRING, name, document
    else:
        raise StructuralParseError(
            f"unsupported document value of type [{type(document).__name__}]"
        )


class ObjectTokenParser:
    """DocumentParser implementation backed by an in-memory document.

    The parser starts positioned before the first token, so the first call
    to ``next_token`` returns the token for the document root.
    """

    def __init__(self, document: Any) -> None:
        self._tokens = list(_tokenize(document))
        self._index = -1

    @classmethod
    def from_json(cls, text: str) -> ObjectTokenParser:
        """Create a parser over a JSON string."""
        try:
            return cls(json.loads(text))
        except json.JSONDecodeError as e:
            raise StructuralParseError(f"malformed JSON document: {e}") from e

    def next_token(self) -> Token | None:
        if self._index < len(self._tokens):
            self._index += 1
        return self.current_token()

    def current_token(self) -> Token | None:
        if 0 <= self._index < len(self._tokens):
            return self._tokens[self._index][0]
        return None

    def current_name(self) -> str | None:
        if 0 <= self._index < len(self._tokens):
            return self._tokens[self._index][1]
        return None

    def text(self) -> str:
        token = self.current_token()
        if token == Token.VALUE_STRING:
            return str(self._tokens[self._index][2])
        if token == Token.VALUE_NUMBER:
            return str(self._tokens[self._index][2])
        raise StructuralParseError(f"expected a text value but found [{_describe(token)}]")

    def boolean_value(self) -> bool:
        token = self.current_token()
        if token != Token.VALUE_BOOLEAN:
            raise StructuralParseError(
                f"expected a boolean value but found [{_describe(token)}]"
            )
        return bool(self._tokens[self._index][2])

    def value(self) -> Any:
        token = self.current_token()
        if token is None or not token.is_value:
            raise StructuralParseError(f"expected a value but found [{_describe(token)}]")
        return self._tokens[self._index][2]

    def skip_children(self) -> None:
        token = self.current_token()
        if token not in (Token.START_OBJECT, Token.START_ARRAY):
            return
        depth = 0
        while True:
            if token in (Token.START_OBJECT, Token.START_ARRAY):
                depth += 1
            elif token in (Token.END_OBJECT, Token.END_ARRAY):
                depth -= 1
                if depth == 0:
                    return
            token = self.next_token()
            if token is None:
                raise StructuralParseError("unexpected end of document")


def _describe(token: Token | None) -> str:
    return "END_OF_DOCUMENT" if token is None else token.name
