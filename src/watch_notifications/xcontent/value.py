"""Minimal recursive value tree used as a generic structured payload.

A ``StructuredValue`` is one of three variants:

- ``Primitive``: a string, number, boolean or null
- ``ArrayValue``: an ordered sequence of values
- ``ObjectValue``: a mapping of field names to values

Values are parsed from a ``DocumentParser`` token stream and emitted to a
``DocumentBuilder``. The two operations mirror each other exactly, so
``parse_value(emit(x)) == x`` for every value.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias

from watch_notifications.exceptions import StructuralParseError
from watch_notifications.xcontent.tokens import Token

if TYPE_CHECKING:
    from watch_notifications.xcontent.tokens import DocumentBuilder, DocumentParser

Scalar: TypeAlias = str | int | float | bool | None


@dataclass(frozen=True, eq=False)
class Primitive:
    """A scalar leaf value.

    Equality compares the value type as well, so ``Primitive(True)``,
    ``Primitive(1)`` and ``Primitive(1.0)`` are all distinct.
    """

    value: Scalar

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Primitive):
            return NotImplemented
        return type(self.value) is type(other.value) and self.value == other.value

    def __hash__(self) -> int:
        return hash((type(self.value), self.value))

    def emit(self, builder: DocumentBuilder) -> None:
        builder.value(self.value)

    def to_python(self) -> Scalar:
        return self.value


@dataclass(frozen=True)
class ArrayValue:
    """An ordered list of values."""

    items: tuple[StructuredValue, ...] = ()

    @classmethod
    def parse(cls, parser: DocumentParser) -> ArrayValue:
        """Parse an array starting at the current ``START_ARRAY`` token."""
        if parser.current_token() is None:
            parser.next_token()
        if parser.current_token() != Token.START_ARRAY:
            raise StructuralParseError("nested array did not begin with START_ARRAY")
        items = []
        while (token := parser.next_token()) != Token.END_ARRAY:
            if token is None:
                raise StructuralParseError("unexpected end of document inside array")
            items.append(parse_value(parser))
        return cls(tuple(items))

    def emit(self, builder: DocumentBuilder) -> None:
        builder.start_array()
        for item in self.items:
            item.emit(builder)
        builder.end_array()

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class ObjectValue:
    """A mapping of field names to values.

    Field order is preserved for emission; equality ignores order. The
    fields are exposed as a read-only mapping.
    """

    fields: Mapping[str, StructuredValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def parse(cls, parser: DocumentParser) -> ObjectValue:
        """Parse an object at the current token, or at the stream start."""
        if parser.current_token() is None:
            if parser.next_token() != Token.START_OBJECT:
                raise StructuralParseError("document did not begin with START_OBJECT")
        elif parser.current_token() != Token.START_OBJECT:
            raise StructuralParseError("nested object did not begin with START_OBJECT")
        fields: dict[str, StructuredValue] = {}
        while (token := parser.next_token()) != Token.END_OBJECT:
            if token is None:
                raise StructuralParseError("unexpected end of document inside object")
            if token == Token.FIELD_NAME:
                name = parser.current_name()
                if name is None:
                    raise StructuralParseError("field name token carried no name")
                parser.next_token()
                fields[name] = parse_value(parser)
        return cls(fields)

    def get(self, name: str) -> StructuredValue | None:
        return self.fields.get(name)

    def emit(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        for name, value in self.fields.items():
            builder.field_name(name)
            value.emit(builder)
        builder.end_object()

    def to_python(self) -> dict[str, Any]:
        return {name: value.to_python() for name, value in self.fields.items()}


StructuredValue: TypeAlias = Primitive | ArrayValue | ObjectValue


def parse_value(parser: DocumentParser) -> StructuredValue:
    """Parse whatever value starts at the parser's current token."""
    if parser.current_token() is None:
        parser.next_token()
    token = parser.current_token()
    if token == Token.START_OBJECT:
        return ObjectValue.parse(parser)
    if token == Token.START_ARRAY:
        return ArrayValue.parse(parser)
    if token is not None and token.is_value:
        return Primitive(parser.value())
    raise StructuralParseError(f"could not parse entity starting at [{token}]")


def from_python(data: Any) -> StructuredValue:
    """Convert plain Python data (dicts, lists, scalars) to a value tree."""
    if isinstance(data, Mapping):
        return ObjectValue({str(k): from_python(v) for k, v in data.items()})
    if isinstance(data, (list, tuple)):
        return ArrayValue(tuple(from_python(item) for item in data))
    if data is None or isinstance(data, (str, bool, int, float)):
        return Primitive(data)
    # Anything else (dates, decimals, enums) is carried as its text form
    return Primitive(str(data))


class StructuredValueBuilder:
    """DocumentBuilder that assembles a ``StructuredValue`` tree."""

    def __init__(self) -> None:
        # Each frame is [container, pending field name]
        self._stack: list[list[Any]] = []
        self._root: StructuredValue | None = None
        self._pending_name: str | None = None

    def _add(self, value: StructuredValue) -> None:
        if not self._stack:
            if self._root is not None:
                raise StructuralParseError("document already has a root value")
            self._root = value
            return
        container = self._stack[-1][0]
        if isinstance(container, dict):
            name = self._pending_name
            if name is None:
                raise StructuralParseError("object value written without a field name")
            container[name] = value
            self._pending_name = None
        else:
            container.append(value)

    def _open(self, container: Any, name: str | None) -> StructuredValueBuilder:
        if name is not None:
            self.field_name(name)
        self._stack.append([container, self._pending_name])
        self._pending_name = None
        return self

    def _close(self, expected: type) -> Any:
        if not self._stack or not isinstance(self._stack[-1][0], expected):
            raise StructuralParseError(f"unbalanced end of {expected.__name__}")
        container, pending = self._stack.pop()
        self._pending_name = pending
        return container

    def start_object(self, name: str | None = None) -> StructuredValueBuilder:
        return self._open({}, name)

    def end_object(self) -> StructuredValueBuilder:
        self._add(ObjectValue(self._close(dict)))
        return self

    def start_array(self, name: str | None = None) -> StructuredValueBuilder:
        return self._open([], name)

    def end_array(self) -> StructuredValueBuilder:
        self._add(ArrayValue(tuple(self._close(list))))
        return self

    def field_name(self, name: str) -> StructuredValueBuilder:
        if not self._stack or not isinstance(self._stack[-1][0], dict):
            raise StructuralParseError(f"field [{name}] written outside of an object")
        self._pending_name = name
        return self

    def field(self, name: str, value: Any) -> StructuredValueBuilder:
        self.field_name(name)
        return self.value(value)

    def value(self, value: Any) -> StructuredValueBuilder:
        if isinstance(value, (Primitive, ArrayValue, ObjectValue)):
            self._add(value)
        else:
            self._add(from_python(value))
        return self

    def build(self) -> StructuredValue:
        """Return the finished tree."""
        if self._stack or self._root is None:
            raise StructuralParseError("document is incomplete")
        return self._root
