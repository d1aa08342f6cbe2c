"""Structured-document layer - token parsing, building and value trees."""

from watch_notifications.xcontent.document import ObjectTokenParser
from watch_notifications.xcontent.fields import (
    FieldEntry,
    ObjectParser,
    ParseField,
    set_deprecation_hook,
)
from watch_notifications.xcontent.tokens import DocumentBuilder, DocumentParser, Token
from watch_notifications.xcontent.value import (
    ArrayValue,
    ObjectValue,
    Primitive,
    StructuredValue,
    StructuredValueBuilder,
    from_python,
    parse_value,
)

__all__ = [
    "ArrayValue",
    "DocumentBuilder",
    "DocumentParser",
    "FieldEntry",
    "ObjectParser",
    "ObjectTokenParser",
    "ObjectValue",
    "ParseField",
    "Primitive",
    "StructuredValue",
    "StructuredValueBuilder",
    "Token",
    "from_python",
    "parse_value",
    "set_deprecation_hook",
]
