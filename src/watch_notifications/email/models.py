"""Email templates and rendered email messages."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from watch_notifications.builders import SingleUseBuilder, optional_tuple
from watch_notifications.email.address import (
    parse_structured_address,
    parse_structured_address_list,
)
from watch_notifications.exceptions import ShapeValidationError, StructuralParseError
from watch_notifications.xcontent.fields import (
    FieldEntry,
    ObjectParser,
    ParseField,
    read_bool,
    read_text,
    set_key,
)
from watch_notifications.xcontent.tokens import Token

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from watch_notifications.xcontent.tokens import DocumentBuilder, DocumentParser


class Priority(Enum):
    """Email priority, written to the ``X-Priority`` header as 1-5."""

    HIGHEST = 1
    HIGH = 2
    NORMAL = 3
    LOW = 4
    LOWEST = 5

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def resolve(cls, name: str) -> Priority:
        """Resolve a priority name case-insensitively.

        Raises:
            ValueError: If the name is not a known priority.
        """
        try:
            return cls[name.strip().upper()]
        except KeyError:
            raise ValueError(f"[{name}] is not a valid email priority") from None


@dataclass(frozen=True)
class EmailAttachment:
    """A file attached to a rendered email."""

    id: str
    content_type: str
    data: bytes
    inline: bool = False

    def to_xcontent(self, builder: DocumentBuilder, *, hide_secrets: bool = True) -> None:
        builder.start_object()
        builder.field("id", self.id)
        builder.field("content_type", self.content_type)
        builder.field("inline", self.inline)
        if not hide_secrets:
            builder.field("data", base64.b64encode(self.data).decode("ascii"))
        builder.end_object()


# ============================================================================
# EmailTemplate
# ============================================================================


@dataclass(frozen=True)
class EmailTemplate:
    """An email definition whose string fields may hold placeholders.

    Address fields hold one template string per entry; a single entry may
    render into several addresses.
    """

    from_: str | None = None
    reply_to: tuple[str, ...] | None = None
    priority: str | None = None
    to: tuple[str, ...] | None = None
    cc: tuple[str, ...] | None = None
    bcc: tuple[str, ...] | None = None
    subject: str | None = None
    text_body: str | None = None
    html_body: str | None = None

    @staticmethod
    def builder() -> EmailTemplateBuilder:
        return EmailTemplateBuilder()

    @classmethod
    def parse(cls, parser: DocumentParser) -> EmailTemplate:
        builder = _TEMPLATE_PARSER.parse(parser, EmailTemplateBuilder())
        return builder.build()

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        if self.from_ is not None:
            builder.field("from", self.from_)
        for name, values in (
            ("reply_to", self.reply_to),
            ("to", self.to),
            ("cc", self.cc),
            ("bcc", self.bcc),
        ):
            if values is not None:
                builder.field(name, list(values))
        if self.priority is not None:
            builder.field("priority", self.priority)
        if self.subject is not None:
            builder.field("subject", self.subject)
        _emit_body(builder, self.text_body, self.html_body)
        builder.end_object()


class EmailTemplateBuilder(SingleUseBuilder):
    """Fluent builder for ``EmailTemplate``."""

    def __init__(self) -> None:
        self._fields: dict[str, Any] = {}
        self._lists: dict[str, list[str]] = {"reply_to": [], "to": [], "cc": [], "bcc": []}

    def _set(self, name: str, value: Any) -> EmailTemplateBuilder:
        self._check_open()
        self._fields[name] = value
        return self

    def _add(self, name: str, values: str | Iterable[str]) -> EmailTemplateBuilder:
        self._check_open()
        self._lists[name].extend([values] if isinstance(values, str) else values)
        return self

    def from_(self, value: str) -> EmailTemplateBuilder:
        return self._set("from_", value)

    def reply_to(self, values: str | Iterable[str]) -> EmailTemplateBuilder:
        return self._add("reply_to", values)

    def priority(self, value: str | Priority) -> EmailTemplateBuilder:
        return self._set("priority", value.label if isinstance(value, Priority) else value)

    def to(self, values: str | Iterable[str]) -> EmailTemplateBuilder:
        return self._add("to", values)

    def cc(self, values: str | Iterable[str]) -> EmailTemplateBuilder:
        return self._add("cc", values)

    def bcc(self, values: str | Iterable[str]) -> EmailTemplateBuilder:
        return self._add("bcc", values)

    def subject(self, value: str) -> EmailTemplateBuilder:
        return self._set("subject", value)

    def text_body(self, value: str) -> EmailTemplateBuilder:
        return self._set("text_body", value)

    def html_body(self, value: str) -> EmailTemplateBuilder:
        return self._set("html_body", value)

    def body(self, value: tuple[str | None, str | None]) -> EmailTemplateBuilder:
        text, html = value
        if text is not None:
            self.text_body(text)
        if html is not None:
            self.html_body(html)
        return self

    def build(self) -> EmailTemplate:
        self._close()
        return EmailTemplate(
            **self._fields,
            **{name: optional_tuple(values) for name, values in self._lists.items()},
        )


def _read_address_templates(parser: DocumentParser, field: str) -> list[str]:
    """Read template address entries.

    Strings are kept verbatim (they may contain placeholders); object
    entries of the form ``{name, email}`` are validated immediately.
    """
    token = parser.current_token()
    if token == Token.VALUE_STRING:
        return [parser.text()]
    if token == Token.START_OBJECT:
        return [parse_structured_address(field, parser)]
    if token == Token.START_ARRAY:
        entries = []
        while (token := parser.next_token()) != Token.END_ARRAY:
            if token is None:
                raise StructuralParseError("unexpected end of document inside array")
            if token == Token.VALUE_STRING:
                entries.append(parser.text())
            else:
                entries.append(parse_structured_address(field, parser))
        return entries
    raise StructuralParseError(
        "address fields must be a string, an address object or an array of those"
    )


def _read_body(parser: DocumentParser, field: str) -> tuple[str | None, str | None]:
    """Read ``body`` either as a plain string (text) or as ``{text, html}``."""
    if parser.current_token() == Token.VALUE_STRING:
        return parser.text(), None
    body = _BODY_PARSER.parse(parser, {})
    return body.get("text"), body.get("html")


def _emit_body(builder: DocumentBuilder, text: str | None, html: str | None) -> None:
    if text is None and html is None:
        return
    builder.start_object("body")
    if text is not None:
        builder.field("text", text)
    if html is not None:
        builder.field("html", html)
    builder.end_object()


_BODY_PARSER: ObjectParser[dict[str, str]] = ObjectParser(
    "email body",
    [
        FieldEntry(ParseField("text"), read_text, set_key("text")),
        FieldEntry(ParseField("html"), read_text, set_key("html")),
    ],
)

_TEMPLATE_PARSER: ObjectParser[EmailTemplateBuilder] = ObjectParser(
    "email template",
    [
        FieldEntry(ParseField("from"), read_text, EmailTemplateBuilder.from_),
        FieldEntry(ParseField("reply_to"), _read_address_templates, EmailTemplateBuilder.reply_to),
        FieldEntry(ParseField("priority"), read_text, EmailTemplateBuilder.priority),
        FieldEntry(ParseField("to"), _read_address_templates, EmailTemplateBuilder.to),
        FieldEntry(ParseField("cc"), _read_address_templates, EmailTemplateBuilder.cc),
        FieldEntry(ParseField("bcc"), _read_address_templates, EmailTemplateBuilder.bcc),
        FieldEntry(ParseField("subject"), read_text, EmailTemplateBuilder.subject),
        FieldEntry(ParseField("body"), _read_body, EmailTemplateBuilder.body),
    ],
)


# ============================================================================
# Email (rendered message)
# ============================================================================


@dataclass(frozen=True)
class Email:
    """A fully rendered email.

    Invariants: ``id`` is set, ``to`` holds at least one address and
    ``subject`` is non-empty.
    """

    id: str
    to: tuple[str, ...]
    subject: str
    from_: str | None = None
    reply_to: tuple[str, ...] | None = None
    priority: Priority | None = None
    sent_date: datetime = field(default_factory=lambda: datetime.now(UTC))
    cc: tuple[str, ...] | None = None
    bcc: tuple[str, ...] | None = None
    text_body: str | None = None
    html_body: str | None = None
    attachments: Mapping[str, EmailAttachment] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ShapeValidationError("email id must not be empty")
        if not self.to:
            raise ShapeValidationError("email must have at least one [to] recipient")
        if not self.subject:
            raise ShapeValidationError("email [subject] must not be empty")
        object.__setattr__(self, "attachments", MappingProxyType(dict(self.attachments)))

    @staticmethod
    def builder() -> EmailBuilder:
        return EmailBuilder()

    @classmethod
    def parse(cls, parser: DocumentParser) -> Email:
        builder = _EMAIL_PARSER.parse(parser, EmailBuilder())
        return builder.build()

    def to_xcontent(self, builder: DocumentBuilder, *, hide_secrets: bool = True) -> None:
        builder.start_object()
        builder.field("id", self.id)
        if self.from_ is not None:
            builder.field("from", self.from_)
        if self.reply_to is not None:
            builder.field("reply_to", list(self.reply_to))
        if self.priority is not None:
            builder.field("priority", self.priority.label)
        builder.field("sent_date", self.sent_date.isoformat())
        builder.field("to", list(self.to))
        if self.cc is not None:
            builder.field("cc", list(self.cc))
        if self.bcc is not None:
            builder.field("bcc", list(self.bcc))
        builder.field("subject", self.subject)
        _emit_body(builder, self.text_body, self.html_body)
        if self.attachments:
            builder.start_array("attachments")
            for attachment in self.attachments.values():
                attachment.to_xcontent(builder, hide_secrets=hide_secrets)
            builder.end_array()
        builder.end_object()


class EmailBuilder(SingleUseBuilder):
    """Fluent builder for ``Email``.

    The builder is single-use: attaching or setting anything after
    ``build()`` raises ``ShapeValidationError``.
    """

    def __init__(self) -> None:
        self._fields: dict[str, Any] = {}
        self._attachments: dict[str, EmailAttachment] = {}

    def _set(self, name: str, value: Any) -> EmailBuilder:
        self._check_open()
        self._fields[name] = value
        return self

    @staticmethod
    def _addresses(values: str | Iterable[str] | None) -> tuple[str, ...] | None:
        if values is None:
            return None
        return optional_tuple([values] if isinstance(values, str) else list(values))

    def id(self, value: str) -> EmailBuilder:
        return self._set("id", value)

    def from_(self, value: str | None) -> EmailBuilder:
        return self._set("from_", value)

    def reply_to(self, values: str | Iterable[str] | None) -> EmailBuilder:
        return self._set("reply_to", self._addresses(values))

    def priority(self, value: Priority | str | None) -> EmailBuilder:
        if isinstance(value, str):
            value = Priority.resolve(value)
        return self._set("priority", value)

    def sent_date(self, value: datetime | str) -> EmailBuilder:
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return self._set("sent_date", value)

    def to(self, values: str | Iterable[str] | None) -> EmailBuilder:
        return self._set("to", self._addresses(values))

    def cc(self, values: str | Iterable[str] | None) -> EmailBuilder:
        return self._set("cc", self._addresses(values))

    def bcc(self, values: str | Iterable[str] | None) -> EmailBuilder:
        return self._set("bcc", self._addresses(values))

    def subject(self, value: str | None) -> EmailBuilder:
        return self._set("subject", value)

    def text_body(self, value: str | None) -> EmailBuilder:
        return self._set("text_body", value)

    def html_body(self, value: str | None) -> EmailBuilder:
        return self._set("html_body", value)

    def body(self, value: tuple[str | None, str | None]) -> EmailBuilder:
        text, html = value
        return self.text_body(text).html_body(html)

    def attach(self, attachment: EmailAttachment) -> EmailBuilder:
        self._check_open()
        self._attachments[attachment.id] = attachment
        return self

    def attach_all(self, attachments: Iterable[EmailAttachment]) -> EmailBuilder:
        for attachment in attachments:
            self.attach(attachment)
        return self

    def build(self) -> Email:
        self._close()
        fields = {key: value for key, value in self._fields.items() if value is not None}
        return Email(
            id=fields.pop("id", ""),
            to=fields.pop("to", ()),
            subject=fields.pop("subject", ""),
            attachments=dict(self._attachments),
            **fields,
        )


def _read_attachments(parser: DocumentParser, field: str) -> list[EmailAttachment]:
    """Read stored attachment metadata; attachments stored without data are empty."""
    items = []
    if parser.current_token() != Token.START_ARRAY:
        raise StructuralParseError("expected an array of attachments")
    while (token := parser.next_token()) != Token.END_ARRAY:
        if token is None:
            raise StructuralParseError("unexpected end of document inside array")
        values = _ATTACHMENT_PARSER.parse(parser, {})
        items.append(
            EmailAttachment(
                id=values["id"],
                content_type=values["content_type"],
                data=base64.b64decode(values.get("data", "")),
                inline=values.get("inline", False),
            )
        )
    return items


def _read_address(parser: DocumentParser, field: str) -> str:
    return parse_structured_address(field, parser)


def _read_address_list(parser: DocumentParser, field: str) -> list[str]:
    return parse_structured_address_list(field, parser)


_ATTACHMENT_PARSER: ObjectParser[dict[str, Any]] = ObjectParser(
    "email attachment",
    [
        FieldEntry(ParseField("id"), read_text, set_key("id"), required=True),
        FieldEntry(ParseField("content_type"), read_text, set_key("content_type"), required=True),
        FieldEntry(ParseField("inline"), read_bool, set_key("inline")),
        FieldEntry(ParseField("data"), read_text, set_key("data")),
    ],
)

_EMAIL_PARSER: ObjectParser[EmailBuilder] = ObjectParser(
    "email",
    [
        FieldEntry(ParseField("id"), read_text, EmailBuilder.id, required=True),
        FieldEntry(ParseField("from"), _read_address, EmailBuilder.from_),
        FieldEntry(ParseField("reply_to"), _read_address_list, EmailBuilder.reply_to),
        FieldEntry(ParseField("priority"), read_text, EmailBuilder.priority),
        FieldEntry(ParseField("sent_date"), read_text, EmailBuilder.sent_date),
        FieldEntry(ParseField("to"), _read_address_list, EmailBuilder.to),
        FieldEntry(ParseField("cc"), _read_address_list, EmailBuilder.cc),
        FieldEntry(ParseField("bcc"), _read_address_list, EmailBuilder.bcc),
        FieldEntry(ParseField("subject"), read_text, EmailBuilder.subject),
        FieldEntry(ParseField("body"), _read_body, EmailBuilder.body),
        FieldEntry(ParseField("attachments"), _read_attachments, EmailBuilder.attach_all),
    ],
)
