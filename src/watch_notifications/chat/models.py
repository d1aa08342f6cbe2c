"""Chat (webhook) message templates.

The same types describe both the stored template and the rendered message:
a rendered ``ChatMessage`` simply has every placeholder resolved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from watch_notifications.builders import SingleUseBuilder, optional_tuple
from watch_notifications.exceptions import ShapeValidationError
from watch_notifications.xcontent.fields import (
    FieldEntry,
    ObjectParser,
    ParseField,
    object_list_reader,
    object_reader,
    read_bool,
    read_text,
    read_text_list,
    set_key,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from watch_notifications.xcontent.tokens import DocumentBuilder, DocumentParser


# ============================================================================
# Field
# ============================================================================


@dataclass(frozen=True)
class Field:
    """A title/value pair shown in an attachment's field table."""

    title: str
    value: str
    short: bool | None = None

    @classmethod
    def parse(cls, parser: DocumentParser) -> Field:
        return cls(**_FIELD_PARSER.parse(parser, {}))

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        builder.field("title", self.title)
        builder.field("value", self.value)
        if self.short is not None:
            builder.field("short", self.short)
        builder.end_object()


_FIELD_PARSER: ObjectParser[dict[str, Any]] = ObjectParser(
    "message attachment field",
    [
        FieldEntry(ParseField("title"), read_text, set_key("title"), required=True),
        FieldEntry(ParseField("value"), read_text, set_key("value"), required=True),
        FieldEntry(ParseField("short"), read_bool, set_key("short")),
    ],
)


# ============================================================================
# Action
# ============================================================================


@dataclass(frozen=True)
class Action:
    """An interactive button attached to a message."""

    style: str | None = None
    name: str | None = None
    type: str | None = None
    text: str | None = None
    url: str | None = None

    @classmethod
    def parse(cls, parser: DocumentParser) -> Action:
        return cls(**_ACTION_PARSER.parse(parser, {}))

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        for name in ("name", "style", "type", "text", "url"):
            value = getattr(self, name)
            if value is not None:
                builder.field(name, value)
        builder.end_object()


_ACTION_PARSER: ObjectParser[dict[str, Any]] = ObjectParser(
    "message attachment action",
    [FieldEntry(ParseField(name), read_text, set_key(name)) for name in Action.__dataclass_fields__],
)


# ============================================================================
# Attachment
# ============================================================================


@dataclass(frozen=True)
class Author:
    """Attachment author line."""

    name: str | None = None
    link: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class Attachment:
    """A rich attachment on a chat message."""

    fallback: str | None = None
    color: str | None = None
    pretext: str | None = None
    author: Author | None = None
    title: str | None = None
    title_link: str | None = None
    text: str | None = None
    fields: tuple[Field, ...] | None = None
    image_url: str | None = None
    thumb_url: str | None = None
    markdown_fields: tuple[str, ...] | None = None
    actions: tuple[Action, ...] | None = None

    @staticmethod
    def builder() -> AttachmentBuilder:
        return AttachmentBuilder()

    @classmethod
    def parse(cls, parser: DocumentParser) -> Attachment:
        return _ATTACHMENT_PARSER.parse(parser, AttachmentBuilder()).build()

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        for name in ("fallback", "color", "pretext"):
            value = getattr(self, name)
            if value is not None:
                builder.field(name, value)
        if self.author is not None:
            for name in ("name", "link", "icon"):
                value = getattr(self.author, name)
                if value is not None:
                    builder.field(f"author_{name}", value)
        for name in ("title", "title_link", "text"):
            value = getattr(self, name)
            if value is not None:
                builder.field(name, value)
        if self.fields is not None:
            builder.start_array("fields")
            for item in self.fields:
                item.to_xcontent(builder)
            builder.end_array()
        for name in ("image_url", "thumb_url"):
            value = getattr(self, name)
            if value is not None:
                builder.field(name, value)
        if self.markdown_fields is not None:
            builder.field("mrkdwn_in", list(self.markdown_fields))
        if self.actions is not None:
            builder.start_array("actions")
            for action in self.actions:
                action.to_xcontent(builder)
            builder.end_array()
        builder.end_object()


class AttachmentBuilder(SingleUseBuilder):
    """Fluent builder for ``Attachment``."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._author: dict[str, str] = {}
        self._fields: list[Field] = []
        self._markdown_fields: list[str] = []
        self._actions: list[Action] = []

    def _set(self, name: str, value: Any) -> AttachmentBuilder:
        self._check_open()
        self._values[name] = value
        return self

    def _set_author(self, name: str, value: str) -> AttachmentBuilder:
        self._check_open()
        self._author[name] = value
        return self

    def fallback(self, value: str) -> AttachmentBuilder:
        return self._set("fallback", value)

    def color(self, value: str) -> AttachmentBuilder:
        return self._set("color", value)

    def pretext(self, value: str) -> AttachmentBuilder:
        return self._set("pretext", value)

    def author_name(self, value: str) -> AttachmentBuilder:
        return self._set_author("name", value)

    def author_link(self, value: str) -> AttachmentBuilder:
        return self._set_author("link", value)

    def author_icon(self, value: str) -> AttachmentBuilder:
        return self._set_author("icon", value)

    def title(self, value: str) -> AttachmentBuilder:
        return self._set("title", value)

    def title_link(self, value: str) -> AttachmentBuilder:
        return self._set("title_link", value)

    def text(self, value: str) -> AttachmentBuilder:
        return self._set("text", value)

    def add_fields(self, fields: Iterable[Field]) -> AttachmentBuilder:
        self._check_open()
        self._fields.extend(fields)
        return self

    def add_field(self, title: str, value: str, short: bool | None = None) -> AttachmentBuilder:
        return self.add_fields([Field(title, value, short)])

    def image_url(self, value: str) -> AttachmentBuilder:
        return self._set("image_url", value)

    def thumb_url(self, value: str) -> AttachmentBuilder:
        return self._set("thumb_url", value)

    def markdown_fields(self, names: Iterable[str]) -> AttachmentBuilder:
        self._check_open()
        self._markdown_fields.extend(names)
        return self

    def add_actions(self, actions: Iterable[Action]) -> AttachmentBuilder:
        self._check_open()
        self._actions.extend(actions)
        return self

    def build(self) -> Attachment:
        self._close()
        return Attachment(
            author=Author(**self._author) if self._author else None,
            fields=optional_tuple(self._fields),
            markdown_fields=optional_tuple(self._markdown_fields),
            actions=optional_tuple(self._actions),
            **self._values,
        )


_ATTACHMENT_PARSER: ObjectParser[AttachmentBuilder] = ObjectParser(
    "message attachment",
    [
        FieldEntry(ParseField("fallback"), read_text, AttachmentBuilder.fallback),
        FieldEntry(ParseField("color"), read_text, AttachmentBuilder.color),
        FieldEntry(ParseField("pretext"), read_text, AttachmentBuilder.pretext),
        FieldEntry(ParseField("author_name"), read_text, AttachmentBuilder.author_name),
        FieldEntry(ParseField("author_link"), read_text, AttachmentBuilder.author_link),
        FieldEntry(ParseField("author_icon"), read_text, AttachmentBuilder.author_icon),
        FieldEntry(ParseField("title"), read_text, AttachmentBuilder.title),
        FieldEntry(ParseField("title_link"), read_text, AttachmentBuilder.title_link),
        FieldEntry(ParseField("text"), read_text, AttachmentBuilder.text),
        FieldEntry(ParseField("fields"), object_list_reader(Field.parse), AttachmentBuilder.add_fields),
        FieldEntry(ParseField("image_url"), read_text, AttachmentBuilder.image_url),
        FieldEntry(ParseField("thumb_url"), read_text, AttachmentBuilder.thumb_url),
        FieldEntry(ParseField("mrkdwn_in"), read_text_list, AttachmentBuilder.markdown_fields),
        FieldEntry(ParseField("actions"), object_list_reader(Action.parse), AttachmentBuilder.add_actions),
    ],
)


# ============================================================================
# DynamicAttachments
# ============================================================================


@dataclass(frozen=True)
class DynamicAttachments:
    """Attachments generated from a list in the runtime model.

    At render time the value at ``list_path`` (a dotted path into the model)
    must be a list; ``attachment_template`` is rendered once per element with
    the element exposed to the template as ``_source``.
    """

    list_path: str
    attachment_template: Attachment

    @classmethod
    def parse(cls, parser: DocumentParser) -> DynamicAttachments:
        return cls(**_DYNAMIC_PARSER.parse(parser, {}))

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        builder.field("list_path", self.list_path)
        builder.field_name("attachment_template")
        self.attachment_template.to_xcontent(builder)
        builder.end_object()


_DYNAMIC_PARSER: ObjectParser[dict[str, Any]] = ObjectParser(
    "dynamic attachments",
    [
        FieldEntry(ParseField("list_path"), read_text, set_key("list_path"), required=True),
        FieldEntry(
            ParseField("attachment_template"),
            object_reader(Attachment.parse),
            set_key("attachment_template"),
            required=True,
        ),
    ],
)


# ============================================================================
# ChatMessage
# ============================================================================


@dataclass(frozen=True)
class ChatMessage:
    """A chat-room message.

    At least one of ``text`` or ``attachments`` must be set; this holds for
    templates and rendered messages alike.
    """

    from_: str | None = None
    to: tuple[str, ...] | None = None
    icon: str | None = None
    text: str | None = None
    attachments: tuple[Attachment, ...] | None = None
    dynamic_attachments: DynamicAttachments | None = None

    def __post_init__(self) -> None:
        if self.text is None and not self.attachments:
            raise ShapeValidationError("Both text and attachments cannot be null.")

    @staticmethod
    def builder() -> ChatMessageBuilder:
        return ChatMessageBuilder()

    @classmethod
    def parse(cls, parser: DocumentParser) -> ChatMessage:
        return _MESSAGE_PARSER.parse(parser, ChatMessageBuilder()).build()

    def to_xcontent(self, builder: DocumentBuilder, *, include_targets: bool = True) -> None:
        builder.start_object()
        if self.from_ is not None:
            builder.field("from", self.from_)
        if include_targets and self.to is not None:
            builder.field("to", list(self.to))
        if self.icon is not None:
            builder.field("icon", self.icon)
        if self.text is not None:
            builder.field("text", self.text)
        if self.attachments is not None:
            builder.start_array("attachments")
            for attachment in self.attachments:
                attachment.to_xcontent(builder)
            builder.end_array()
        if self.dynamic_attachments is not None:
            builder.field_name("dynamic_attachments")
            self.dynamic_attachments.to_xcontent(builder)
        builder.end_object()


class ChatMessageBuilder(SingleUseBuilder):
    """Fluent builder for ``ChatMessage``."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._to: list[str] = []
        self._attachments: list[Attachment] = []

    def _set(self, name: str, value: Any) -> ChatMessageBuilder:
        self._check_open()
        self._values[name] = value
        return self

    def from_(self, value: str | None) -> ChatMessageBuilder:
        return self._set("from_", value)

    def to(self, recipients: str | Iterable[str]) -> ChatMessageBuilder:
        self._check_open()
        self._to.extend([recipients] if isinstance(recipients, str) else recipients)
        return self

    def icon(self, value: str | None) -> ChatMessageBuilder:
        return self._set("icon", value)

    def text(self, value: str | None) -> ChatMessageBuilder:
        return self._set("text", value)

    def add_attachments(self, attachments: Iterable[Attachment | AttachmentBuilder]) -> ChatMessageBuilder:
        self._check_open()
        for attachment in attachments:
            if isinstance(attachment, AttachmentBuilder):
                attachment = attachment.build()
            self._attachments.append(attachment)
        return self

    def dynamic_attachments(self, value: DynamicAttachments | None) -> ChatMessageBuilder:
        return self._set("dynamic_attachments", value)

    def build(self) -> ChatMessage:
        """Build the message.

        Raises:
            ShapeValidationError: If neither text nor attachments were set.
        """
        self._close()
        return ChatMessage(
            to=optional_tuple(self._to),
            attachments=optional_tuple(self._attachments),
            **self._values,
        )


_MESSAGE_PARSER: ObjectParser[ChatMessageBuilder] = ObjectParser(
    "chat message",
    [
        FieldEntry(ParseField("from"), read_text, ChatMessageBuilder.from_),
        FieldEntry(ParseField("to"), read_text_list, ChatMessageBuilder.to),
        FieldEntry(ParseField("icon"), read_text, ChatMessageBuilder.icon),
        FieldEntry(ParseField("text"), read_text, ChatMessageBuilder.text),
        FieldEntry(
            ParseField("attachments"),
            object_list_reader(Attachment.parse),
            ChatMessageBuilder.add_attachments,
        ),
        FieldEntry(
            ParseField("dynamic_attachments"),
            object_reader(DynamicAttachments.parse),
            ChatMessageBuilder.dynamic_attachments,
        ),
    ],
)
