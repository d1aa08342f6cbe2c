"""Room notifications posted to HipChat-style rooms and users.

A ``RoomMessage`` is used both as the stored template and as the rendered
message. Targets are optional on the template because the account may
supply default rooms and users.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from watch_notifications.builders import SingleUseBuilder, optional_tuple
from watch_notifications.exceptions import ShapeValidationError
from watch_notifications.xcontent.fields import (
    DeprecationHook,
    FieldEntry,
    ObjectParser,
    ParseField,
    read_bool,
    read_text,
    read_text_list,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from watch_notifications.xcontent.tokens import DocumentBuilder, DocumentParser


class RoomColor(Enum):
    """Background color of the message in the room."""

    YELLOW = "yellow"
    GREEN = "green"
    RED = "red"
    PURPLE = "purple"
    GRAY = "gray"
    RANDOM = "random"

    @classmethod
    def resolve(cls, name: RoomColor | str) -> RoomColor:
        """Resolve a color name case-insensitively.

        Raises:
            ValueError: If the name is not a known color.
        """
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"[{name}] is not a valid room color") from None


class MessageFormat(Enum):
    """How the room renders the body."""

    TEXT = "text"
    HTML = "html"

    @classmethod
    def resolve(cls, name: MessageFormat | str) -> MessageFormat:
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"[{name}] is not a valid message format") from None


@dataclass(frozen=True)
class RoomMessage:
    """A room notification.

    Invariant: ``body`` is non-empty.
    """

    body: str
    rooms: tuple[str, ...] | None = None
    users: tuple[str, ...] | None = None
    from_: str | None = None
    format: MessageFormat | None = None
    color: RoomColor | None = None
    notify: bool | None = None

    def __post_init__(self) -> None:
        if not self.body:
            raise ShapeValidationError("room message [body] must not be empty")

    @staticmethod
    def builder(body: str | None = None) -> RoomMessageBuilder:
        builder = RoomMessageBuilder()
        if body is not None:
            builder.body(body)
        return builder

    @classmethod
    def parse(
        cls, parser: DocumentParser, on_deprecated: DeprecationHook | None = None
    ) -> RoomMessage:
        return _MESSAGE_PARSER.parse(parser, RoomMessageBuilder(), on_deprecated).build()

    def to_xcontent(self, builder: DocumentBuilder, *, include_targets: bool = True) -> None:
        builder.start_object()
        if self.from_ is not None:
            builder.field("from", self.from_)
        if include_targets:
            if self.rooms:
                builder.field("room", list(self.rooms))
            if self.users:
                builder.field("user", list(self.users))
        builder.field("body", self.body)
        if self.format is not None:
            builder.field("format", self.format.value)
        if self.color is not None:
            builder.field("color", self.color.value)
        if self.notify is not None:
            builder.field("notify", self.notify)
        builder.end_object()


class RoomMessageBuilder(SingleUseBuilder):
    """Fluent builder for ``RoomMessage``.

    ``format`` and ``color`` accept a member or its name.
    """

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._rooms: list[str] = []
        self._users: list[str] = []

    def _set(self, name: str, value: Any) -> RoomMessageBuilder:
        self._check_open()
        self._values[name] = value
        return self

    def body(self, value: str | None) -> RoomMessageBuilder:
        return self._set("body", value)

    def add_rooms(self, rooms: Iterable[str]) -> RoomMessageBuilder:
        self._check_open()
        self._rooms.extend(rooms)
        return self

    def add_users(self, users: Iterable[str]) -> RoomMessageBuilder:
        self._check_open()
        self._users.extend(users)
        return self

    def from_(self, value: str | None) -> RoomMessageBuilder:
        return self._set("from_", value)

    def format(self, value: MessageFormat | str | None) -> RoomMessageBuilder:
        return self._set("format", MessageFormat.resolve(value) if value is not None else None)

    def color(self, value: RoomColor | str | None) -> RoomMessageBuilder:
        return self._set("color", RoomColor.resolve(value) if value is not None else None)

    def notify(self, value: bool | None) -> RoomMessageBuilder:
        return self._set("notify", value)

    def build(self) -> RoomMessage:
        """Build the message.

        Raises:
            ShapeValidationError: If no body was set.
        """
        self._close()
        values = dict(self._values)
        return RoomMessage(
            body=values.pop("body", None) or "",
            rooms=optional_tuple(self._rooms),
            users=optional_tuple(self._users),
            **values,
        )


_MESSAGE_PARSER: ObjectParser[RoomMessageBuilder] = ObjectParser(
    "room message",
    [
        FieldEntry(ParseField("body"), read_text, RoomMessageBuilder.body, required=True),
        FieldEntry(ParseField("room"), read_text_list, RoomMessageBuilder.add_rooms),
        FieldEntry(ParseField("user"), read_text_list, RoomMessageBuilder.add_users),
        FieldEntry(ParseField("from"), read_text, RoomMessageBuilder.from_),
        FieldEntry(ParseField("format"), read_text, RoomMessageBuilder.format),
        FieldEntry(ParseField("color"), read_text, RoomMessageBuilder.color),
        FieldEntry(ParseField("notify"), read_bool, RoomMessageBuilder.notify),
    ],
)
