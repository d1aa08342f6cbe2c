"""Account-level default values and the field fallback rules.

Every channel has a frozen record of fallback values, loaded once from
account configuration. Rendering asks for a field by channel and dotted
path; an explicit (rendered) value always wins over the configured default.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from watch_notifications.email.address import (
    parse_address_list_setting,
    parse_address_setting,
)
from watch_notifications.email.models import Priority
from watch_notifications.room.models import MessageFormat, RoomColor

logger = logging.getLogger(__name__)

T = TypeVar("T")


def resolve_field(explicit: T | None, default: T | None) -> T | None:
    """Return ``explicit`` unless it is None, else ``default``."""
    return explicit if explicit is not None else default


def resolve_identity(explicit: T | None, default: T | None, identity: T) -> T:
    """Three-level fallback: explicit value, then default, then ``identity``."""
    if explicit is not None:
        return explicit
    if default is not None:
        return default
    return identity


class Channel(str, Enum):
    """Notification channels with their own defaults section."""

    EMAIL = "email"
    CHAT = "chat"
    INCIDENT = "incident"
    ROOM = "room"


# ============================================================================
# Per-channel default records
# ============================================================================


@dataclass(frozen=True)
class EmailDefaults:
    from_: str | None = None
    reply_to: tuple[str, ...] | None = None
    priority: Priority | None = None
    to: tuple[str, ...] | None = None
    cc: tuple[str, ...] | None = None
    bcc: tuple[str, ...] | None = None
    subject: str | None = None


@dataclass(frozen=True)
class FieldDefaults:
    title: str | None = None
    value: str | None = None
    short: bool | None = None


@dataclass(frozen=True)
class AttachmentDefaults:
    fallback: str | None = None
    color: str | None = None
    pretext: str | None = None
    author_name: str | None = None
    author_link: str | None = None
    author_icon: str | None = None
    title: str | None = None
    title_link: str | None = None
    text: str | None = None
    image_url: str | None = None
    thumb_url: str | None = None
    markdown_fields: tuple[str, ...] | None = None
    field: FieldDefaults = field(default_factory=FieldDefaults)


@dataclass(frozen=True)
class ChatMessageDefaults:
    from_: str | None = None
    to: tuple[str, ...] | None = None
    icon: str | None = None
    text: str | None = None
    attachment: AttachmentDefaults = field(default_factory=AttachmentDefaults)


@dataclass(frozen=True)
class LinkDefaults:
    href: str | None = None
    text: str | None = None


@dataclass(frozen=True)
class ImageDefaults:
    src: str | None = None
    href: str | None = None
    alt: str | None = None


@dataclass(frozen=True)
class IncidentEventDefaults:
    description: str | None = None
    incident_key: str | None = None
    client: str | None = None
    client_url: str | None = None
    event_type: str | None = None
    attach_payload: bool | None = None
    link: LinkDefaults = field(default_factory=LinkDefaults)
    image: ImageDefaults = field(default_factory=ImageDefaults)


@dataclass(frozen=True)
class RoomMessageDefaults:
    room: tuple[str, ...] | None = None
    user: tuple[str, ...] | None = None
    from_: str | None = None
    format: MessageFormat | None = None
    color: RoomColor | None = None
    notify: bool | None = None


# ============================================================================
# Bundle loading
# ============================================================================


def _section(settings: Mapping[str, Any] | None, key: str) -> Mapping[str, Any]:
    if settings is None:
        return {}
    value = settings.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"setting [{key}] must be an object")
    return value


def _text_list(value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        items = [item.strip() for item in value.split(",")]
    else:
        items = [str(item).strip() for item in value]
    return tuple(item for item in items if item) or None


def _addresses(value: Any) -> tuple[str, ...] | None:
    addresses = parse_address_list_setting(value)
    return tuple(addresses) if addresses else None


def _flag(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    raise ValueError(f"[{value}] is not a valid boolean")


def _email_defaults(settings: Mapping[str, Any]) -> EmailDefaults:
    priority = settings.get("priority")
    return EmailDefaults(
        from_=parse_address_setting(settings.get("from")),
        reply_to=_addresses(settings.get("reply_to")),
        priority=Priority.resolve(priority) if priority is not None else None,
        to=_addresses(settings.get("to")),
        cc=_addresses(settings.get("cc")),
        bcc=_addresses(settings.get("bcc")),
        subject=settings.get("subject"),
    )


def _attachment_defaults(settings: Mapping[str, Any]) -> AttachmentDefaults:
    field_settings = _section(settings, "field")
    return AttachmentDefaults(
        fallback=settings.get("fallback"),
        color=settings.get("color"),
        pretext=settings.get("pretext"),
        author_name=settings.get("author_name"),
        author_link=settings.get("author_link"),
        author_icon=settings.get("author_icon"),
        title=settings.get("title"),
        title_link=settings.get("title_link"),
        text=settings.get("text"),
        image_url=settings.get("image_url"),
        thumb_url=settings.get("thumb_url"),
        markdown_fields=_text_list(settings.get("mrkdwn_in")),
        field=FieldDefaults(
            title=field_settings.get("title"),
            value=field_settings.get("value"),
            short=_flag(field_settings.get("short")),
        ),
    )


def _chat_defaults(settings: Mapping[str, Any]) -> ChatMessageDefaults:
    return ChatMessageDefaults(
        from_=settings.get("from"),
        to=_text_list(settings.get("to")),
        icon=settings.get("icon"),
        text=settings.get("text"),
        attachment=_attachment_defaults(_section(settings, "attachment")),
    )


def _incident_defaults(settings: Mapping[str, Any]) -> IncidentEventDefaults:
    link = _section(settings, "link")
    image = _section(settings, "image")
    return IncidentEventDefaults(
        description=settings.get("description"),
        incident_key=settings.get("incident_key"),
        client=settings.get("client"),
        client_url=settings.get("client_url"),
        event_type=settings.get("event_type"),
        attach_payload=_flag(settings.get("attach_payload")),
        link=LinkDefaults(href=link.get("href"), text=link.get("text")),
        image=ImageDefaults(src=image.get("src"), href=image.get("href"), alt=image.get("alt")),
    )


def _room_defaults(settings: Mapping[str, Any]) -> RoomMessageDefaults:
    message_format = settings.get("format")
    color = settings.get("color")
    return RoomMessageDefaults(
        room=_text_list(settings.get("room")),
        user=_text_list(settings.get("user")),
        from_=settings.get("from"),
        format=MessageFormat.resolve(message_format) if message_format is not None else None,
        color=RoomColor.resolve(color) if color is not None else None,
        notify=_flag(settings.get("notify")),
    )


@dataclass(frozen=True)
class DefaultsBundle:
    """Fallback values for every channel of one account."""

    email: EmailDefaults = field(default_factory=EmailDefaults)
    chat: ChatMessageDefaults = field(default_factory=ChatMessageDefaults)
    incident: IncidentEventDefaults = field(default_factory=IncidentEventDefaults)
    room: RoomMessageDefaults = field(default_factory=RoomMessageDefaults)

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any] | None) -> DefaultsBundle:
        """Build a bundle from an account settings mapping.

        Expected layout (every key optional)::

            {
                "email": {"email_defaults": {"from": ..., "to": ..., ...}},
                "chat": {"message_defaults": {"from": ..., "attachment": {
                    "color": ..., "field": {"short": ...}}}},
                "incident": {"event_defaults": {"client": ..., "link": {...},
                    "image": {...}}},
                "room": {"message_defaults": {"room": ..., "user": ..., "color": ...}},
            }

        Raises:
            ValueError: If a configured value is malformed (for example an
                invalid email address).
        """
        bundle = cls(
            email=_email_defaults(_section(_section(settings, "email"), "email_defaults")),
            chat=_chat_defaults(_section(_section(settings, "chat"), "message_defaults")),
            incident=_incident_defaults(
                _section(_section(settings, "incident"), "event_defaults")
            ),
            room=_room_defaults(_section(_section(settings, "room"), "message_defaults")),
        )
        logger.debug("Loaded notification defaults bundle")
        return bundle

    def for_channel(self, channel: Channel | str) -> Any:
        return getattr(self, Channel(channel).value)


# ============================================================================
# Resolver
# ============================================================================


def _attribute_name(segment: str) -> str:
    # "from" is a keyword, stored as from_
    return "from_" if segment == "from" else segment


class DefaultsResolver:
    """Field-level fallback lookups over a ``DefaultsBundle``.

    Paths are dotted and use wire names, e.g. ``"from"``,
    ``"attachment.color"`` or ``"attachment.field.short"`` for chat and
    ``"link.href"`` for incidents.
    """

    def __init__(self, bundle: DefaultsBundle | None = None) -> None:
        self.bundle = bundle or DefaultsBundle()

    def default(self, channel: Channel | str, path: str) -> Any:
        """Return the configured default at ``path``.

        Raises:
            KeyError: If ``path`` does not name a default for the channel.
        """
        current: Any = self.bundle.for_channel(channel)
        for segment in path.split("."):
            name = _attribute_name(segment)
            if not dataclasses.is_dataclass(current) or name not in {
                f.name for f in dataclasses.fields(current)
            }:
                raise KeyError(f"unknown default [{path}] for channel [{Channel(channel).value}]")
            current = getattr(current, name)
        return current

    def resolve_field(self, channel: Channel | str, path: str, explicit: Any) -> Any:
        """Return ``explicit`` if set, else the default at ``path``, else None."""
        return resolve_field(explicit, self.default(channel, path))
