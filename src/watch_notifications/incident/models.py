"""Incident trigger events and their context objects.

An ``IncidentEvent`` is used both as the stored template and as the rendered
event. Contexts are a closed set of two variants, ``LinkContext`` and
``ImageContext``, each with its own required and forbidden fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeAlias

from watch_notifications.builders import SingleUseBuilder, optional_tuple
from watch_notifications.exceptions import ShapeValidationError, StructuralParseError
from watch_notifications.xcontent.fields import (
    DeprecationHook,
    FieldEntry,
    ObjectParser,
    ParseField,
    object_list_reader,
    read_bool,
    read_text,
    set_key,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from watch_notifications.xcontent.tokens import DocumentBuilder, DocumentParser

DEFAULT_EVENT_TYPE = "trigger"


class ContextType(Enum):
    """Context variant tag, written lowercase on the wire."""

    LINK = "link"
    IMAGE = "image"


@dataclass(frozen=True)
class LinkContext:
    """A hyperlink shown with the incident."""

    href: str
    text: str | None = None

    type = ContextType.LINK

    def __post_init__(self) -> None:
        if not self.href:
            raise ShapeValidationError("missing required field [href] for [link] context")

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        builder.field("type", self.type.value)
        builder.field("href", self.href)
        if self.text is not None:
            builder.field("text", self.text)
        builder.end_object()


@dataclass(frozen=True)
class ImageContext:
    """An image shown with the incident, optionally linked."""

    src: str
    href: str | None = None
    alt: str | None = None

    type = ContextType.IMAGE

    def __post_init__(self) -> None:
        if not self.src:
            raise ShapeValidationError("missing required field [src] for [image] context")

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        builder.field("type", self.type.value)
        builder.field("src", self.src)
        if self.href is not None:
            builder.field("href", self.href)
        if self.alt is not None:
            builder.field("alt", self.alt)
        builder.end_object()


IncidentContext: TypeAlias = LinkContext | ImageContext


def build_context(
    type: ContextType | str,
    *,
    href: str | None = None,
    text: str | None = None,
    src: str | None = None,
    alt: str | None = None,
) -> IncidentContext:
    """Create a context, enforcing the field set of its tag.

    A ``link`` context requires ``href`` and forbids ``src`` and ``alt``.
    An ``image`` context requires ``src`` and forbids ``text``.

    Raises:
        ShapeValidationError: If a required field is missing or a forbidden
            one is set.
    """
    if isinstance(type, str):
        try:
            type = ContextType(type.lower())
        except ValueError:
            raise ShapeValidationError(f"unknown context type [{type}]") from None

    match type:
        case ContextType.LINK:
            for name, value in (("src", src), ("alt", alt)):
                if value is not None:
                    raise ShapeValidationError(f"unexpected field [{name}] for [link] context")
            if href is None:
                raise ShapeValidationError("missing required field [href] for [link] context")
            return LinkContext(href=href, text=text)
        case ContextType.IMAGE:
            if text is not None:
                raise ShapeValidationError("unexpected field [text] for [image] context")
            if src is None:
                raise ShapeValidationError("missing required field [src] for [image] context")
            return ImageContext(src=src, href=href, alt=alt)


_CONTEXT_PARSER: ObjectParser[dict[str, Any]] = ObjectParser(
    "incident event context",
    [
        FieldEntry(ParseField("type"), read_text, set_key("type"), required=True),
        FieldEntry(ParseField("href"), read_text, set_key("href")),
        FieldEntry(ParseField("text"), read_text, set_key("text")),
        FieldEntry(ParseField("src"), read_text, set_key("src")),
        FieldEntry(ParseField("alt"), read_text, set_key("alt")),
    ],
)


def parse_context(parser: DocumentParser) -> IncidentContext:
    values = _CONTEXT_PARSER.parse(parser, {})
    try:
        return build_context(values.pop("type"), **values)
    except ShapeValidationError as e:
        raise StructuralParseError(f"could not parse incident event context. {e}") from e


# ============================================================================
# IncidentEvent
# ============================================================================


@dataclass(frozen=True)
class IncidentEvent:
    """An incident trigger event.

    ``description`` is mandatory. ``event_type`` is left unset on templates
    that do not name one; rendering resolves it to ``"trigger"``.
    """

    description: str
    event_type: str | None = None
    incident_key: str | None = None
    client: str | None = None
    client_url: str | None = None
    account: str | None = None
    attach_payload: bool | None = None
    contexts: tuple[IncidentContext, ...] | None = None

    def __post_init__(self) -> None:
        if not self.description:
            raise ShapeValidationError("incident event [description] must not be empty")

    @staticmethod
    def builder(description: str | None = None) -> IncidentEventBuilder:
        builder = IncidentEventBuilder()
        if description is not None:
            builder.description(description)
        return builder

    @classmethod
    def parse(
        cls, parser: DocumentParser, on_deprecated: DeprecationHook | None = None
    ) -> IncidentEvent:
        """Parse an event document.

        ``context`` is accepted as a deprecated alias for ``contexts``; each
        use calls ``on_deprecated`` (or the process-wide hook).
        """
        return _EVENT_PARSER.parse(parser, IncidentEventBuilder(), on_deprecated).build()

    def to_xcontent(self, builder: DocumentBuilder) -> None:
        builder.start_object()
        builder.field("description", self.description)
        for name in ("event_type", "incident_key", "client", "client_url", "account"):
            value = getattr(self, name)
            if value is not None:
                builder.field(name, value)
        if self.attach_payload is not None:
            builder.field("attach_payload", self.attach_payload)
        if self.contexts is not None:
            builder.start_array("contexts")
            for context in self.contexts:
                context.to_xcontent(builder)
            builder.end_array()
        builder.end_object()


class IncidentEventBuilder(SingleUseBuilder):
    """Fluent builder for ``IncidentEvent``."""

    def __init__(self) -> None:
        self._values: dict[str, Any] = {}
        self._contexts: list[IncidentContext] = []

    def _set(self, name: str, value: Any) -> IncidentEventBuilder:
        self._check_open()
        self._values[name] = value
        return self

    def description(self, value: str | None) -> IncidentEventBuilder:
        return self._set("description", value)

    def event_type(self, value: str | None) -> IncidentEventBuilder:
        return self._set("event_type", value)

    def incident_key(self, value: str | None) -> IncidentEventBuilder:
        return self._set("incident_key", value)

    def client(self, value: str | None) -> IncidentEventBuilder:
        return self._set("client", value)

    def client_url(self, value: str | None) -> IncidentEventBuilder:
        return self._set("client_url", value)

    def account(self, value: str | None) -> IncidentEventBuilder:
        return self._set("account", value)

    def attach_payload(self, value: bool | None) -> IncidentEventBuilder:
        return self._set("attach_payload", value)

    def add_contexts(self, contexts: Iterable[IncidentContext]) -> IncidentEventBuilder:
        self._check_open()
        self._contexts.extend(contexts)
        return self

    def build(self) -> IncidentEvent:
        """Build the event.

        Raises:
            ShapeValidationError: If no description was set.
        """
        self._close()
        values = dict(self._values)
        return IncidentEvent(
            description=values.pop("description", None) or "",
            contexts=optional_tuple(self._contexts),
            **values,
        )


_EVENT_PARSER: ObjectParser[IncidentEventBuilder] = ObjectParser(
    "incident event",
    [
        FieldEntry(
            ParseField("description"), read_text, IncidentEventBuilder.description, required=True
        ),
        FieldEntry(ParseField("event_type"), read_text, IncidentEventBuilder.event_type),
        FieldEntry(ParseField("incident_key"), read_text, IncidentEventBuilder.incident_key),
        FieldEntry(ParseField("client"), read_text, IncidentEventBuilder.client),
        FieldEntry(ParseField("client_url"), read_text, IncidentEventBuilder.client_url),
        FieldEntry(ParseField("account"), read_text, IncidentEventBuilder.account),
        FieldEntry(ParseField("attach_payload"), read_bool, IncidentEventBuilder.attach_payload),
        FieldEntry(
            ParseField("contexts", deprecated_names=("context",)),
            object_list_reader(parse_context),
            IncidentEventBuilder.add_contexts,
        ),
    ],
)
