"""Render stored templates into concrete, channel-ready messages.

A render call walks the template, substitutes every string field through
the text engine, falls back to account defaults for fields the template
leaves unset, and finally builds the message through the same builders and
shape checks used for templates. Any failure aborts the whole render with a
``RenderError`` naming the channel and field; no partial message is returned.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, TypeAlias

from watch_notifications.chat.models import (
    Action,
    Attachment,
    AttachmentBuilder,
    ChatMessage,
    DynamicAttachments,
    Field,
)
from watch_notifications.defaults import (
    Channel,
    DefaultsBundle,
    DefaultsResolver,
    resolve_identity,
)
from watch_notifications.email.address import parse_address, parse_address_list
from watch_notifications.email.models import Email, EmailAttachment, EmailTemplate, Priority
from watch_notifications.exceptions import NotificationError, RenderError, ShapeValidationError
from watch_notifications.incident.models import (
    DEFAULT_EVENT_TYPE,
    ImageContext,
    IncidentContext,
    IncidentEvent,
    LinkContext,
)
from watch_notifications.room.models import MessageFormat, RoomMessage
from watch_notifications.text import (
    AllowlistHtmlSanitizer,
    HtmlSanitizer,
    JinjaTemplateEngine,
    TextTemplateEngine,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

Template: TypeAlias = EmailTemplate | ChatMessage | IncidentEvent | RoomMessage
Message: TypeAlias = Email | ChatMessage | IncidentEvent | RoomMessage

SOURCE_KEY = "_source"

_ATTACHMENT_TEXT_FIELDS = (
    "fallback",
    "color",
    "pretext",
    "title",
    "title_link",
    "text",
    "image_url",
    "thumb_url",
)


@contextmanager
def _rendering(channel: Channel, field: str) -> Iterator[None]:
    """Wrap any failure inside the block as a ``RenderError``."""
    try:
        yield
    except RenderError:
        raise
    except (NotificationError, ValueError) as e:
        logger.warning(f"Failed to render {channel.value} field [{field}]: {e}")
        raise RenderError(channel.value, field, e) from e


def lookup_path(model: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path (``ctx.payload.items``) in the runtime model.

    Numeric segments index into lists. Returns None when any segment is
    missing.
    """
    current: Any = model
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


class NotificationRenderer:
    """Renders email, chat, incident and room templates.

    Args:
        engine: Text-substitution engine. Defaults to Jinja2.
        sanitizer: HTML sanitizer for email HTML bodies.
        defaults: Account defaults, as a resolver or a bundle.
    """

    def __init__(
        self,
        engine: TextTemplateEngine | None = None,
        sanitizer: HtmlSanitizer | None = None,
        defaults: DefaultsResolver | DefaultsBundle | None = None,
    ) -> None:
        self.engine = engine or JinjaTemplateEngine()
        self.sanitizer = sanitizer or AllowlistHtmlSanitizer()
        if isinstance(defaults, DefaultsResolver):
            self.defaults = defaults
        else:
            self.defaults = DefaultsResolver(defaults)

    def render(
        self,
        template: Template,
        model: dict[str, Any],
        *,
        watch_id: str | None = None,
        email_id: str | None = None,
        attachments: Iterable[EmailAttachment] = (),
    ) -> Message:
        """Render any channel template into its message."""
        match template:
            case EmailTemplate():
                return self.render_email(
                    template, model, email_id=email_id, attachments=attachments
                )
            case ChatMessage():
                return self.render_chat_message(template, model, watch_id=watch_id)
            case IncidentEvent():
                return self.render_incident_event(template, model, watch_id=watch_id)
            case RoomMessage():
                return self.render_room_message(template, model)
            case _:
                raise TypeError(f"unsupported template type [{type(template).__name__}]")

    # ------------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------------

    def _text(self, template: str | None, model: dict[str, Any]) -> str | None:
        if template is None:
            return None
        return self.engine.render(template, model)

    def _addresses(
        self, entries: tuple[str, ...] | None, model: dict[str, Any], field: str
    ) -> tuple[str, ...] | None:
        """Render each entry, then re-parse; one entry may yield several addresses."""
        if entries is None:
            return None
        addresses: list[str] = []
        for entry in entries:
            addresses.extend(parse_address_list(self.engine.render(entry, model), field))
        return tuple(addresses)

    @staticmethod
    def _watch_id(model: Mapping[str, Any], watch_id: str | None) -> str | None:
        if watch_id is not None:
            return watch_id
        value = lookup_path(model, "ctx.watch_id")
        return None if value is None else str(value)

    # ------------------------------------------------------------------------
    # Email
    # ------------------------------------------------------------------------

    def render_email(
        self,
        template: EmailTemplate,
        model: dict[str, Any],
        *,
        email_id: str | None = None,
        attachments: Iterable[EmailAttachment] | Mapping[str, EmailAttachment] = (),
    ) -> Email:
        """Render an email template.

        Args:
            template: The stored template.
            model: Runtime model.
            email_id: Id for the email. Defaults to the execution id in the
                model, or a random id.
            attachments: Attachments collected for this execution.

        Raises:
            RenderError: If substitution, address parsing or validation fails.
        """
        channel = Channel.EMAIL
        logger.debug("Rendering email template")
        builder = Email.builder()

        if email_id is None:
            execution_id = lookup_path(model, "ctx.execution_id")
            email_id = str(execution_id) if execution_id is not None else uuid.uuid4().hex
        builder.id(email_id)

        with _rendering(channel, "from"):
            rendered_from = self._text(template.from_, model)
            if rendered_from is not None:
                rendered_from = parse_address(rendered_from, "from")
            builder.from_(self.defaults.resolve_field(channel, "from", rendered_from))

        for field in ("reply_to", "to", "cc", "bcc"):
            with _rendering(channel, field):
                addresses = self._addresses(getattr(template, field), model, field)
                getattr(builder, field)(self.defaults.resolve_field(channel, field, addresses))

        with _rendering(channel, "priority"):
            rendered_priority = self._text(template.priority, model)
            priority = Priority.resolve(rendered_priority) if rendered_priority is not None else None
            builder.priority(self.defaults.resolve_field(channel, "priority", priority))

        with _rendering(channel, "subject"):
            subject = self.defaults.resolve_field(
                channel, "subject", self._text(template.subject, model)
            )
            if not subject:
                raise ShapeValidationError("email [subject] must not be empty")
            builder.subject(subject)

        with _rendering(channel, "body.text"):
            builder.text_body(self._text(template.text_body, model))

        with _rendering(channel, "body.html"):
            html = self._text(template.html_body, model)
            builder.html_body(self.sanitizer.sanitize(html) if html is not None else None)

        if isinstance(attachments, Mapping):
            attachments = attachments.values()
        builder.attach_all(attachments)

        with _rendering(channel, "to"):
            email = builder.build()
        logger.debug(f"Rendered email [{email.id}] to {len(email.to)} recipient(s)")
        return email

    # ------------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------------

    def render_chat_message(
        self,
        template: ChatMessage,
        model: dict[str, Any],
        *,
        watch_id: str | None = None,
    ) -> ChatMessage:
        """Render a chat message template.

        ``from`` falls back to the account default and then to the watch id
        (``watch_id`` or ``ctx.watch_id`` in the model).

        Raises:
            RenderError: If substitution, dynamic attachment expansion or
                validation fails.
        """
        channel = Channel.CHAT
        logger.debug("Rendering chat message template")
        builder = ChatMessage.builder()

        with _rendering(channel, "from"):
            builder.from_(
                resolve_identity(
                    self._text(template.from_, model),
                    self.defaults.default(channel, "from"),
                    self._watch_id(model, watch_id),
                )
            )

        with _rendering(channel, "to"):
            if template.to is not None:
                to = tuple(self.engine.render(target, model) for target in template.to)
            else:
                to = self.defaults.default(channel, "to")
            builder.to(to or ())

        with _rendering(channel, "icon"):
            builder.icon(self.defaults.resolve_field(channel, "icon", self._text(template.icon, model)))

        with _rendering(channel, "text"):
            builder.text(self.defaults.resolve_field(channel, "text", self._text(template.text, model)))

        for index, attachment in enumerate(template.attachments or ()):
            with _rendering(channel, f"attachments[{index}]"):
                builder.add_attachments([self._render_attachment(attachment, model)])

        if template.dynamic_attachments is not None:
            with _rendering(channel, "dynamic_attachments"):
                builder.add_attachments(
                    self._render_dynamic_attachments(template.dynamic_attachments, model)
                )

        with _rendering(channel, "attachments"):
            message = builder.build()
        logger.debug(
            f"Rendered chat message with {len(message.attachments or ())} attachment(s)"
        )
        return message

    def _render_attachment(self, template: Attachment, model: dict[str, Any]) -> Attachment:
        channel = Channel.CHAT
        builder: AttachmentBuilder = Attachment.builder()
        for name in _ATTACHMENT_TEXT_FIELDS:
            value = self.defaults.resolve_field(
                channel, f"attachment.{name}", self._text(getattr(template, name), model)
            )
            if value is not None:
                getattr(builder, name)(value)

        author = template.author
        for part in ("name", "link", "icon"):
            explicit = self._text(getattr(author, part), model) if author is not None else None
            value = self.defaults.resolve_field(channel, f"attachment.author_{part}", explicit)
            if value is not None:
                getattr(builder, f"author_{part}")(value)

        builder.add_fields(self._render_field(item, model) for item in template.fields or ())

        markdown_fields = self.defaults.resolve_field(
            channel, "attachment.markdown_fields", template.markdown_fields
        )
        if markdown_fields:
            builder.markdown_fields(markdown_fields)

        builder.add_actions(
            Action(
                style=self._text(action.style, model),
                name=self._text(action.name, model),
                type=self._text(action.type, model),
                text=self._text(action.text, model),
                url=self._text(action.url, model),
            )
            for action in template.actions or ()
        )
        return builder.build()

    def _render_field(self, template: Field, model: dict[str, Any]) -> Field:
        channel = Channel.CHAT
        return Field(
            title=self.defaults.resolve_field(
                channel, "attachment.field.title", self._text(template.title, model)
            ),
            value=self.defaults.resolve_field(
                channel, "attachment.field.value", self._text(template.value, model)
            ),
            short=self.defaults.resolve_field(channel, "attachment.field.short", template.short),
        )

    def _render_dynamic_attachments(
        self, dynamic: DynamicAttachments, model: dict[str, Any]
    ) -> list[Attachment]:
        items = lookup_path(model, dynamic.list_path)
        if not isinstance(items, (list, tuple)):
            raise ValueError(
                f"dynamic attachment could not be resolved. expected context "
                f"[{dynamic.list_path}] to be a list, but found [{items}] instead"
            )
        return [
            self._render_attachment(dynamic.attachment_template, {**model, SOURCE_KEY: item})
            for item in items
        ]

    # ------------------------------------------------------------------------
    # Incident
    # ------------------------------------------------------------------------

    def render_incident_event(
        self,
        template: IncidentEvent,
        model: dict[str, Any],
        *,
        watch_id: str | None = None,
    ) -> IncidentEvent:
        """Render an incident event template.

        ``incident_key`` falls back to the account default and then to the
        watch id. ``event_type`` falls back to the default and then to
        ``"trigger"``.

        Raises:
            RenderError: If substitution or context validation fails.
        """
        channel = Channel.INCIDENT
        logger.debug("Rendering incident event template")
        builder = IncidentEvent.builder()

        with _rendering(channel, "description"):
            builder.description(
                self.defaults.resolve_field(
                    channel, "description", self._text(template.description, model)
                )
            )

        with _rendering(channel, "event_type"):
            builder.event_type(
                resolve_identity(
                    self._text(template.event_type, model),
                    self.defaults.default(channel, "event_type"),
                    DEFAULT_EVENT_TYPE,
                )
            )

        with _rendering(channel, "incident_key"):
            builder.incident_key(
                resolve_identity(
                    self._text(template.incident_key, model),
                    self.defaults.default(channel, "incident_key"),
                    self._watch_id(model, watch_id),
                )
            )

        for field in ("client", "client_url"):
            with _rendering(channel, field):
                explicit = self._text(getattr(template, field), model)
                getattr(builder, field)(self.defaults.resolve_field(channel, field, explicit))

        builder.account(template.account)
        builder.attach_payload(
            resolve_identity(
                template.attach_payload, self.defaults.default(channel, "attach_payload"), False
            )
        )

        for index, context in enumerate(template.contexts or ()):
            with _rendering(channel, f"contexts[{index}]"):
                builder.add_contexts([self._render_context(context, model)])

        with _rendering(channel, "description"):
            return builder.build()

    def _render_context(self, context: IncidentContext, model: dict[str, Any]) -> IncidentContext:
        channel = Channel.INCIDENT

        def resolve(path: str, value: str | None) -> str | None:
            return self.defaults.resolve_field(channel, path, self._text(value, model))

        match context:
            case LinkContext():
                return LinkContext(
                    href=resolve("link.href", context.href),
                    text=resolve("link.text", context.text),
                )
            case ImageContext():
                return ImageContext(
                    src=resolve("image.src", context.src),
                    href=resolve("image.href", context.href),
                    alt=resolve("image.alt", context.alt),
                )

    # ------------------------------------------------------------------------
    # Room
    # ------------------------------------------------------------------------

    def render_room_message(self, template: RoomMessage, model: dict[str, Any]) -> RoomMessage:
        """Render a room message template.

        Rooms and users fall back to the account defaults as a whole list.
        An HTML body is sanitized like an email HTML body.

        Raises:
            RenderError: If substitution fails or the body renders empty.
        """
        channel = Channel.ROOM
        logger.debug("Rendering room message template")
        builder = RoomMessage.builder()

        for field, attribute, add in (
            ("room", "rooms", builder.add_rooms),
            ("user", "users", builder.add_users),
        ):
            with _rendering(channel, field):
                targets = getattr(template, attribute)
                if targets is not None:
                    add(self.engine.render(target, model) for target in targets)
                else:
                    add(self.defaults.default(channel, field) or ())

        with _rendering(channel, "from"):
            rendered_from = self._text(template.from_, model)
            builder.from_(self.defaults.resolve_field(channel, "from", rendered_from))

        message_format = self.defaults.resolve_field(channel, "format", template.format)
        builder.format(message_format)
        builder.color(self.defaults.resolve_field(channel, "color", template.color))
        builder.notify(self.defaults.resolve_field(channel, "notify", template.notify))

        with _rendering(channel, "body"):
            body = self._text(template.body, model)
            if body and message_format is MessageFormat.HTML:
                body = self.sanitizer.sanitize(body)
            if not body:
                raise ShapeValidationError("room message [body] must not be empty")
            builder.body(body)
            message = builder.build()
        logger.debug(
            f"Rendered room message to {len(message.rooms or ())} room(s) "
            f"and {len(message.users or ())} user(s)"
        )
        return message
