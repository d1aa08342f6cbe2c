"""Tests for chat message templates."""

from __future__ import annotations

import pytest

from watch_notifications.chat.models import (
    Action,
    Attachment,
    ChatMessage,
    DynamicAttachments,
    Field,
)
from watch_notifications.chat.webhook import create_webhook_requests
from watch_notifications.exceptions import (
    FieldParseError,
    MissingFieldError,
    ShapeValidationError,
    UnexpectedFieldError,
)
from watch_notifications.xcontent.document import ObjectTokenParser
from watch_notifications.xcontent.value import StructuredValueBuilder

# ============================================================================
# Fixtures
# ============================================================================


def emit(value, **kwargs) -> dict:
    builder = StructuredValueBuilder()
    value.to_xcontent(builder, **kwargs)
    return builder.build().to_python()


@pytest.fixture
def attachment() -> Attachment:
    """An attachment using every field."""
    return (
        Attachment.builder()
        .fallback("fallback text")
        .color("danger")
        .pretext("pre")
        .author_name("watcher")
        .author_link("https://example.com/watcher")
        .author_icon("https://example.com/icon.png")
        .title("{{ctx.watch_id}}")
        .title_link("https://example.com/watch")
        .text("body")
        .add_field("hits", "{{ctx.payload.hits}}", True)
        .add_field("node", "n1")
        .image_url("https://example.com/img.png")
        .thumb_url("https://example.com/thumb.png")
        .markdown_fields(["text", "pretext"])
        .add_actions([Action(name="ack", text="Acknowledge", type="button", url="https://x")])
        .build()
    )


@pytest.fixture
def message(attachment: Attachment) -> ChatMessage:
    """A message with static and dynamic attachments."""
    return (
        ChatMessage.builder()
        .from_("watcher")
        .to(["#ops", "@oncall"])
        .icon(":fire:")
        .text("Watch fired")
        .add_attachments([attachment])
        .dynamic_attachments(
            DynamicAttachments(
                "ctx.payload.items",
                Attachment.builder().title("{{_source.name}}").build(),
            )
        )
        .build()
    )


# ============================================================================
# Tests
# ============================================================================


class TestChatMessage:
    """Tests for ChatMessage."""

    def test_round_trip(self, message: ChatMessage) -> None:
        """parse(emit(message)) == message."""
        assert ChatMessage.parse(ObjectTokenParser(emit(message))) == message

    def test_emit_is_stable(self, message: ChatMessage) -> None:
        """emit-parse-emit produces the same document."""
        first = emit(message)
        assert emit(ChatMessage.parse(ObjectTokenParser(first))) == first

    def test_wire_names(self, attachment: Attachment) -> None:
        """Attachments use the webhook wire names."""
        document = emit(attachment)
        assert document["author_name"] == "watcher"
        assert document["mrkdwn_in"] == ["text", "pretext"]
        assert document["fields"] == [
            {"title": "hits", "value": "{{ctx.payload.hits}}", "short": True},
            {"title": "node", "value": "n1"},
        ]
        assert document["actions"] == [
            {"name": "ack", "type": "button", "text": "Acknowledge", "url": "https://x"}
        ]
        assert "author" not in document

    def test_requires_text_or_attachments(self) -> None:
        """A message with neither text nor attachments is invalid."""
        with pytest.raises(ShapeValidationError, match="text and attachments"):
            ChatMessage.builder().from_("w").build()

    def test_parse_requires_text_or_attachments(self) -> None:
        with pytest.raises(ShapeValidationError):
            ChatMessage.parse(ObjectTokenParser({"to": "#ops"}))

    def test_attachments_without_text(self) -> None:
        """Attachments alone are enough."""
        message = ChatMessage.builder().add_attachments([Attachment(title="t")]).build()
        assert message.text is None
        assert message.attachments == (Attachment(title="t"),)

    def test_single_to_string(self) -> None:
        """A single target may be given as a string."""
        message = ChatMessage.parse(ObjectTokenParser({"to": "#ops", "text": "x"}))
        assert message.to == ("#ops",)

    def test_emit_without_targets(self, message: ChatMessage) -> None:
        assert "to" not in emit(message, include_targets=False)

    def test_unknown_field(self) -> None:
        with pytest.raises(UnexpectedFieldError, match=r"\[channel\]"):
            ChatMessage.parse(ObjectTokenParser({"text": "x", "channel": "#ops"}))

    def test_builder_is_single_use(self) -> None:
        builder = ChatMessage.builder().text("x")
        builder.build()
        with pytest.raises(ShapeValidationError):
            builder.text("y")


class TestAttachmentParsing:
    """Tests for attachment sub-object parsing."""

    def test_field_requires_title(self) -> None:
        """Attachment fields need a title and value."""
        document = {"attachments": [{"fields": [{"value": "v"}]}]}
        with pytest.raises(FieldParseError) as exc_info:
            ChatMessage.parse(ObjectTokenParser(document))
        assert isinstance(exc_info.value.__cause__, MissingFieldError)

    def test_field_short_must_be_boolean(self) -> None:
        document = {"attachments": [{"fields": [{"title": "t", "value": "v", "short": "yes"}]}]}
        with pytest.raises(FieldParseError, match=r"\[short\]"):
            ChatMessage.parse(ObjectTokenParser(document))

    def test_dynamic_attachments_require_list_path(self) -> None:
        document = {"dynamic_attachments": {"attachment_template": {"title": "x"}}, "text": "t"}
        with pytest.raises(FieldParseError):
            ChatMessage.parse(ObjectTokenParser(document))

    def test_field_dataclass(self) -> None:
        assert Field("a", "b") == Field(title="a", value="b", short=None)


class TestWebhookRequests:
    """Tests for webhook request creation."""

    def test_one_request_per_channel(self, message: ChatMessage) -> None:
        requests = create_webhook_requests(message, "https://hooks.example.com/services/T0/B0/secret")
        assert len(requests) == 2
        bodies = [request.body.to_python() for request in requests]
        assert [body["channel"] for body in bodies] == ["#ops", "@oncall"]
        assert bodies[0]["username"] == "watcher"
        assert bodies[0]["icon_emoji"] == ":fire:"
        assert bodies[0]["text"] == "Watch fired"

    def test_request_target(self, message: ChatMessage) -> None:
        request = create_webhook_requests(message, "https://hooks.example.com/services/T0/B0/secret")[0]
        assert request.method == "POST"
        assert request.scheme == "https"
        assert request.host == "hooks.example.com"
        assert request.path == "/services/T0/B0/secret"
        assert request.headers["Content-Type"] == "application/json"

    def test_no_targets_posts_once(self) -> None:
        message = ChatMessage.builder().text("x").icon("https://example.com/i.png").build()
        (request,) = create_webhook_requests(message, "https://hooks.example.com/x")
        body = request.body.to_python()
        assert "channel" not in body
        assert body["icon_url"] == "https://example.com/i.png"
