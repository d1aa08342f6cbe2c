"""Build webhook requests for rendered chat messages."""

from __future__ import annotations

from watch_notifications.chat.models import ChatMessage
from watch_notifications.transport import HttpRequest
from watch_notifications.xcontent.value import StructuredValueBuilder


def _payload(message: ChatMessage, channel: str | None) -> StructuredValueBuilder:
    builder = StructuredValueBuilder()
    builder.start_object()
    if message.from_ is not None:
        builder.field("username", message.from_)
    if channel is not None:
        builder.field("channel", channel)
    if message.icon is not None:
        key = "icon_url" if message.icon.startswith(("http://", "https://")) else "icon_emoji"
        builder.field(key, message.icon)
    if message.text is not None:
        builder.field("text", message.text)
    if message.attachments:
        builder.start_array("attachments")
        for attachment in message.attachments:
            attachment.to_xcontent(builder)
        builder.end_array()
    builder.end_object()
    return builder


def create_webhook_requests(message: ChatMessage, url: str) -> list[HttpRequest]:
    """Create one POST per target channel.

    A message without ``to`` is posted once to the webhook's own default
    channel.

    Args:
        message: A rendered chat message.
        url: The account's incoming-webhook URL. Its path carries the token.

    Returns:
        The requests, in target order.
    """
    channels: tuple[str | None, ...] = message.to or (None,)
    return [
        HttpRequest.post_json(url, _payload(message, channel).build())
        for channel in channels
    ]
