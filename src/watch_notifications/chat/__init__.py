"""Chat (webhook) channel."""

from watch_notifications.chat.models import (
    Action,
    Attachment,
    AttachmentBuilder,
    Author,
    ChatMessage,
    ChatMessageBuilder,
    DynamicAttachments,
    Field,
)
from watch_notifications.chat.webhook import create_webhook_requests

__all__ = [
    "Action",
    "Attachment",
    "AttachmentBuilder",
    "Author",
    "ChatMessage",
    "ChatMessageBuilder",
    "DynamicAttachments",
    "Field",
    "create_webhook_requests",
]
