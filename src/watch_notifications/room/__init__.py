"""Room (HipChat) channel."""

from watch_notifications.room.api import create_room_requests
from watch_notifications.room.models import (
    MessageFormat,
    RoomColor,
    RoomMessage,
    RoomMessageBuilder,
)

__all__ = [
    "MessageFormat",
    "RoomColor",
    "RoomMessage",
    "RoomMessageBuilder",
    "create_room_requests",
]
