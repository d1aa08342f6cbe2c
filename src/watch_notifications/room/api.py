"""Build HipChat v2 API requests for rendered room messages."""

from __future__ import annotations

from urllib.parse import quote

from watch_notifications.exceptions import ShapeValidationError
from watch_notifications.room.models import RoomMessage
from watch_notifications.transport import HttpRequest
from watch_notifications.xcontent.value import StructuredValue, StructuredValueBuilder

DEFAULT_API_HOST = "api.hipchat.com"


def _room_body(message: RoomMessage) -> StructuredValue:
    builder = StructuredValueBuilder()
    builder.start_object()
    builder.field("message", message.body)
    if message.format is not None:
        builder.field("message_format", message.format.value)
    if message.color is not None:
        builder.field("color", message.color.value)
    if message.notify is not None:
        builder.field("notify", message.notify)
    if message.from_ is not None:
        builder.field("from", message.from_)
    builder.end_object()
    return builder.build()


def _user_body(message: RoomMessage) -> StructuredValue:
    # Private messages carry no color or sender label
    builder = StructuredValueBuilder()
    builder.start_object()
    builder.field("message", message.body)
    if message.format is not None:
        builder.field("message_format", message.format.value)
    if message.notify is not None:
        builder.field("notify", message.notify)
    builder.end_object()
    return builder.build()


def _post(host: str, path: str, auth_token: str, body: StructuredValue) -> HttpRequest:
    return HttpRequest(
        method="POST",
        scheme="https",
        host=host,
        path=path,
        params={"auth_token": auth_token},
        headers={"Content-Type": "application/json"},
        body=body,
    )


def create_room_requests(
    message: RoomMessage, auth_token: str, host: str = DEFAULT_API_HOST
) -> list[HttpRequest]:
    """Create one POST per target room, then one per target user.

    The token travels as the ``auth_token`` query parameter, which is masked
    when the request is serialized with secrets hidden.

    Raises:
        ShapeValidationError: If the message has neither rooms nor users.
    """
    if not message.rooms and not message.users:
        raise ShapeValidationError("room message has no [room] or [user] target")
    room_body = _room_body(message)
    user_body = _user_body(message)
    requests = [
        _post(host, f"/v2/room/{quote(room, safe='')}/notification", auth_token, room_body)
        for room in message.rooms or ()
    ]
    requests.extend(
        _post(host, f"/v2/user/{quote(user, safe='@')}/message", auth_token, user_body)
        for user in message.users or ()
    )
    return requests
