"""Send results: immutable records of what was attempted and what happened.

A ``SendResult`` is one of four variants:

- ``Executed``: the request was sent and a response came back
- ``Failed``: the request could not be sent (or was never built)
- ``Simulated``: dry run; the message was rendered but not sent
- ``Throttled``: the action was suppressed before rendering

Results are serialized on demand. Serialization always includes the message
content and redacts request paths, query parameters, secret body fields,
headers and attachment bytes according to ``SerializationParams``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

from watch_notifications.chat.models import ChatMessage
from watch_notifications.defaults import Channel
from watch_notifications.email.models import Email
from watch_notifications.exceptions import TransportError
from watch_notifications.incident.models import IncidentEvent
from watch_notifications.room.models import RoomMessage
from watch_notifications.transport import HttpRequest, HttpResponse
from watch_notifications.xcontent.params import HIDE_SECRETS, SerializationParams
from watch_notifications.xcontent.tokens import DocumentBuilder
from watch_notifications.xcontent.value import StructuredValue, StructuredValueBuilder

logger = logging.getLogger(__name__)

Message: TypeAlias = Email | ChatMessage | IncidentEvent | RoomMessage
Sender: TypeAlias = Callable[[HttpRequest], HttpResponse]


class ResultStatus(str, Enum):
    """Outcome status written alongside every serialized result."""

    SUCCESS = "success"
    FAILURE = "failure"
    SIMULATED = "simulated"
    THROTTLED = "throttled"


@dataclass(frozen=True)
class Executed:
    """The request was sent and the remote end responded."""

    message: Message
    request: HttpRequest | None
    response: HttpResponse

    @property
    def status(self) -> ResultStatus:
        return ResultStatus.SUCCESS if self.response.is_success else ResultStatus.FAILURE


@dataclass(frozen=True)
class Failed:
    """No response was obtained."""

    message: Message
    request: HttpRequest | None
    reason: str
    error_type: str | None = None

    status = ResultStatus.FAILURE


@dataclass(frozen=True)
class Simulated:
    """Dry run: rendered but never sent."""

    message: Message

    status = ResultStatus.SIMULATED


@dataclass(frozen=True)
class Throttled:
    """The action was suppressed, so nothing was rendered or sent."""

    reason: str

    status = ResultStatus.THROTTLED


SendResult: TypeAlias = Executed | Failed | Simulated | Throttled


def message_channel(message: Message) -> Channel:
    match message:
        case Email():
            return Channel.EMAIL
        case ChatMessage():
            return Channel.CHAT
        case IncidentEvent():
            return Channel.INCIDENT
        case RoomMessage():
            return Channel.ROOM
        case _:
            raise TypeError(f"unsupported message type [{type(message).__name__}]")


def _emit_message(builder: DocumentBuilder, message: Message, params: SerializationParams) -> None:
    builder.field("channel", message_channel(message).value)
    builder.field_name("message")
    match message:
        case Email():
            message.to_xcontent(builder, hide_secrets=params.hide_secrets)
        case ChatMessage() | IncidentEvent() | RoomMessage():
            message.to_xcontent(builder)


class ResultRecorder:
    """Creates send results and serializes them with redaction."""

    def record_executed(
        self, message: Message, request: HttpRequest | None, response: HttpResponse
    ) -> Executed:
        result = Executed(message, request, response)
        if response.is_success:
            logger.info(f"Notification sent, status {response.status}")
        else:
            logger.warning(f"Notification rejected, status {response.status}")
        return result

    def record_failed(
        self,
        message: Message,
        request: HttpRequest | None,
        reason: str,
        error_type: str | None = None,
    ) -> Failed:
        logger.warning(f"Notification failed: {reason}")
        return Failed(message, request, reason, error_type)

    def record_simulated(self, message: Message) -> Simulated:
        logger.info("Notification simulated (dry run)")
        return Simulated(message)

    def record_throttled(self, reason: str) -> Throttled:
        logger.info(f"Notification throttled: {reason}")
        return Throttled(reason)

    def execute(self, message: Message, request: HttpRequest, send: Sender) -> Executed | Failed:
        """Send ``request`` and record the outcome.

        Transport errors are captured as ``Failed`` and never raised.
        """
        try:
            response = send(request)
        except TransportError as e:
            return self.record_failed(message, request, str(e), type(e).__name__)
        return self.record_executed(message, request, response)

    def serialize(
        self, result: SendResult, params: SerializationParams = HIDE_SECRETS
    ) -> StructuredValue:
        """Emit ``result`` as a structured value.

        Args:
            result: Any send result variant.
            params: Redaction parameters; secrets and headers are hidden
                by default.
        """
        builder = StructuredValueBuilder()
        self.to_xcontent(result, builder, params)
        return builder.build()

    def to_xcontent(
        self,
        result: SendResult,
        builder: DocumentBuilder,
        params: SerializationParams = HIDE_SECRETS,
    ) -> None:
        builder.start_object()
        match result:
            case Executed(message=message, request=request, response=response):
                builder.field("type", "executed")
                builder.field("status", result.status.value)
                _emit_message(builder, message, params)
                if request is not None:
                    builder.field_name("request")
                    request.to_xcontent(builder, params)
                builder.field_name("response")
                response.to_xcontent(builder, params)
            case Failed(message=message, request=request, reason=reason):
                builder.field("type", "failed")
                builder.field("status", result.status.value)
                _emit_message(builder, message, params)
                if request is not None:
                    builder.field_name("request")
                    request.to_xcontent(builder, params)
                builder.field("reason", reason)
                if params.debug and result.error_type is not None:
                    builder.field("error_type", result.error_type)
            case Simulated(message=message):
                builder.field("type", "simulated")
                builder.field("status", result.status.value)
                _emit_message(builder, message, params)
            case Throttled(reason=reason):
                builder.field("type", "throttled")
                builder.field("status", result.status.value)
                builder.field("reason", reason)
        builder.end_object()
