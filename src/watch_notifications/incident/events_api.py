"""Build Events API requests for rendered incident events."""

from __future__ import annotations

from watch_notifications.incident.models import DEFAULT_EVENT_TYPE, IncidentEvent
from watch_notifications.transport import HttpRequest
from watch_notifications.xcontent.value import StructuredValue, StructuredValueBuilder

EVENTS_API_HOST = "events.pagerduty.com"
EVENTS_API_PATH = "/generic/2010-04-15/create_event.json"


def create_event_request(
    event: IncidentEvent,
    service_key: str,
    payload: StructuredValue | None = None,
) -> HttpRequest:
    """Create the POST that triggers ``event``.

    The watch payload is sent under ``details.payload`` only when the event
    sets ``attach_payload``. ``service_key`` is masked when the request is
    serialized with secrets hidden.
    """
    builder = StructuredValueBuilder()
    builder.start_object()
    builder.field("service_key", service_key)
    builder.field("event_type", event.event_type or DEFAULT_EVENT_TYPE)
    builder.field("description", event.description)
    for name in ("incident_key", "client", "client_url"):
        value = getattr(event, name)
        if value is not None:
            builder.field(name, value)
    if event.attach_payload:
        builder.start_object("details")
        builder.field("payload", payload if payload is not None else {})
        builder.end_object()
    if event.contexts:
        builder.start_array("contexts")
        for context in event.contexts:
            context.to_xcontent(builder)
        builder.end_array()
    builder.end_object()

    return HttpRequest(
        method="POST",
        scheme="https",
        host=EVENTS_API_HOST,
        path=EVENTS_API_PATH,
        headers={"Content-Type": "application/json"},
        body=builder.build(),
        secret_fields=frozenset({"service_key"}),
    )
