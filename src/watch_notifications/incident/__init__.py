"""Incident (Events API) channel."""

from watch_notifications.incident.events_api import create_event_request
from watch_notifications.incident.models import (
    ContextType,
    ImageContext,
    IncidentContext,
    IncidentEvent,
    IncidentEventBuilder,
    LinkContext,
    build_context,
)

__all__ = [
    "ContextType",
    "ImageContext",
    "IncidentContext",
    "IncidentEvent",
    "IncidentEventBuilder",
    "LinkContext",
    "build_context",
    "create_event_request",
]
