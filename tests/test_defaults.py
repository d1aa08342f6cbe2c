"""Tests for account defaults and fallback helpers."""

from __future__ import annotations

import pytest

from watch_notifications.defaults import (
    Channel,
    DefaultsBundle,
    DefaultsResolver,
    resolve_field,
    resolve_identity,
)
from watch_notifications.email.models import Priority
from watch_notifications.room.models import MessageFormat, RoomColor

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def account_settings() -> dict:
    """Account settings with defaults for every channel."""
    return {
        "email": {
            "email_defaults": {
                "from": "Alerts <alerts@example.com>",
                "to": "ops@example.com, dev@example.com",
                "priority": "High",
                "subject": "Watch alert",
            }
        },
        "chat": {
            "message_defaults": {
                "from": "watcher-bot",
                "to": ["#alerts"],
                "icon": ":bell:",
                "attachment": {
                    "color": "warning",
                    "mrkdwn_in": "text, pretext",
                    "field": {"short": "true"},
                },
            }
        },
        "incident": {
            "event_defaults": {
                "client": "watcher",
                "incident_key": "default-key",
                "attach_payload": True,
                "link": {"text": "Details"},
                "image": {"alt": "Graph"},
            }
        },
        "room": {
            "message_defaults": {
                "room": "ops, dev",
                "from": "watcher",
                "color": "Red",
                "format": "text",
                "notify": "false",
            }
        },
    }


@pytest.fixture
def resolver(account_settings: dict) -> DefaultsResolver:
    return DefaultsResolver(DefaultsBundle.from_settings(account_settings))


# ============================================================================
# Tests
# ============================================================================


class TestFallbackHelpers:
    """Tests for the pure fallback helpers."""

    def test_explicit_wins(self) -> None:
        assert resolve_field("explicit", "default") == "explicit"

    def test_default_used_when_missing(self) -> None:
        assert resolve_field(None, "default") == "default"

    def test_both_missing(self) -> None:
        assert resolve_field(None, None) is None

    def test_falsy_explicit_is_kept(self) -> None:
        """Only None triggers the fallback."""
        assert resolve_field("", "default") == ""
        assert resolve_field(False, True) is False

    def test_identity_fallback(self) -> None:
        assert resolve_identity("a", "b", "w1") == "a"
        assert resolve_identity(None, "b", "w1") == "b"
        assert resolve_identity(None, None, "w1") == "w1"


class TestDefaultsBundle:
    """Tests for loading defaults from settings."""

    def test_empty_settings(self) -> None:
        """Missing sections produce empty defaults."""
        bundle = DefaultsBundle.from_settings(None)
        assert bundle == DefaultsBundle()
        assert bundle.chat.attachment.field.short is None

    def test_email_defaults(self, account_settings: dict) -> None:
        email = DefaultsBundle.from_settings(account_settings).email
        assert email.from_ == "Alerts <alerts@example.com>"
        assert email.to == ("ops@example.com", "dev@example.com")
        assert email.priority is Priority.HIGH
        assert email.cc is None

    def test_chat_defaults(self, account_settings: dict) -> None:
        chat = DefaultsBundle.from_settings(account_settings).chat
        assert chat.to == ("#alerts",)
        assert chat.attachment.color == "warning"
        assert chat.attachment.markdown_fields == ("text", "pretext")
        assert chat.attachment.field.short is True

    def test_incident_defaults(self, account_settings: dict) -> None:
        incident = DefaultsBundle.from_settings(account_settings).incident
        assert incident.client == "watcher"
        assert incident.attach_payload is True
        assert incident.link.text == "Details"
        assert incident.image.alt == "Graph"
        assert incident.image.src is None

    def test_room_defaults(self, account_settings: dict) -> None:
        room = DefaultsBundle.from_settings(account_settings).room
        assert room.room == ("ops", "dev")
        assert room.user is None
        assert room.color is RoomColor.RED
        assert room.format is MessageFormat.TEXT
        assert room.notify is False

    def test_invalid_room_color(self) -> None:
        with pytest.raises(ValueError, match=r"\[blue\]"):
            DefaultsBundle.from_settings({"room": {"message_defaults": {"color": "blue"}}})

    def test_invalid_address(self) -> None:
        """Bad configured addresses fail loading with the value named."""
        with pytest.raises(ValueError, match=r"\[nobody\]"):
            DefaultsBundle.from_settings({"email": {"email_defaults": {"from": "nobody"}}})

    def test_invalid_section(self) -> None:
        with pytest.raises(ValueError, match="must be an object"):
            DefaultsBundle.from_settings({"chat": "nope"})

    def test_bundle_is_frozen(self) -> None:
        bundle = DefaultsBundle()
        with pytest.raises(AttributeError):
            bundle.email = None  # type: ignore[misc]


class TestDefaultsResolver:
    """Tests for DefaultsResolver."""

    def test_explicit_value_never_consults_defaults(self, resolver: DefaultsResolver) -> None:
        assert resolver.resolve_field(Channel.CHAT, "icon", ":x:") == ":x:"

    def test_default_used(self, resolver: DefaultsResolver) -> None:
        assert resolver.resolve_field(Channel.CHAT, "icon", None) == ":bell:"
        assert resolver.resolve_field("chat", "from", None) == "watcher-bot"

    def test_nested_path(self, resolver: DefaultsResolver) -> None:
        assert resolver.resolve_field(Channel.CHAT, "attachment.color", None) == "warning"
        assert resolver.resolve_field(Channel.CHAT, "attachment.field.short", None) is True
        assert resolver.resolve_field(Channel.INCIDENT, "link.text", None) == "Details"
        assert resolver.resolve_field(Channel.ROOM, "from", None) == "watcher"

    def test_missing_default(self, resolver: DefaultsResolver) -> None:
        assert resolver.resolve_field(Channel.EMAIL, "cc", None) is None

    def test_unknown_path(self, resolver: DefaultsResolver) -> None:
        with pytest.raises(KeyError, match="attachment.colour"):
            resolver.resolve_field(Channel.CHAT, "attachment.colour", None)

    def test_path_through_scalar(self, resolver: DefaultsResolver) -> None:
        with pytest.raises(KeyError):
            resolver.default(Channel.CHAT, "icon.size")

    def test_empty_resolver(self) -> None:
        assert DefaultsResolver().resolve_field(Channel.INCIDENT, "client", None) is None
