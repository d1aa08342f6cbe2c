"""Configuration management with Pydantic Settings.

Account-level notification defaults and channel credentials are loaded from
environment variables (or a ``.env`` file) once, validated, and converted to
an immutable ``DefaultsBundle`` for rendering.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watch_notifications.defaults import DefaultsBundle
from watch_notifications.email.address import (
    parse_address_list_setting,
    parse_address_setting,
)
from watch_notifications.email.models import Priority
from watch_notifications.room.api import DEFAULT_API_HOST
from watch_notifications.room.models import MessageFormat, RoomColor


def _check_http_url(value: str, name: str) -> str:
    if not value.startswith(("http://", "https://")):
        raise ValueError(f"{name} must be an HTTP(S) URL")
    return value


class EmailDefaultsSettings(BaseSettings):
    """Default values applied to email templates."""

    model_config = SettingsConfigDict(env_prefix="WATCH_EMAIL_")

    from_address: str | None = Field(
        default=None,
        alias="WATCH_EMAIL_FROM",
        description="Default sender address",
    )
    reply_to: str | None = Field(
        default=None,
        alias="WATCH_EMAIL_REPLY_TO",
        description="Comma-separated default reply-to addresses",
    )
    to: str | None = Field(
        default=None,
        alias="WATCH_EMAIL_TO",
        description="Comma-separated default recipients",
    )
    cc: str | None = Field(default=None, alias="WATCH_EMAIL_CC")
    bcc: str | None = Field(default=None, alias="WATCH_EMAIL_BCC")
    priority: str | None = Field(
        default=None,
        alias="WATCH_EMAIL_PRIORITY",
        description="Default priority (highest, high, normal, low, lowest)",
    )
    subject: str | None = Field(default=None, alias="WATCH_EMAIL_SUBJECT")

    @field_validator("from_address")
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        """Validate and canonicalize the sender address."""
        return parse_address_setting(v)

    @field_validator("reply_to", "to", "cc", "bcc")
    @classmethod
    def validate_address_list(cls, v: str | None) -> str | None:
        """Validate and canonicalize an address list."""
        addresses = parse_address_list_setting(v)
        return ", ".join(addresses) if addresses else None

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, v: str | None) -> str | None:
        """Validate the priority name."""
        return Priority.resolve(v).label if v is not None else None

    def as_mapping(self) -> dict[str, Any]:
        return {
            "from": self.from_address,
            "reply_to": self.reply_to,
            "to": self.to,
            "cc": self.cc,
            "bcc": self.bcc,
            "priority": self.priority,
            "subject": self.subject,
        }


class ChatDefaultsSettings(BaseSettings):
    """Chat webhook account and message defaults."""

    model_config = SettingsConfigDict(env_prefix="WATCH_CHAT_")

    webhook_url: SecretStr | None = Field(
        default=None,
        alias="WATCH_CHAT_WEBHOOK_URL",
        description="Incoming webhook URL (contains the access token)",
    )
    from_name: str | None = Field(
        default=None,
        alias="WATCH_CHAT_FROM",
        description="Default sender name shown in the channel",
    )
    to: str | None = Field(
        default=None,
        alias="WATCH_CHAT_TO",
        description="Comma-separated default channels",
    )
    icon: str | None = Field(default=None, alias="WATCH_CHAT_ICON")
    text: str | None = Field(default=None, alias="WATCH_CHAT_TEXT")
    attachment_color: str | None = Field(
        default=None,
        alias="WATCH_CHAT_ATTACHMENT_COLOR",
        description="Default attachment color",
    )
    attachment_fallback: str | None = Field(default=None, alias="WATCH_CHAT_ATTACHMENT_FALLBACK")
    field_short: bool | None = Field(
        default=None,
        alias="WATCH_CHAT_FIELD_SHORT",
        description="Default for attachment fields' short flag",
    )

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: SecretStr | None) -> SecretStr | None:
        """Validate webhook URL format."""
        if v is not None:
            _check_http_url(v.get_secret_value(), "WATCH_CHAT_WEBHOOK_URL")
        return v

    @property
    def enabled(self) -> bool:
        """Check if chat delivery is configured."""
        return self.webhook_url is not None

    def as_mapping(self) -> dict[str, Any]:
        return {
            "from": self.from_name,
            "to": self.to,
            "icon": self.icon,
            "text": self.text,
            "attachment": {
                "color": self.attachment_color,
                "fallback": self.attachment_fallback,
                "field": {"short": self.field_short},
            },
        }


class IncidentDefaultsSettings(BaseSettings):
    """Incident (Events API) account and event defaults."""

    model_config = SettingsConfigDict(env_prefix="WATCH_INCIDENT_")

    service_key: SecretStr | None = Field(
        default=None,
        alias="WATCH_INCIDENT_SERVICE_KEY",
        description="Events API service integration key",
    )
    description: str | None = Field(default=None, alias="WATCH_INCIDENT_DESCRIPTION")
    incident_key: str | None = Field(default=None, alias="WATCH_INCIDENT_INCIDENT_KEY")
    client: str | None = Field(default=None, alias="WATCH_INCIDENT_CLIENT")
    client_url: str | None = Field(default=None, alias="WATCH_INCIDENT_CLIENT_URL")
    event_type: str | None = Field(default=None, alias="WATCH_INCIDENT_EVENT_TYPE")
    attach_payload: bool | None = Field(default=None, alias="WATCH_INCIDENT_ATTACH_PAYLOAD")
    link_href: str | None = Field(default=None, alias="WATCH_INCIDENT_LINK_HREF")
    link_text: str | None = Field(default=None, alias="WATCH_INCIDENT_LINK_TEXT")
    image_src: str | None = Field(default=None, alias="WATCH_INCIDENT_IMAGE_SRC")
    image_href: str | None = Field(default=None, alias="WATCH_INCIDENT_IMAGE_HREF")
    image_alt: str | None = Field(default=None, alias="WATCH_INCIDENT_IMAGE_ALT")

    @field_validator("client_url")
    @classmethod
    def validate_client_url(cls, v: str | None) -> str | None:
        """Validate client URL format."""
        return _check_http_url(v, "WATCH_INCIDENT_CLIENT_URL") if v is not None else None

    @property
    def enabled(self) -> bool:
        """Check if incident delivery is configured."""
        return self.service_key is not None

    def as_mapping(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "incident_key": self.incident_key,
            "client": self.client,
            "client_url": self.client_url,
            "event_type": self.event_type,
            "attach_payload": self.attach_payload,
            "link": {"href": self.link_href, "text": self.link_text},
            "image": {"src": self.image_src, "href": self.image_href, "alt": self.image_alt},
        }


class RoomDefaultsSettings(BaseSettings):
    """Room (HipChat) account and message defaults."""

    model_config = SettingsConfigDict(env_prefix="WATCH_ROOM_")

    auth_token: SecretStr | None = Field(
        default=None,
        alias="WATCH_ROOM_AUTH_TOKEN",
        description="API v2 access token",
    )
    host: str = Field(
        default=DEFAULT_API_HOST,
        alias="WATCH_ROOM_HOST",
        description="API host, for self-hosted servers",
    )
    room: str | None = Field(
        default=None,
        alias="WATCH_ROOM_ROOM",
        description="Comma-separated default rooms",
    )
    user: str | None = Field(
        default=None,
        alias="WATCH_ROOM_USER",
        description="Comma-separated default users",
    )
    from_name: str | None = Field(default=None, alias="WATCH_ROOM_FROM")
    color: str | None = Field(
        default=None,
        alias="WATCH_ROOM_COLOR",
        description="Default color (yellow, green, red, purple, gray, random)",
    )
    message_format: str | None = Field(
        default=None,
        alias="WATCH_ROOM_FORMAT",
        description="Default message format (text, html)",
    )
    notify: bool | None = Field(default=None, alias="WATCH_ROOM_NOTIFY")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Validate the host is a bare host name."""
        v = v.strip()
        if not v or "/" in v:
            raise ValueError("WATCH_ROOM_HOST must be a host name without scheme or path")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str | None) -> str | None:
        return RoomColor.resolve(v).value if v is not None else None

    @field_validator("message_format")
    @classmethod
    def validate_format(cls, v: str | None) -> str | None:
        return MessageFormat.resolve(v).value if v is not None else None

    @property
    def enabled(self) -> bool:
        """Check if room delivery is configured."""
        return self.auth_token is not None

    def as_mapping(self) -> dict[str, Any]:
        return {
            "room": self.room,
            "user": self.user,
            "from": self.from_name,
            "color": self.color,
            "format": self.message_format,
            "notify": self.notify,
        }


class Settings(BaseSettings):
    """Main application settings.

    Example:
        ```python
        from watch_notifications.config import get_settings

        settings = get_settings()
        renderer = NotificationRenderer(defaults=settings.defaults_bundle())
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    email: EmailDefaultsSettings = Field(default_factory=EmailDefaultsSettings)
    chat: ChatDefaultsSettings = Field(default_factory=ChatDefaultsSettings)
    incident: IncidentDefaultsSettings = Field(default_factory=IncidentDefaultsSettings)
    room: RoomDefaultsSettings = Field(default_factory=RoomDefaultsSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="WATCH_LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="WATCH_DRY_RUN",
        description="Render notifications without sending them",
    )
    hide_secrets: bool = Field(
        default=True,
        alias="WATCH_HIDE_SECRETS",
        description="Redact request paths and secret fields in printed results",
    )
    http_timeout: float = Field(
        default=10.0,
        alias="WATCH_HTTP_TIMEOUT",
        description="Outbound HTTP timeout in seconds",
        gt=0,
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def defaults_bundle(self) -> DefaultsBundle:
        """Convert the configured defaults to a ``DefaultsBundle``."""
        return DefaultsBundle.from_settings(
            {
                "email": {"email_defaults": self.email.as_mapping()},
                "chat": {"message_defaults": self.chat.as_mapping()},
                "incident": {"event_defaults": self.incident.as_mapping()},
                "room": {"message_defaults": self.room.as_mapping()},
            }
        )

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "email": {
                "from": self.email.from_address or "(not set)",
                "to": self.email.to or "(not set)",
            },
            "chat": {
                "webhook_url": "(set)" if self.chat.webhook_url else "(not set)",
                "from": self.chat.from_name or "(not set)",
            },
            "incident": {
                "service_key": "(set)" if self.incident.service_key else "(not set)",
                "client": self.incident.client or "(not set)",
            },
            "room": {
                "auth_token": "(set)" if self.room.auth_token else "(not set)",
                "host": self.room.host,
            },
            "chat_enabled": str(self.chat.enabled),
            "incident_enabled": str(self.incident.enabled),
            "room_enabled": str(self.room.enabled),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
            "hide_secrets": str(self.hide_secrets),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache so the next call reloads from the environment."""
    get_settings.cache_clear()
