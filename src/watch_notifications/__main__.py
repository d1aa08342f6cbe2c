"""CLI entry point for rendering and sending watch notifications.

Renders a stored template against a runtime model using the configured
account defaults, sends it when the channel is configured and dry-run is
off, and prints the serialized send results as JSON.

Usage:
    python -m watch_notifications --channel chat --template t.json [options]
"""

from __future__ import annotations

import argparse
import json
import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, NoReturn

from pydantic import ValidationError

from watch_notifications import __version__
from watch_notifications.chat.models import ChatMessage
from watch_notifications.chat.webhook import create_webhook_requests
from watch_notifications.config import Settings, clear_settings_cache, get_settings
from watch_notifications.defaults import Channel
from watch_notifications.email.models import EmailTemplate
from watch_notifications.exceptions import NotificationError, ShapeValidationError
from watch_notifications.incident.events_api import create_event_request
from watch_notifications.incident.models import IncidentEvent
from watch_notifications.renderer import Message, NotificationRenderer, Template
from watch_notifications.results import Executed, Failed, ResultRecorder, SendResult
from watch_notifications.room.api import create_room_requests
from watch_notifications.room.models import RoomMessage
from watch_notifications.transport import HttpRequest, HttpTransport
from watch_notifications.xcontent.document import ObjectTokenParser
from watch_notifications.xcontent.params import SerializationParams
from watch_notifications.xcontent.value import from_python

logger = logging.getLogger(__name__)

# Application info
APP_NAME = "Watch Notifications"
APP_VERSION = __version__

# Exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="watch-notifications",
        description=f"{APP_NAME}: render notification templates and record the send result.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m watch_notifications --config-check
  python -m watch_notifications --channel email --template email.json --model ctx.json
  python -m watch_notifications --channel chat --template chat.json --watch-id w1 --dry-run
  python -m watch_notifications --channel incident --template event.json --show-secrets
  python -m watch_notifications --channel room --template room.json --model ctx.json
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )

    parser.add_argument(
        "--config-check",
        action="store_true",
        help="Validate configuration and exit",
    )

    parser.add_argument(
        "--channel",
        choices=[channel.value for channel in Channel],
        default=None,
        help="Notification channel of the template",
    )

    parser.add_argument(
        "--template",
        type=Path,
        default=None,
        help="JSON file holding the template",
    )

    parser.add_argument(
        "--model",
        type=Path,
        default=None,
        help="JSON file holding the runtime model (default: empty model)",
    )

    parser.add_argument(
        "--watch-id",
        default=None,
        help="Watch id used as fallback identity (default: ctx.watch_id in the model)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level (default: from settings)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Render only; record a simulated result",
    )

    parser.add_argument(
        "--show-secrets",
        action="store_true",
        help="Print request paths, secret fields and headers unredacted",
    )

    return parser


def configure_logging(level: str) -> None:
    """Configure logging for the application.

    Log output goes to stderr so stdout carries only the JSON result.

    Args:
        level: Logging level string (DEBUG, INFO, etc.)
    """
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "detailed" if level == "DEBUG" else "standard",
                "stream": "ext://sys.stderr",
            },
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        # Quieter logging for noisy libraries
        "loggers": {
            "httpx": {"level": "WARNING"},
            "httpcore": {"level": "WARNING"},
        },
    }
    logging.config.dictConfig(config)


def print_config_summary(settings: Settings) -> None:
    """Print a summary of the configuration.

    Args:
        settings: Application settings.
    """
    summary = settings.redacted_summary()
    print("Configuration:")
    print(f"  Log Level: {summary['log_level']}")
    print(f"  Dry Run: {summary['dry_run']}")
    print(f"  Hide Secrets: {summary['hide_secrets']}")
    print(f"  Chat: {'enabled' if summary['chat_enabled'] == 'True' else 'disabled'}")
    print(f"  Incident: {'enabled' if summary['incident_enabled'] == 'True' else 'disabled'}")
    print(f"  Room: {'enabled' if summary['room_enabled'] == 'True' else 'disabled'}")
    print()


def validate_config() -> Settings | None:
    """Validate and load configuration.

    Returns:
        Settings instance if valid, None if invalid.
    """
    try:
        # Clear cache to force reload
        clear_settings_cache()
        settings = get_settings()
        settings.defaults_bundle()
        return settings
    except ValidationError as e:
        print("Configuration validation failed:", file=sys.stderr)
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"  {field}: {msg}", file=sys.stderr)
        return None
    except ValueError as e:
        print(f"Configuration validation failed: {e}", file=sys.stderr)
        return None


def run_config_check(settings: Settings) -> int:
    """Run configuration check and exit.

    Args:
        settings: Validated settings.

    Returns:
        Exit code (0 for success).
    """
    print("Configuration is valid!")
    print()
    print_config_summary(settings)

    print("Checking channel availability...")
    print("  Email: render only")
    print(f"  Chat: {'configured' if settings.chat.enabled else 'not configured'}")
    print(f"  Incident: {'configured' if settings.incident.enabled else 'not configured'}")
    print(f"  Room: {'configured' if settings.room.enabled else 'not configured'}")
    print()
    print("All checks passed. Ready to run.")
    return EXIT_SUCCESS


def load_template(channel: Channel, path: Path) -> Template:
    """Parse a template document for the given channel.

    Raises:
        OSError: If the file cannot be read.
        StructuralParseError: If the document is malformed.
    """
    parser = ObjectTokenParser.from_json(path.read_text(encoding="utf-8"))
    match channel:
        case Channel.EMAIL:
            return EmailTemplate.parse(parser)
        case Channel.CHAT:
            return ChatMessage.parse(parser)
        case Channel.INCIDENT:
            return IncidentEvent.parse(parser)
        case Channel.ROOM:
            return RoomMessage.parse(parser)


def load_model(path: Path | None, watch_id: str | None) -> dict[str, Any]:
    """Load the runtime model, injecting ``ctx.watch_id`` when given."""
    model: dict[str, Any] = {}
    if path is not None:
        model = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(model, dict):
            raise ValueError(f"runtime model in [{path}] must be a JSON object")
    if watch_id is not None:
        model.setdefault("ctx", {})["watch_id"] = watch_id
    return model


def build_requests(
    settings: Settings, message: Message, model: dict[str, Any]
) -> list[HttpRequest] | None:
    """Build the outbound requests for a rendered message.

    Returns:
        The requests, or None when the message's channel has no
        credentials configured.

    Raises:
        ShapeValidationError: If the message has no HTTP delivery.
    """
    match message:
        case ChatMessage():
            if settings.chat.webhook_url is None:
                logger.warning("Chat webhook not configured, simulating")
                return None
            return create_webhook_requests(message, settings.chat.webhook_url.get_secret_value())
        case IncidentEvent():
            if settings.incident.service_key is None:
                logger.warning("Incident service key not configured, simulating")
                return None
            return [
                create_event_request(
                    message,
                    settings.incident.service_key.get_secret_value(),
                    from_python(model.get("ctx", {}).get("payload", {})),
                )
            ]
        case RoomMessage():
            if settings.room.auth_token is None:
                logger.warning("Room auth token not configured, simulating")
                return None
            return create_room_requests(
                message, settings.room.auth_token.get_secret_value(), settings.room.host
            )
        case _:
            raise ShapeValidationError(
                f"[{type(message).__name__}] messages cannot be sent over HTTP"
            )


def run_notification(
    settings: Settings,
    channel: Channel,
    template: Template,
    model: dict[str, Any],
    *,
    watch_id: str | None,
    dry_run: bool,
) -> list[SendResult]:
    """Render the template and send (or simulate) it.

    Returns:
        One result per outbound request; a single simulated result when
        nothing is sent.
    """
    recorder = ResultRecorder()
    renderer = NotificationRenderer(defaults=settings.defaults_bundle())
    message = renderer.render(template, model, watch_id=watch_id)

    if dry_run or channel == Channel.EMAIL:
        return [recorder.record_simulated(message)]

    requests = build_requests(settings, message, model)
    if requests is None:
        return [recorder.record_simulated(message)]

    with HttpTransport(timeout=settings.http_timeout) as transport:
        return [recorder.execute(message, request, transport.send) for request in requests]


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Validate configuration first
    settings = validate_config()
    if settings is None:
        sys.exit(EXIT_CONFIG_ERROR)

    # Determine effective log level
    log_level = args.log_level or settings.log_level
    configure_logging(log_level)

    # Config check mode
    if args.config_check:
        sys.exit(run_config_check(settings))

    if args.channel is None or args.template is None:
        parser.error("--channel and --template are required unless --config-check is given")

    channel = Channel(args.channel)
    dry_run = args.dry_run or settings.dry_run
    params = SerializationParams(
        hide_secrets=settings.hide_secrets and not args.show_secrets,
        hide_headers=not args.show_secrets,
        debug=args.show_secrets,
    )

    try:
        template = load_template(channel, args.template)
        model = load_model(args.model, args.watch_id)
        results = run_notification(
            settings, channel, template, model, watch_id=args.watch_id, dry_run=dry_run
        )
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(EXIT_INTERRUPTED)
    except (NotificationError, OSError, ValueError) as e:
        logger.error(f"Notification failed: {e}")
        sys.exit(EXIT_ERROR)

    recorder = ResultRecorder()
    output = [recorder.serialize(result, params).to_python() for result in results]
    print(json.dumps(output[0] if len(output) == 1 else output, indent=2))

    failed = any(
        isinstance(result, Failed)
        or (isinstance(result, Executed) and not result.response.is_success)
        for result in results
    )
    sys.exit(EXIT_ERROR if failed else EXIT_SUCCESS)


if __name__ == "__main__":
    main()
