"""Exception hierarchy for notification rendering and delivery."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class for all errors raised by this package."""


class StructuralParseError(NotificationError):
    """A structured document could not be parsed into a template."""


class UnexpectedFieldError(StructuralParseError):
    """A document contained a field the target type does not declare."""

    def __init__(self, context: str, field: str) -> None:
        self.context = context
        self.field = field
        super().__init__(f"could not parse {context}. unexpected field [{field}]")


class FieldParseError(StructuralParseError):
    """A declared field held a malformed or duplicate value."""

    def __init__(self, context: str, field: str, reason: str) -> None:
        self.context = context
        self.field = field
        self.reason = reason
        super().__init__(f"could not parse {context}. failed to parse [{field}] field: {reason}")


class MissingFieldError(StructuralParseError):
    """A required field was absent when the object ended."""

    def __init__(self, context: str, field: str) -> None:
        self.context = context
        self.field = field
        super().__init__(f"could not parse {context}. missing required [{field}] field")


class ShapeValidationError(NotificationError):
    """A builder or constructor invariant was violated."""


class AddressSyntaxError(NotificationError):
    """An email address is not valid RFC822 syntax."""

    def __init__(self, text: str, reason: str, field: str | None = None) -> None:
        self.text = text
        self.reason = reason
        self.field = field
        where = f" in field [{field}]" if field else ""
        super().__init__(
            f"could not parse [{text}]{where} as address. {reason}"
        )


class SubstitutionError(NotificationError):
    """The text-substitution engine failed to render a template string."""

    def __init__(self, template: str, reason: str) -> None:
        self.template = template
        self.reason = reason
        super().__init__(f"failed to render template [{template}]: {reason}")


class RenderError(NotificationError):
    """Rendering a template into a concrete message failed."""

    def __init__(self, channel: str, field: str, cause: Exception) -> None:
        self.channel = channel
        self.field = field
        self.cause = cause
        super().__init__(f"failed to render {channel} message. field [{field}]: {cause}")


class TransportError(NotificationError):
    """The outbound send operation failed before producing a response."""
