"""Email channel: address validation, templates and rendered emails."""

from watch_notifications.email.address import (
    parse_address,
    parse_address_list,
    parse_structured_address,
    parse_structured_address_list,
)
from watch_notifications.email.models import (
    Email,
    EmailAttachment,
    EmailBuilder,
    EmailTemplate,
    EmailTemplateBuilder,
    Priority,
)

__all__ = [
    "Email",
    "EmailAttachment",
    "EmailBuilder",
    "EmailTemplate",
    "EmailTemplateBuilder",
    "Priority",
    "parse_address",
    "parse_address_list",
    "parse_structured_address",
    "parse_structured_address_list",
]
