"""RFC822-style email address parsing and validation.

Addresses are returned in canonical string form: ``local@domain`` for bare
addresses and ``Display Name <local@domain>`` when a display name is given
(the name is quoted when it contains specials).
"""

from __future__ import annotations

import re
from email.utils import formataddr, unquote
from typing import TYPE_CHECKING

from watch_notifications.exceptions import (
    AddressSyntaxError,
    MissingFieldError,
    StructuralParseError,
    UnexpectedFieldError,
)
from watch_notifications.xcontent.tokens import Token

if TYPE_CHECKING:
    from collections.abc import Iterable

    from watch_notifications.xcontent.tokens import DocumentParser

ADDRESS_NAME_FIELD = "name"
ADDRESS_EMAIL_FIELD = "email"

_MAILBOX_RE = re.compile(
    r"""^\s*(?:
        (?P<name>"(?:[^"\\]|\\.)*"|[^<>"]*?)\s*<(?P<angle>[^<>]*)>
        |
        (?P<bare>[^<>\s]+)
    )\s*$""",
    re.VERBOSE,
)
_LOCAL_PART_RE = re.compile(r"^(?:[^\s@<>()\[\]\\,;:\".]+(?:\.[^\s@<>()\[\]\\,;:\".]+)*|\"(?:[^\"\\]|\\.)+\")$")
_DOMAIN_RE = re.compile(r"^(?:[^\s@<>()\[\]\\,;:\".]+(?:\.[^\s@<>()\[\]\\,;:\".]+)*|\[[^\[\]\s]+\])$")


def _validate_addr_spec(text: str, addr: str, field: str | None) -> str:
    """Check a bare ``local@domain`` part and return it unchanged."""
    local, sep, domain = addr.rpartition("@")
    if not sep:
        raise AddressSyntaxError(text, "missing [@] in address", field)
    if not local or not domain:
        raise AddressSyntaxError(text, "missing local part or domain", field)
    if not _LOCAL_PART_RE.match(local):
        raise AddressSyntaxError(text, f"illegal local part [{local}]", field)
    if not _DOMAIN_RE.match(domain):
        raise AddressSyntaxError(text, f"illegal domain [{domain}]", field)
    return addr


def parse_address(text: str, field: str | None = None) -> str:
    """Validate a single address and return its canonical form.

    Args:
        text: Address text, e.g. ``"Jane <jane@example.com>"``.
        field: Optional field name included in error messages.

    Raises:
        AddressSyntaxError: If the text is not a valid RFC822 address.
    """
    match = _MAILBOX_RE.match(text or "")
    if match is None:
        raise AddressSyntaxError(text, "address must be RFC822 encoded", field)

    if match.group("bare") is not None:
        return _validate_addr_spec(text, match.group("bare"), field)

    addr = _validate_addr_spec(text, match.group("angle").strip(), field)
    name = match.group("name").strip()
    if name.startswith('"'):
        name = unquote(name)
    return formataddr((name, addr)) if name else addr


def format_address(email: str, name: str | None = None, field: str | None = None) -> str:
    """Build a canonical address from separate email and display name parts."""
    addr = _validate_addr_spec(email, email.strip(), field)
    return formataddr((name, addr)) if name else addr


def _split_list(text: str) -> list[str]:
    """Split on commas that are outside quotes and angle brackets."""
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    in_angle = False
    escaped = False
    for char in text:
        if escaped:
            escaped = False
        elif char == "\\" and in_quotes:
            escaped = True
        elif char == '"':
            in_quotes = not in_quotes
        elif char == "<" and not in_quotes:
            in_angle = True
        elif char == ">" and not in_quotes:
            in_angle = False
        elif char == "," and not in_quotes and not in_angle:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def parse_address_list(text: str, field: str | None = None) -> list[str]:
    """Parse a comma-separated list of addresses.

    Blank entries are skipped, so an empty string yields an empty list.

    Raises:
        AddressSyntaxError: If any entry is not a valid address.
    """
    return [
        parse_address(part, field)
        for part in _split_list(text or "")
        if part.strip()
    ]


def parse_address_setting(value: str | None) -> str | None:
    """Parse an address from account configuration."""
    if value is None:
        return None
    try:
        return parse_address(value)
    except AddressSyntaxError as e:
        raise ValueError(f"[{value}] is not a valid RFC822 email address") from e


def parse_address_list_setting(values: str | Iterable[str] | None) -> list[str] | None:
    """Parse a configured address list (comma-separated string or iterable)."""
    if values is None:
        return None
    entries = [values] if isinstance(values, str) else list(values)
    try:
        addresses = [address for entry in entries for address in parse_address_list(entry)]
    except AddressSyntaxError as e:
        raise ValueError(
            f"[{', '.join(entries)}] is not a valid list of RFC822 email addresses"
        ) from e
    return addresses or None


def parse_structured_address(field: str, parser: DocumentParser) -> str:
    """Parse an address given either as a string or as ``{name, email}``.

    Raises:
        AddressSyntaxError: If the address text is invalid.
        StructuralParseError: If the token is neither a string nor an object,
            or the object is missing ``email``.
    """
    token = parser.current_token()
    if token == Token.VALUE_STRING:
        return parse_address(parser.text(), field)

    if token == Token.START_OBJECT:
        email = None
        name = None
        while (token := parser.next_token()) != Token.END_OBJECT:
            if token is None:
                raise StructuralParseError(f"could not parse [{field}] as address. unexpected end")
            if token == Token.FIELD_NAME:
                continue
            current = parser.current_name()
            if current == ADDRESS_EMAIL_FIELD:
                email = parser.text()
            elif current == ADDRESS_NAME_FIELD:
                name = parser.text()
            else:
                raise UnexpectedFieldError(f"[{field}] object as address", current or "")
        if email is None:
            raise MissingFieldError(f"[{field}] as address", ADDRESS_EMAIL_FIELD)
        return format_address(email, name, field)

    raise StructuralParseError(
        f"could not parse [{field}] as address. address must either be a string "
        "(RFC822 encoded) or an object specifying the address [name] and [email]"
    )


def parse_structured_address_list(field: str, parser: DocumentParser) -> list[str]:
    """Parse a comma-separated string or an array of string/object addresses."""
    token = parser.current_token()
    if token == Token.VALUE_STRING:
        return parse_address_list(parser.text(), field)
    if token == Token.START_ARRAY:
        addresses = []
        while (token := parser.next_token()) != Token.END_ARRAY:
            if token is None:
                raise StructuralParseError(f"could not parse [{field}] as address list")
            addresses.append(parse_structured_address(field, parser))
        return addresses
    raise StructuralParseError(
        f"could not parse [{field}] as address list. field must either be a string "
        "(comma-separated list of RFC822 encoded addresses) or an array of objects "
        "representing addresses"
    )
