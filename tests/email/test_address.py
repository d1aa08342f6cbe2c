"""Tests for email address parsing and validation."""

from __future__ import annotations

import pytest

from watch_notifications.email.address import (
    format_address,
    parse_address,
    parse_address_list,
    parse_address_list_setting,
    parse_address_setting,
    parse_structured_address,
    parse_structured_address_list,
)
from watch_notifications.exceptions import (
    AddressSyntaxError,
    MissingFieldError,
    StructuralParseError,
    UnexpectedFieldError,
)
from watch_notifications.xcontent.document import ObjectTokenParser


def at_value(document: object) -> ObjectTokenParser:
    """Return a parser positioned on the document's first token."""
    parser = ObjectTokenParser(document)
    parser.next_token()
    return parser


class TestParseAddress:
    """Tests for single address parsing."""

    def test_bare_address(self) -> None:
        """A bare address is returned as-is."""
        assert parse_address("alice@example.com") == "alice@example.com"

    def test_surrounding_whitespace(self) -> None:
        """Whitespace around the address is ignored."""
        assert parse_address("  alice@example.com ") == "alice@example.com"

    def test_display_name(self) -> None:
        """A display name is kept in canonical form."""
        assert parse_address("Alice Smith <alice@example.com>") == "Alice Smith <alice@example.com>"

    def test_quoted_display_name(self) -> None:
        """Quoted names with specials stay quoted."""
        assert parse_address('"Smith, Alice" <alice@example.com>') == (
            '"Smith, Alice" <alice@example.com>'
        )

    def test_angle_only(self) -> None:
        """An address in angle brackets without a name is unwrapped."""
        assert parse_address("<alice@example.com>") == "alice@example.com"

    def test_missing_at(self) -> None:
        """An address without @ is rejected."""
        with pytest.raises(AddressSyntaxError, match=r"missing \[@\]"):
            parse_address("alice.example.com")

    def test_missing_domain(self) -> None:
        """An address without a domain is rejected."""
        with pytest.raises(AddressSyntaxError, match="missing local part or domain"):
            parse_address("alice@")

    def test_illegal_domain(self) -> None:
        """Domains with illegal characters are rejected."""
        with pytest.raises(AddressSyntaxError, match="illegal domain"):
            parse_address("alice@exa(mple.com")

    def test_unbalanced_brackets(self) -> None:
        """Unbalanced angle brackets are not RFC822."""
        with pytest.raises(AddressSyntaxError, match="RFC822"):
            parse_address("Alice <alice@example.com")

    def test_error_names_field_and_text(self) -> None:
        """Errors carry the field and the raw text."""
        with pytest.raises(AddressSyntaxError) as exc_info:
            parse_address("nope", "to")
        assert exc_info.value.field == "to"
        assert exc_info.value.text == "nope"
        assert "[to]" in str(exc_info.value)


class TestParseAddressList:
    """Tests for comma-separated address lists."""

    def test_two_addresses(self) -> None:
        """Addresses are split on commas."""
        assert parse_address_list("a@x.com, b@y.com") == ["a@x.com", "b@y.com"]

    def test_comma_inside_quoted_name(self) -> None:
        """Commas inside quoted display names do not split."""
        assert parse_address_list('"Doe, Jane" <jane@x.com>, b@y.com') == [
            '"Doe, Jane" <jane@x.com>',
            "b@y.com",
        ]

    def test_blank_entries_skipped(self) -> None:
        """Empty input and empty entries produce nothing."""
        assert parse_address_list("") == []
        assert parse_address_list("a@x.com, ,") == ["a@x.com"]

    def test_invalid_entry(self) -> None:
        """A single bad entry fails the whole list."""
        with pytest.raises(AddressSyntaxError):
            parse_address_list("a@x.com, broken")


class TestFormatAddress:
    """Tests for building addresses from parts."""

    def test_with_name(self) -> None:
        assert format_address("bob@x.com", "Bob") == "Bob <bob@x.com>"

    def test_without_name(self) -> None:
        assert format_address("bob@x.com") == "bob@x.com"


class TestStructuredAddress:
    """Tests for parsing addresses from documents."""

    def test_string_token(self) -> None:
        """A string token is parsed as an address."""
        assert parse_structured_address("from", at_value("a@x.com")) == "a@x.com"

    def test_object_token(self) -> None:
        """An object with name and email is formatted."""
        parser = at_value({"name": "Alice", "email": "alice@x.com"})
        assert parse_structured_address("from", parser) == "Alice <alice@x.com>"

    def test_object_without_email(self) -> None:
        """The email key is required."""
        with pytest.raises(MissingFieldError, match=r"\[email\]"):
            parse_structured_address("from", at_value({"name": "Alice"}))

    def test_object_unknown_key(self) -> None:
        """Unknown keys in the object fail."""
        with pytest.raises(UnexpectedFieldError, match=r"\[address\]"):
            parse_structured_address("from", at_value({"email": "a@x.com", "address": "x"}))

    def test_wrong_token(self) -> None:
        """Booleans are neither strings nor objects."""
        with pytest.raises(StructuralParseError, match="must either be a string"):
            parse_structured_address("from", at_value(True))

    def test_list_from_string(self) -> None:
        """A string list is comma-split."""
        assert parse_structured_address_list("to", at_value("a@x.com,b@y.com")) == [
            "a@x.com",
            "b@y.com",
        ]

    def test_list_from_array(self) -> None:
        """An array may mix strings and objects."""
        parser = at_value(["a@x.com", {"email": "b@y.com", "name": "Bee"}])
        assert parse_structured_address_list("to", parser) == ["a@x.com", "Bee <b@y.com>"]

    def test_list_wrong_token(self) -> None:
        """Objects are not lists."""
        with pytest.raises(StructuralParseError, match="address list"):
            parse_structured_address_list("to", at_value({"email": "a@x.com"}))


class TestAddressSettings:
    """Tests for parsing configured addresses."""

    def test_valid_setting(self) -> None:
        assert parse_address_setting("ops@x.com") == "ops@x.com"
        assert parse_address_setting(None) is None

    def test_invalid_setting_names_value(self) -> None:
        """Configuration errors name the offending value."""
        with pytest.raises(ValueError, match=r"\[ops\] is not a valid RFC822 email address"):
            parse_address_setting("ops")

    def test_list_setting(self) -> None:
        """Strings and iterables are both accepted."""
        assert parse_address_list_setting("a@x.com, b@y.com") == ["a@x.com", "b@y.com"]
        assert parse_address_list_setting(["a@x.com", "b@y.com"]) == ["a@x.com", "b@y.com"]
        assert parse_address_list_setting("") is None

    def test_invalid_list_setting(self) -> None:
        with pytest.raises(ValueError, match="not a valid list"):
            parse_address_list_setting(["a@x.com", "bad"])
