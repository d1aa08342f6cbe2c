"""Tests for declarative field tables."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from watch_notifications.exceptions import (
    FieldParseError,
    MissingFieldError,
    StructuralParseError,
    UnexpectedFieldError,
)
from watch_notifications.xcontent.document import ObjectTokenParser
from watch_notifications.xcontent.fields import (
    FieldEntry,
    ObjectParser,
    ParseField,
    get_deprecation_hook,
    log_deprecation,
    read_bool,
    read_text,
    read_text_list,
    set_deprecation_hook,
    set_key,
)

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def table() -> ObjectParser[dict[str, Any]]:
    """A small table with a required field and a deprecated alias."""
    return ObjectParser(
        "sample",
        [
            FieldEntry(ParseField("name"), read_text, set_key("name"), required=True),
            FieldEntry(ParseField("tags", ("tag",)), read_text_list, set_key("tags")),
            FieldEntry(ParseField("active"), read_bool, set_key("active")),
        ],
    )


@pytest.fixture(autouse=True)
def restore_hook():
    """Reset the process-wide deprecation hook after each test."""
    yield
    set_deprecation_hook(None)


# ============================================================================
# Tests
# ============================================================================


class TestParseField:
    """Tests for ParseField matching."""

    def test_preferred_name(self) -> None:
        """The preferred name matches without a deprecation call."""
        hook = MagicMock()
        assert ParseField("contexts", ("context",)).match("contexts", hook)
        hook.assert_not_called()

    def test_deprecated_name_calls_hook(self) -> None:
        """A deprecated alias matches and reports the preferred name."""
        hook = MagicMock()
        assert ParseField("contexts", ("context",)).match("context", hook)
        hook.assert_called_once_with("context", "contexts")

    def test_no_match(self) -> None:
        """Other names do not match."""
        assert not ParseField("contexts").match("ctx")


class TestObjectParser:
    """Tests for ObjectParser.parse."""

    def test_parse_all_fields(self, table: ObjectParser[dict[str, Any]]) -> None:
        """Every declared field reaches its setter."""
        parser = ObjectTokenParser({"name": "n", "tags": ["a", "b"], "active": True})
        assert table.parse(parser, {}) == {"name": "n", "tags": ["a", "b"], "active": True}

    def test_single_string_for_list(self, table: ObjectParser[dict[str, Any]]) -> None:
        """A list field accepts a single string."""
        parser = ObjectTokenParser({"name": "n", "tags": "a"})
        assert table.parse(parser, {})["tags"] == ["a"]

    def test_unknown_field(self, table: ObjectParser[dict[str, Any]]) -> None:
        """Unknown fields are rejected."""
        parser = ObjectTokenParser({"name": "n", "colour": "red"})
        with pytest.raises(UnexpectedFieldError, match=r"unexpected field \[colour\]"):
            table.parse(parser, {})

    def test_missing_required_field(self, table: ObjectParser[dict[str, Any]]) -> None:
        """A required field absent at end of object fails."""
        with pytest.raises(MissingFieldError, match=r"missing required \[name\]"):
            table.parse(ObjectTokenParser({"active": False}), {})

    def test_malformed_value(self, table: ObjectParser[dict[str, Any]]) -> None:
        """A value of the wrong kind fails with the field name."""
        parser = ObjectTokenParser({"name": "n", "active": "yes"})
        with pytest.raises(FieldParseError) as exc_info:
            table.parse(parser, {})
        assert exc_info.value.field == "active"

    def test_duplicate_through_alias(self, table: ObjectParser[dict[str, Any]]) -> None:
        """A field given under both its name and an alias is a duplicate."""
        parser = ObjectTokenParser({"name": "n", "tags": "a", "tag": "b"})
        with pytest.raises(FieldParseError, match="more than once"):
            table.parse(parser, {}, on_deprecated=MagicMock())

    def test_deprecated_alias_uses_call_hook(self, table: ObjectParser[dict[str, Any]]) -> None:
        """A per-call hook overrides the process-wide one."""
        hook = MagicMock()
        result = table.parse(ObjectTokenParser({"name": "n", "tag": "x"}), {}, on_deprecated=hook)
        assert result["tags"] == ["x"]
        hook.assert_called_once_with("tag", "tags")

    def test_deprecated_alias_uses_global_hook(self, table: ObjectParser[dict[str, Any]]) -> None:
        """Without a per-call hook the installed hook is used."""
        hook = MagicMock()
        set_deprecation_hook(hook)
        table.parse(ObjectTokenParser({"name": "n", "tag": "x"}), {})
        hook.assert_called_once_with("tag", "tags")

    def test_default_hook_logs_warning(
        self, table: ObjectParser[dict[str, Any]], caplog: pytest.LogCaptureFixture
    ) -> None:
        """The default hook logs a warning."""
        assert get_deprecation_hook() is log_deprecation
        table.parse(ObjectTokenParser({"name": "n", "tag": "x"}), {})
        assert "Deprecated field [tag] used, expected [tags] instead" in caplog.text

    def test_requires_object(self, table: ObjectParser[dict[str, Any]]) -> None:
        """Parsing a non-object fails."""
        with pytest.raises(StructuralParseError, match="expected an object"):
            table.parse(ObjectTokenParser(["a"]), {})
