"""Shared base for the fluent, single-use template builders."""

from __future__ import annotations

from typing import Any

from watch_notifications.exceptions import ShapeValidationError


class SingleUseBuilder:
    """Builder that refuses to be touched again once ``build()`` has run.

    Subclasses call ``_check_open()`` at the top of every mutator and
    ``_close()`` inside ``build()``.
    """

    _built: bool = False

    def _check_open(self) -> None:
        if self._built:
            raise ShapeValidationError(
                f"{type(self).__name__} has already been built and cannot be reused"
            )

    def _close(self) -> None:
        self._check_open()
        self._built = True


def optional_tuple(values: list[Any]) -> tuple[Any, ...] | None:
    """Freeze a collected list, mapping an empty list to None."""
    return tuple(values) if values else None
