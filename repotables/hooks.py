"""Per-table interceptor hooks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


@dataclass(frozen=True)
class TableHooks:
    """Optional functions applied on a table's read and write paths.

    ``before_get`` and ``before_set`` must not perform I/O. They can, for
    example, fill in default values on read and strip them on write to keep
    the stored file small. ``after_connect`` runs once after the table's
    initial connect without blocking it; it may be a coroutine function.
    """

    before_get: Callable[[str, Any], Any] | None = None
    before_set: Callable[[str, Any], Any] | None = None
    after_connect: Callable[[], Awaitable[None] | None] | None = None

    def apply_get(self, key: str, value: Any) -> Any:
        if self.before_get is None:
            return value
        return self.before_get(key, value)

    def apply_set(self, key: str, value: Any) -> Any:
        if self.before_set is None:
            return value
        return self.before_set(key, value)
