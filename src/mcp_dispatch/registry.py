"""
Name-keyed registries for the MCP dispatch core.

This module provides:
- NamedRegistry: an ordered, name-keyed store shared by tools and prompts
- call_handler: invoke a sync or async handler and await its result
- coerce_text: turn a handler return value into response text

Registries are written during setup and locked when the session connects;
after that they are only read, so no locking is needed for concurrent reads.
"""

from __future__ import annotations

import inspect
import json
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

from mcp_dispatch.errors import DuplicateNameError, RegistryLockedError

T = TypeVar("T")


async def call_handler(handler: Callable[..., Any], *args: Any) -> Any:
    """
    Call a handler and await the result if it is awaitable.

    Args:
        handler: Plain function or coroutine function.
        *args: Positional arguments for the handler.

    Returns:
        The handler's (awaited) return value.
    """
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def coerce_text(value: Any) -> str:
    """
    Convert a handler return value to response text.

    Strings pass through, dicts and lists become indented JSON, None becomes
    an empty string and anything else goes through str().
    """
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, default=str)
    return str(value)


class NamedRegistry(Generic[T]):
    """
    Ordered registry mapping unique names to entries.

    Duplicate names are rejected. Iteration and listing follow registration
    order.

    Example:
        >>> registry: NamedRegistry[Tool] = NamedRegistry("tool")
        >>> registry.register("add", add_tool)
        >>> registry.get("add") is add_tool
        True
    """

    def __init__(self, kind: str) -> None:
        """
        Initialize an empty registry.

        Args:
            kind: Human-readable entry kind used in error messages.
        """
        self.kind = kind
        self._entries: dict[str, T] = {}
        self._locked = False

    def register(self, name: str, entry: T) -> T:
        """
        Register an entry under the given name.

        Args:
            name: Unique entry name.
            entry: The entry to store.

        Returns:
            The stored entry.

        Raises:
            DuplicateNameError: If the name is already registered.
            RegistryLockedError: If the registry has been locked.
        """
        if self._locked:
            raise RegistryLockedError(self.kind)
        if name in self._entries:
            raise DuplicateNameError(self.kind, name)
        self._entries[name] = entry
        return entry

    def get(self, name: str) -> T | None:
        """Return the entry for a name, or None if not found."""
        return self._entries.get(name)

    def names(self) -> list[str]:
        """Return registered names in registration order."""
        return list(self._entries)

    def values(self) -> list[T]:
        """Return registered entries in registration order."""
        return list(self._entries.values())

    def lock(self) -> None:
        """Make the registry read-only."""
        self._locked = True

    @property
    def locked(self) -> bool:
        """Whether the registry rejects further registrations."""
        return self._locked

    def __contains__(self, name: object) -> bool:
        """Check if a name is registered (for 'in' operator)."""
        return name in self._entries

    def __iter__(self) -> Iterator[T]:
        return iter(self.values())

    def __len__(self) -> int:
        """Return the number of registered entries."""
        return len(self._entries)
