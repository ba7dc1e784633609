"""
Workspace roots advertised by the server.

Roots are inert records: no handler and no identity. The list is append-only
and keeps duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mcp_dispatch.errors import RegistryLockedError


@dataclass(frozen=True)
class Root:
    """
    A workspace root.

    Attributes:
        uri: Root URI (e.g., "file:///home/user/project").
        name: Optional display name.
    """

    uri: str
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert the root to listing format."""
        result: dict[str, Any] = {"uri": self.uri}
        if self.name is not None:
            result["name"] = self.name
        return result


class RootsManager:
    """Ordered, append-only list of roots."""

    def __init__(self) -> None:
        self._roots: list[Root] = []
        self._locked = False

    def add(self, root: Root) -> Root:
        """
        Append a root unconditionally.

        Raises:
            RegistryLockedError: If the session has connected.
        """
        if self._locked:
            raise RegistryLockedError("root")
        self._roots.append(root)
        return root

    def list(self) -> list[dict[str, Any]]:
        """Return all roots in insertion order."""
        return [root.to_dict() for root in self._roots]

    def lock(self) -> None:
        self._locked = True

    def __len__(self) -> int:
        return len(self._roots)
