"""
Per-call context for the MCP dispatch core.

A CallContext is built for every tools/call request and handed to the tool
handler. It carries the request's correlation token, a logging function bound
to the active session, and read access to the resource registry. Contexts are
never reused across requests and expose no way to modify a registry.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp_dispatch.resources import ResourceManager

# Correlation tokens and request IDs are opaque strings or integers
RequestId = str | int

# log(level, message) pushes a message to the connected peer
LogFunction = Callable[[str, str], None]


@dataclass
class CallContext:
    """
    Encapsulates the context of a single tool call.

    Attributes:
        tool_name: Name of the tool being called.
        progress_token: Correlation token from the request's _meta, if any.
        request_id: JSON-RPC request identifier.
        timestamp: When the request was received (UTC).
        meta: The raw _meta mapping from the request.
    """

    tool_name: str
    progress_token: RequestId | None
    _log: LogFunction = field(repr=False)
    _resources: ResourceManager = field(repr=False)
    request_id: RequestId | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    meta: dict[str, Any] = field(default_factory=dict)

    def log(self, level: str, message: str) -> None:
        """
        Send a log message to the connected peer.

        Fire-and-forget; nothing is returned or acknowledged.

        Args:
            level: Client log level (see mcp_dispatch.logging.LOG_LEVELS).
            message: Message text; the level prefix is added on send.
        """
        self._log(level, message)

    def debug(self, message: str) -> None:
        self.log("debug", message)

    def info(self, message: str) -> None:
        self.log("info", message)

    def warning(self, message: str) -> None:
        self.log("warning", message)

    def error(self, message: str) -> None:
        self.log("error", message)

    async def read_resource(self, uri: str) -> Any:
        """
        Read a registered resource from inside a tool handler.

        Raises:
            ResourceNotFoundError: If no resource or template matches uri.
            ResourceError: If the resource handler raises.
        """
        return await self._resources.get(uri)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the context to a dictionary for logging.

        Returns:
            Dictionary with context information.
        """
        return {
            "tool_name": self.tool_name,
            "progress_token": self.progress_token,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_request(
        cls,
        tool_name: str,
        meta: dict[str, Any] | None,
        log: LogFunction,
        resources: ResourceManager,
        request_id: RequestId | None = None,
    ) -> CallContext:
        """
        Create a CallContext from tools/call request parameters.

        Args:
            tool_name: Name of the tool being called.
            meta: The request's _meta mapping (may be None).
            log: Logging function bound to the active session.
            resources: Resource registry for read access.
            request_id: JSON-RPC request identifier.

        Returns:
            A new CallContext for this request only.
        """
        meta = dict(meta or {})
        return cls(
            tool_name=tool_name,
            progress_token=meta.get("progressToken"),
            _log=log,
            _resources=resources,
            request_id=request_id,
            timestamp=datetime.now(UTC),
            meta=meta,
        )
