"""
Transports for the MCP dispatch core.

The dispatch core needs only two things from a transport: receive the next
inbound frame and send an outbound message. StdioTransport implements that
contract with newline-delimited JSON over stdin/stdout.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Protocol, TextIO

from mcp_dispatch.logging import get_logger

logger = get_logger(__name__)


class Transport(Protocol):
    """Contract consumed by the dispatcher and the session loop."""

    async def open(self) -> None:
        """Prepare the transport for reading."""

    async def receive(self) -> str | None:
        """Return the next inbound frame, or None when the peer is gone."""

    def send(self, message: dict[str, Any] | str) -> None:
        """Write one outbound message; fire-and-forget."""


class StdioTransport:
    """
    Newline-delimited JSON-RPC over stdin/stdout.

    Example:
        >>> transport = StdioTransport()
        >>> await transport.open()
        >>> line = await transport.receive()
        >>> transport.send({"jsonrpc": "2.0", "id": 1, "result": {}})
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            stdin: Optional stdin stream. Uses sys.stdin if not provided.
            stdout: Optional stdout stream. Uses sys.stdout if not provided.
        """
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._reader: asyncio.StreamReader | None = None

    async def open(self) -> None:
        """Attach a non-blocking reader to stdin."""
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        await loop.connect_read_pipe(lambda: protocol, self._stdin)
        self._reader = reader

    async def receive(self) -> str | None:
        """
        Read the next non-empty line from stdin.

        Lines that are not valid UTF-8 are logged and skipped.

        Returns:
            The stripped line, or None on EOF.
        """
        if self._reader is None:
            await self.open()
        assert self._reader is not None

        while True:
            line = await self._reader.readline()
            if not line:
                return None
            try:
                text = line.decode("utf-8").strip()
            except UnicodeDecodeError as e:
                logger.warning(
                    "Invalid UTF-8 encoding in request",
                    extra={"error": str(e)},
                )
                continue
            if text:
                return text

    def send(self, message: dict[str, Any] | str) -> None:
        """Write a message to stdout as one line."""
        if not isinstance(message, str):
            message = json.dumps(message, separators=(",", ":"), default=str)
        self._stdout.write(message + "\n")
        self._stdout.flush()
