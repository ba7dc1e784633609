"""
Pytest configuration for the MCP dispatch tests.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from mcp_dispatch.server import MCPServer

# Configure pytest-asyncio mode
pytest_plugins = ["pytest_asyncio"]


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (deselect with '-m \"not integration\"')",
    )


class MemoryTransport:
    """
    In-memory transport for driving a session from tests.

    Frames pushed with feed() are returned by receive() in order; close()
    queues EOF. Everything the server sends is kept in sent.
    """

    def __init__(self) -> None:
        self._inbound: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[Any] = []
        self.opened = False

    async def open(self) -> None:
        self.opened = True

    async def receive(self) -> str | None:
        return await self._inbound.get()

    def send(self, message: dict[str, Any] | str) -> None:
        self.sent.append(message)

    def feed(self, frame: dict[str, Any] | str) -> None:
        if not isinstance(frame, str):
            frame = json.dumps(frame)
        self._inbound.put_nowait(frame)

    def close(self) -> None:
        self._inbound.put_nowait(None)

    def responses(self) -> list[dict[str, Any]]:
        """Decoded messages that carry an id (responses, not notifications)."""
        decoded = [json.loads(m) if isinstance(m, str) else m for m in self.sent]
        return [m for m in decoded if "id" in m]

    def notifications(self) -> list[dict[str, Any]]:
        decoded = [json.loads(m) if isinstance(m, str) else m for m in self.sent]
        return [m for m in decoded if "id" not in m]


@pytest.fixture
def transport() -> MemoryTransport:
    """Create an in-memory transport."""
    return MemoryTransport()


@pytest.fixture
def demo_server() -> MCPServer:
    """Create a server with one of every capability registered."""
    server = MCPServer("demo", "1.0.0", instructions="Use the add tool.")

    @server.tool(description="Add two numbers")
    def add(a: int, b: int) -> int:
        return a + b

    @server.prompt(description="Greet someone")
    def greet(name: str) -> str:
        return f"Hello, {name}!"

    server.add_resource("file://a.txt", lambda: "hello", name="a")
    server.add_template("file://{name}.log", lambda v: "log:" + v["name"], name="logs")
    server.add_root("file:///workspace", "workspace")
    return server
