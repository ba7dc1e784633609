"""
Tests for the MCP server.

This test module validates:
- process_request turns frames into responses (success and error)
- run_session serves frames concurrently until EOF
- MCPServer registration, decorators and from_registrations
- serve() end to end over an in-memory transport
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import pytest

from mcp_dispatch.errors import (
    DuplicateNameError,
    DuplicateResourceError,
    SessionNotReadyError,
)
from mcp_dispatch.prompts import PromptConfig
from mcp_dispatch.roots import Root
from mcp_dispatch.schema import InputSpec
from mcp_dispatch.server import (
    MCPServer,
    ResourceConfig,
    TemplateConfig,
    process_request,
    run_session,
)
from mcp_dispatch.tools import ToolConfig

if TYPE_CHECKING:
    from conftest import MemoryTransport

# =============================================================================
# Helper Functions and Fixtures
# =============================================================================


def _request(method: str, request_id: int | str = 1, **params: Any) -> str:
    return json.dumps(
        {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params}
    )


# =============================================================================
# Tests for process_request Function
# =============================================================================


class TestProcessRequest:
    """Tests for the process_request function."""

    @pytest.mark.asyncio
    async def test_valid_request(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test processing a bound request."""
        await demo_server.dispatcher.connect(transport)

        response = await process_request(
            _request("tools/call", name="add", arguments={"a": 1, "b": 2}),
            demo_server.dispatcher,
        )

        assert response is not None
        data = json.loads(response)
        assert data["id"] == 1
        assert data["result"] == {"content": [{"type": "text", "text": "3"}]}

    @pytest.mark.asyncio
    async def test_malformed_json(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test that malformed JSON yields a parse error with a null id."""
        await demo_server.dispatcher.connect(transport)

        response = await process_request("{not json", demo_server.dispatcher)

        assert response is not None
        data = json.loads(response)
        assert data["id"] is None
        assert data["error"]["code"] == -32700

    @pytest.mark.asyncio
    async def test_unbound_method(self, transport: MemoryTransport) -> None:
        """Test that an unadvertised capability is an unknown method."""
        server = MCPServer("tools-only", "1.0.0")
        server.add_tool(lambda: "ok", name="noop")
        await server.dispatcher.connect(transport)

        response = await process_request(
            _request("resources/read", uri="file://a"), server.dispatcher
        )

        assert response is not None
        assert json.loads(response)["error"]["code"] == -32601

    @pytest.mark.asyncio
    async def test_missing_argument_error(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test that argument validation maps to invalid params."""
        await demo_server.dispatcher.connect(transport)

        response = await process_request(
            _request("tools/call", name="add", arguments={"a": 1}),
            demo_server.dispatcher,
        )

        assert response is not None
        error = json.loads(response)["error"]
        assert error["code"] == -32602
        assert error["data"]["details"]["param"] == "b"

    @pytest.mark.asyncio
    async def test_tool_not_found(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test calling an unknown tool."""
        await demo_server.dispatcher.connect(transport)

        response = await process_request(
            _request("tools/call", name="nope"), demo_server.dispatcher
        )

        assert response is not None
        assert json.loads(response)["error"]["code"] == -32003

    @pytest.mark.asyncio
    async def test_tool_failure(self, transport: MemoryTransport) -> None:
        """Test that a failing tool returns its message as an error."""
        server = MCPServer("fail", "1.0.0")

        @server.tool()
        def explode() -> str:
            raise ValueError("kaboom")

        await server.dispatcher.connect(transport)

        response = await process_request(
            _request("tools/call", "r-1", name="explode"), server.dispatcher
        )

        assert response is not None
        data = json.loads(response)
        assert data["id"] == "r-1"
        assert data["error"]["code"] == -32010
        assert data["error"]["message"] == "kaboom"

    @pytest.mark.asyncio
    async def test_notification_no_response(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test that notifications get no response."""
        await demo_server.dispatcher.connect(transport)

        response = await process_request(
            '{"jsonrpc":"2.0","method":"notifications/initialized"}',
            demo_server.dispatcher,
        )

        assert response is None

    @pytest.mark.asyncio
    async def test_unknown_notification_ignored(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test that unknown notifications are dropped silently."""
        await demo_server.dispatcher.connect(transport)

        response = await process_request(
            '{"jsonrpc":"2.0","method":"notifications/cancelled"}',
            demo_server.dispatcher,
        )

        assert response is None


# =============================================================================
# Tests for run_session
# =============================================================================


class TestRunSession:
    """Tests for the session loop."""

    @pytest.mark.asyncio
    async def test_serves_until_eof(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test that every request is answered before the loop returns."""
        await demo_server.dispatcher.connect(transport)
        transport.feed(_request("ping", 1))
        transport.feed(_request("tools/list", 2))
        transport.feed('{"jsonrpc":"2.0","method":"notifications/initialized"}')
        transport.close()

        await run_session(transport, demo_server.dispatcher)

        responses = {r["id"]: r for r in transport.responses()}
        assert set(responses) == {1, 2}
        assert responses[1]["result"] == {}
        assert responses[2]["result"]["tools"][0]["name"] == "add"

    @pytest.mark.asyncio
    async def test_requests_run_concurrently(self, transport: MemoryTransport) -> None:
        """Test that a slow request does not block later ones."""
        server = MCPServer("concurrent", "1.0.0")
        released = asyncio.Event()

        @server.tool()
        async def wait() -> str:
            await released.wait()
            return "waited"

        @server.tool()
        def release() -> str:
            released.set()
            return "released"

        await server.dispatcher.connect(transport)
        transport.feed(_request("tools/call", 1, name="wait"))
        transport.feed(_request("tools/call", 2, name="release"))
        transport.close()

        await asyncio.wait_for(run_session(transport, server.dispatcher), timeout=5)

        responses = transport.responses()
        assert [r["id"] for r in responses] == [2, 1]
        assert responses[1]["result"]["content"][0]["text"] == "waited"


# =============================================================================
# Tests for MCPServer Registration
# =============================================================================


class TestMCPServer:
    """Tests for MCPServer registration."""

    def test_server_creation(self) -> None:
        """Test that a new server has empty registries."""
        server = MCPServer("demo", "1.0.0", description="Demo server")

        assert server.name == "demo"
        assert server.version == "1.0.0"
        assert server.description == "Demo server"
        assert len(server.tools) == 0
        assert not server.dispatcher.is_serving

    def test_decorators_return_function(self) -> None:
        """Test that decorators register and return the function unchanged."""
        server = MCPServer("demo", "1.0.0")

        @server.tool()
        def add(a: int, b: int) -> int:
            return a + b

        @server.resource("file://readme", mime_type="text/markdown")
        def readme() -> str:
            """Project readme."""
            return "# Demo"

        @server.template("users://{id}")
        def user(variables: dict[str, str]) -> str:
            return variables["id"]

        assert add(1, 2) == 3
        assert "add" in server.tools
        assert server.resources.list_resources() == [
            {
                "uri": "file://readme",
                "name": "readme",
                "description": "Project readme.",
                "mimeType": "text/markdown",
            }
        ]
        assert server.resources.list_templates()[0]["name"] == "user"

    def test_add_tool_with_declared_inputs(self) -> None:
        """Test registering a handler(args, context) tool with explicit inputs."""
        server = MCPServer("demo", "1.0.0")

        tool = server.add_tool(
            lambda args, ctx: args["q"],
            name="search",
            description="Search",
            inputs=[InputSpec("q", "string")],
        )

        assert tool.to_dict()["inputSchema"]["required"] == ["q"]

    def test_duplicates_rejected(self, demo_server: MCPServer) -> None:
        """Test the duplicate registration policy."""
        with pytest.raises(DuplicateNameError):
            demo_server.add_tool(lambda: None, name="add")
        with pytest.raises(DuplicateNameError):
            demo_server.add_prompt(lambda: "x", name="greet")
        with pytest.raises(DuplicateResourceError):
            demo_server.add_resource("file://a.txt", lambda: "again")

    def test_list_capabilities(self, demo_server: MCPServer) -> None:
        """Test the registry snapshot."""
        snapshot = demo_server.list_capabilities()

        assert [t["name"] for t in snapshot["tools"]] == ["add"]
        assert [p["name"] for p in snapshot["prompts"]] == ["greet"]
        assert [r["uri"] for r in snapshot["resources"]] == ["file://a.txt"]
        assert [t["uriTemplate"] for t in snapshot["resourceTemplates"]] == [
            "file://{name}.log"
        ]
        assert snapshot["roots"] == [{"uri": "file:///workspace", "name": "workspace"}]

    def test_from_registrations(self) -> None:
        """Test building a server from registration tuples."""

        def add(a: int, b: int) -> int:
            return a + b

        server = MCPServer.from_registrations(
            "demo",
            "1.0.0",
            tools=[("add", add, ToolConfig(description="Add numbers"))],
            prompts=[
                (
                    "ask",
                    lambda args: f"Ask {args['who']}",
                    PromptConfig(inputs=[InputSpec("who", "string")]),
                )
            ],
            resources=[("a", lambda: "hello", ResourceConfig(uri="file://a.txt"))],
            templates=[
                (
                    "logs",
                    lambda v: "log:" + v["name"],
                    TemplateConfig(uri_template="file://{name}.log"),
                )
            ],
            roots=[Root("file:///w")],
            instructions="hi",
        )

        assert server.tools.get("add").description == "Add numbers"
        assert server.prompts.list()[0]["arguments"][0]["name"] == "who"
        assert server.resources.resource_count == 1
        assert server.resources.template_count == 1
        assert len(server.roots) == 1
        assert server.dispatcher.instructions == "hi"

    def test_send_log_before_serve(self, demo_server: MCPServer) -> None:
        """Test that logging to the client needs a connected session."""
        with pytest.raises(SessionNotReadyError):
            demo_server.send_log("info", "hello")


# =============================================================================
# Integration Tests
# =============================================================================


class _BrokenTransport:
    async def open(self) -> None:
        raise OSError("stdin closed")

    async def receive(self) -> str | None:
        return None

    def send(self, message: dict[str, Any] | str) -> None:
        pass


@pytest.mark.integration
class TestServerIntegration:
    """End-to-end tests over an in-memory transport."""

    @pytest.mark.asyncio
    async def test_full_session(
        self, demo_server: MCPServer, transport: MemoryTransport
    ) -> None:
        """Test a complete session from initialize to EOF."""
        transport.feed(
            _request(
                "initialize",
                1,
                protocolVersion="2025-06-18",
                capabilities={},
                clientInfo={"name": "test-client", "version": "0.1"},
            )
        )
        transport.feed('{"jsonrpc":"2.0","method":"notifications/initialized"}')
        transport.feed(_request("resources/read", 2, uri="file://a.txt"))
        transport.feed(_request("resources/read", 3, uri="file://missing"))
        transport.feed(_request("prompts/get", 4, name="greet", arguments={"name": "Ada"}))
        transport.close()

        await demo_server.serve(transport)

        responses = {r["id"]: r for r in transport.responses()}
        assert responses[1]["result"]["serverInfo"]["name"] == "demo"
        assert responses[2]["result"]["contents"][0]["text"] == "hello"
        assert responses[3]["result"]["contents"][0]["text"] == "Resource not found"
        assert (
            responses[4]["result"]["messages"][0]["content"]["text"] == "Hello, Ada!"
        )

    @pytest.mark.asyncio
    async def test_connect_failure_exits(self, demo_server: MCPServer) -> None:
        """Test that a failure while connecting terminates the process."""
        with pytest.raises(SystemExit) as exc_info:
            await demo_server.serve(_BrokenTransport())

        assert exc_info.value.code == 1
