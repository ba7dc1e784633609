"""
MCP server facade for the dispatch core.

MCPServer owns the five registries and the request dispatcher. Applications
register tools, prompts, resources, templates and roots explicitly (or
through the thin decorator forms, which register immediately), then call
serve(). serve() connects the dispatcher and runs the session loop: every
inbound frame is processed as its own asyncio task, so slow handlers do not
block other requests.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from mcp_dispatch.dispatcher import RequestDispatcher
from mcp_dispatch.errors import MCPError
from mcp_dispatch.logging import get_logger
from mcp_dispatch.prompts import Prompt, PromptConfig, PromptManager
from mcp_dispatch.protocol import (
    JSONRPCError,
    create_internal_error,
    create_method_not_found_error,
    format_error_response,
    format_success_response,
    mcp_error_to_jsonrpc_error,
    parse_request,
)
from mcp_dispatch.resources import (
    DEFAULT_MIME_TYPE,
    ResourceHandler,
    ResourceManager,
    ResourceTemplate,
    StaticResource,
    TemplateHandler,
)
from mcp_dispatch.roots import Root, RootsManager
from mcp_dispatch.schema import InputSpec
from mcp_dispatch.tools import Tool, ToolConfig, ToolManager
from mcp_dispatch.transport import StdioTransport, Transport

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class ResourceConfig:
    """Registration settings for a static resource."""

    uri: str
    description: str = ""
    mime_type: str = DEFAULT_MIME_TYPE


@dataclass(frozen=True)
class TemplateConfig:
    """Registration settings for a resource template."""

    uri_template: str
    description: str = ""
    mime_type: str = DEFAULT_MIME_TYPE


# =============================================================================
# Request Processing
# =============================================================================


async def process_request(
    request_json: str,
    dispatcher: RequestDispatcher,
) -> str | None:
    """
    Process a single JSON-RPC frame and return the response.

    This function handles the complete request lifecycle:
    1. Parse the JSON-RPC request
    2. Look up the handler bound for the method
    3. Invoke it with the request params and id
    4. Format the response (success or error)

    Args:
        request_json: Raw JSON string containing the request.
        dispatcher: Connected dispatcher holding the handler table.

    Returns:
        JSON string containing the response, or None for notifications.
    """
    request_id: str | int | None = None
    is_notification = False

    try:
        request = parse_request(request_json)
        request_id = request.id
        is_notification = request.is_notification

        handler = dispatcher.get_handler(request.method)
        if handler is None:
            if is_notification:
                logger.debug(
                    "Ignoring unknown notification",
                    extra={"method": request.method},
                )
                return None
            raise create_method_not_found_error(request.method)

        result = await handler(request.params, request_id)
        if is_notification:
            return None

        return format_success_response(request_id, result).to_json()

    except JSONRPCError as e:
        if is_notification:
            return None
        return format_error_response(request_id, e).to_json()

    except MCPError as e:
        if is_notification:
            logger.warning(
                "Error processing notification",
                extra={"error": str(e)},
            )
            return None
        jsonrpc_error = mcp_error_to_jsonrpc_error(e)
        return format_error_response(request_id, jsonrpc_error).to_json()

    except Exception as e:
        logger.exception(
            "Unexpected error processing request",
            extra={"request_id": request_id, "error": str(e)},
        )
        if is_notification:
            return None
        jsonrpc_error = create_internal_error(
            message=f"Internal server error: {type(e).__name__}",
            details={"exception": str(e)},
        )
        return format_error_response(request_id, jsonrpc_error).to_json()


async def run_session(transport: Transport, dispatcher: RequestDispatcher) -> None:
    """
    Serve requests until the transport reports EOF.

    Each frame is handled in its own task; responses are written as tasks
    finish, so they may arrive out of order. On EOF the loop waits for
    in-flight requests before returning.
    """
    pending: set[asyncio.Task[None]] = set()

    async def handle(frame: str) -> None:
        response = await process_request(frame, dispatcher)
        if response is not None:
            transport.send(response)

    try:
        while True:
            frame = await transport.receive()
            if frame is None:
                break
            task = asyncio.create_task(handle(frame))
            pending.add(task)
            task.add_done_callback(pending.discard)
    finally:
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Session closed")


# =============================================================================
# Server Facade
# =============================================================================


class MCPServer:
    """
    MCP server built from explicitly registered capabilities.

    Example:
        >>> server = MCPServer("demo", "1.0.0")
        >>> @server.tool()
        ... def add(a: int, b: int) -> int:
        ...     return a + b
        >>> server.add_resource("file://a.txt", lambda: "hello", name="a")
        >>> asyncio.run(server.serve())

    Attributes:
        resources: Static resources and templates.
        tools: Tool registry.
        prompts: Prompt registry.
        roots: Roots list.
        dispatcher: Request dispatcher (UNCONNECTED until serve()).
    """

    def __init__(
        self,
        name: str,
        version: str,
        description: str | None = None,
        instructions: str | None = None,
        client_log_level: str = "debug",
    ) -> None:
        """
        Initialize a server with empty registries.

        Args:
            name: Server name reported to clients.
            version: Server version reported to clients.
            description: Optional human-readable description.
            instructions: Optional usage instructions returned on initialize.
            client_log_level: Initial minimum level for client log messages.
        """
        self.name = name
        self.version = version
        self.description = description
        self.resources = ResourceManager()
        self.tools = ToolManager()
        self.prompts = PromptManager()
        self.roots = RootsManager()
        self.dispatcher = RequestDispatcher(
            self.resources,
            self.tools,
            self.prompts,
            self.roots,
            server_name=name,
            server_version=version,
            instructions=instructions,
            client_log_level=client_log_level,
        )

    @classmethod
    def from_registrations(
        cls,
        name: str,
        version: str,
        *,
        tools: Iterable[tuple[str, Callable[..., Any], ToolConfig]] = (),
        prompts: Iterable[tuple[str, Callable[..., Any], PromptConfig]] = (),
        resources: Iterable[tuple[str, ResourceHandler, ResourceConfig]] = (),
        templates: Iterable[tuple[str, TemplateHandler, TemplateConfig]] = (),
        roots: Iterable[Root] = (),
        **kwargs: Any,
    ) -> MCPServer:
        """
        Build a server from (name, handler, config) tuples per capability.

        Example:
            >>> server = MCPServer.from_registrations(
            ...     "demo", "1.0.0",
            ...     tools=[("add", add, ToolConfig(description="Add numbers"))],
            ...     resources=[("a", lambda: "hello", ResourceConfig(uri="file://a.txt"))],
            ... )
        """
        server = cls(name, version, **kwargs)
        for tool_name, handler, tool_config in tools:
            server.add_tool(
                handler,
                name=tool_name,
                description=tool_config.description,
                inputs=tool_config.inputs,
            )
        for prompt_name, handler, prompt_config in prompts:
            server.add_prompt(
                handler,
                name=prompt_name,
                description=prompt_config.description,
                inputs=prompt_config.inputs,
            )
        for resource_name, handler, resource_config in resources:
            server.add_resource(
                resource_config.uri,
                handler,
                name=resource_name,
                description=resource_config.description,
                mime_type=resource_config.mime_type,
            )
        for template_name, handler, template_config in templates:
            server.add_template(
                template_config.uri_template,
                handler,
                name=template_name,
                description=template_config.description,
                mime_type=template_config.mime_type,
            )
        for root in roots:
            server.add_root(root.uri, root.name)
        return server

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def add_tool(
        self,
        handler: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        inputs: Sequence[InputSpec] | None = None,
    ) -> Tool:
        """
        Register a tool.

        With inputs=None the handler is a keyword-style function and its
        signature supplies the inputs. Otherwise the handler is called as
        handler(args, context).
        """
        if inputs is None:
            tool = Tool.from_function(handler, name=name, description=description)
        else:
            tool = Tool(
                name=name or handler.__name__,
                handler=handler,
                description=description or "",
                inputs=tuple(inputs),
            )
        return self.tools.add(tool)

    def add_prompt(
        self,
        handler: Callable[..., Any],
        *,
        name: str | None = None,
        description: str | None = None,
        inputs: Sequence[InputSpec] | None = None,
    ) -> Prompt:
        """
        Register a prompt.

        With inputs=None the handler is a keyword-style function; otherwise
        it is called as handler(args).
        """
        if inputs is None:
            prompt = Prompt.from_function(handler, name=name, description=description)
        else:
            prompt = Prompt(
                name=name or handler.__name__,
                handler=handler,
                description=description or "",
                inputs=tuple(inputs),
            )
        return self.prompts.add(prompt)

    def add_resource(
        self,
        uri: str,
        handler: ResourceHandler,
        *,
        name: str | None = None,
        description: str = "",
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> StaticResource:
        """Register a static resource served at uri."""
        return self.resources.add_resource(
            uri,
            name or getattr(handler, "__name__", uri),
            handler,
            description=description,
            mime_type=mime_type,
        )

    def add_template(
        self,
        uri_template: str,
        handler: TemplateHandler,
        *,
        name: str | None = None,
        description: str = "",
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> ResourceTemplate:
        """Register a resource template; handler receives the captured variables."""
        return self.resources.add_template(
            uri_template,
            name or getattr(handler, "__name__", uri_template),
            handler,
            description=description,
            mime_type=mime_type,
        )

    def add_root(self, uri: str, name: str | None = None) -> Root:
        """Append a workspace root."""
        return self.roots.add(Root(uri=uri, name=name))

    # Decorator forms register at decoration time and return the function
    # unchanged.

    def tool(
        self, name: str | None = None, description: str | None = None
    ) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            self.add_tool(func, name=name, description=description)
            return func

        return decorator

    def prompt(
        self, name: str | None = None, description: str | None = None
    ) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            self.add_prompt(func, name=name, description=description)
            return func

        return decorator

    def resource(
        self,
        uri: str,
        *,
        name: str | None = None,
        description: str | None = None,
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            self.add_resource(
                uri,
                func,
                name=name,
                description=description
                if description is not None
                else (func.__doc__ or "").strip(),
                mime_type=mime_type,
            )
            return func

        return decorator

    def template(
        self,
        uri_template: str,
        *,
        name: str | None = None,
        description: str | None = None,
        mime_type: str = DEFAULT_MIME_TYPE,
    ) -> Callable[[F], F]:
        def decorator(func: F) -> F:
            self.add_template(
                uri_template,
                func,
                name=name,
                description=description
                if description is not None
                else (func.__doc__ or "").strip(),
                mime_type=mime_type,
            )
            return func

        return decorator

    # -------------------------------------------------------------------------
    # Introspection and session
    # -------------------------------------------------------------------------

    def list_capabilities(self) -> dict[str, list[dict[str, Any]]]:
        """Return the metadata snapshot of every registry."""
        return {
            "resources": self.resources.list_resources(),
            "resourceTemplates": self.resources.list_templates(),
            "tools": self.tools.list(),
            "prompts": self.prompts.list(),
            "roots": self.roots.list(),
        }

    def send_log(self, level: str, message: str) -> None:
        """
        Push a log message to the connected client.

        Raises:
            SessionNotReadyError: If serve() has not connected the session.
        """
        self.dispatcher.send_log(level, message)

    async def serve(self, transport: Transport | None = None) -> None:
        """
        Connect and serve until the transport closes.

        A failure while connecting is fatal: it is logged and the process
        exits with status 1.

        Args:
            transport: Transport to serve on. Uses stdio if not provided.
        """
        transport = transport if transport is not None else StdioTransport()
        try:
            await self.dispatcher.connect(transport)
        except Exception:
            logger.exception("Error starting server", extra={"server": self.name})
            sys.exit(1)

        logger.info(
            "MCP Server started",
            extra={
                "server": self.name,
                "version": self.version,
                "tools_count": len(self.tools),
                "prompts_count": len(self.prompts),
                "resources_count": len(self.resources),
                "roots_count": len(self.roots),
            },
        )
        await run_session(transport, self.dispatcher)
