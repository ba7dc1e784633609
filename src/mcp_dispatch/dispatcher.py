"""
Request dispatch for the MCP dispatch core.

The RequestDispatcher is the only component that talks to the transport. On
connect it locks the registries, negotiates capabilities, and binds one
handler per request kind: always-on kinds (initialize, ping, logging) plus
the list/invoke pair of every advertised capability. Request kinds of an
empty registry get no handler, so the session loop rejects them as unknown
methods.

Session states: UNCONNECTED -> NEGOTIATING -> SERVING. There is no way back
and no partial-serving state.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from mcp_dispatch.capabilities import CapabilityNegotiator, CapabilitySet
from mcp_dispatch.context import CallContext, RequestId
from mcp_dispatch.errors import (
    FailedPreconditionError,
    InvalidArgumentError,
    ResourceNotFoundError,
    SessionNotReadyError,
)
from mcp_dispatch.logging import (
    LOG_LEVELS,
    format_log_message,
    get_logger,
    is_valid_level,
    level_rank,
)
from mcp_dispatch.protocol import format_notification

if TYPE_CHECKING:
    from mcp_dispatch.prompts import PromptManager
    from mcp_dispatch.resources import ResourceManager
    from mcp_dispatch.roots import RootsManager
    from mcp_dispatch.tools import ToolManager
    from mcp_dispatch.transport import Transport

logger = get_logger(__name__)

PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

RESOURCE_NOT_FOUND_TEXT = "Resource not found"

# handler(params, request_id) -> result
RequestHandler = Callable[[dict[str, Any], RequestId | None], Awaitable[Any]]


class SessionState(str, Enum):
    """Lifecycle of the single session a process serves."""

    UNCONNECTED = "unconnected"
    NEGOTIATING = "negotiating"
    SERVING = "serving"


def _require_str(params: Mapping[str, Any], key: str) -> str:
    """Return params[key] as a non-empty string or raise InvalidArgumentError."""
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError(
            f"Parameter '{key}' is required",
            details={"param": key},
        )
    return value


def _optional_mapping(params: Mapping[str, Any], key: str) -> dict[str, Any]:
    """Return params[key] as a dict, treating a missing value as empty."""
    value = params.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidArgumentError(
            f"Parameter '{key}' must be an object",
            details={"param": key, "type": type(value).__name__},
        )
    return value


class RequestDispatcher:
    """
    Binds protocol request kinds to registry operations.

    Example:
        >>> dispatcher = RequestDispatcher(resources, tools, prompts, roots,
        ...                                server_name="demo", server_version="1.0.0")
        >>> await dispatcher.connect(transport)
        >>> handler = dispatcher.get_handler("tools/list")
        >>> await handler({}, 1)
        {'tools': [...]}
    """

    def __init__(
        self,
        resources: ResourceManager,
        tools: ToolManager,
        prompts: PromptManager,
        roots: RootsManager,
        *,
        server_name: str,
        server_version: str,
        instructions: str | None = None,
        client_log_level: str = "debug",
    ) -> None:
        """
        Initialize an unconnected dispatcher.

        Args:
            resources: Static resources and templates.
            tools: Tool registry.
            prompts: Prompt registry.
            roots: Roots list.
            server_name: Name reported in serverInfo.
            server_version: Version reported in serverInfo.
            instructions: Optional usage instructions returned on initialize.
            client_log_level: Minimum level forwarded to the peer until it
                sends logging/setLevel.
        """
        self.resources = resources
        self.tools = tools
        self.prompts = prompts
        self.roots = roots
        self.server_name = server_name
        self.server_version = server_version
        self.instructions = instructions
        self.state = SessionState.UNCONNECTED
        self.capabilities: CapabilitySet | None = None
        self._negotiator = CapabilityNegotiator(resources, tools, prompts, roots)
        self._handlers: dict[str, RequestHandler] = {}
        self._transport: Transport | None = None
        self._client_log_level = "debug"
        self.set_client_log_level(client_log_level)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self, transport: Transport) -> CapabilitySet:
        """
        Negotiate capabilities, bind handlers, and start serving.

        Args:
            transport: Transport to attach; opened before SERVING is entered.

        Returns:
            The advertised capability set.

        Raises:
            FailedPreconditionError: If connect was already called.
        """
        if self.state is not SessionState.UNCONNECTED:
            raise FailedPreconditionError(
                f"Cannot connect: session is {self.state.value}",
                details={"state": self.state.value},
            )

        self.state = SessionState.NEGOTIATING
        logger.debug("Negotiating capabilities")

        for registry in (self.resources, self.tools, self.prompts, self.roots):
            registry.lock()

        capabilities = self._negotiator.negotiate()
        self.capabilities = capabilities
        self._bind_handlers(capabilities)
        await transport.open()

        self._transport = transport
        self.state = SessionState.SERVING
        logger.info(
            "Session serving",
            extra={
                "capabilities": sorted(capabilities.to_dict()),
                "methods": sorted(self._handlers),
            },
        )
        return capabilities

    @property
    def is_serving(self) -> bool:
        return self.state is SessionState.SERVING

    # -------------------------------------------------------------------------
    # Handler table
    # -------------------------------------------------------------------------

    def _bind_handlers(self, capabilities: CapabilitySet) -> None:
        """Fill the handler table once; it never changes afterwards."""
        handlers: dict[str, RequestHandler] = {
            "initialize": self._handle_initialize,
            "notifications/initialized": self._handle_initialized,
            "ping": self._handle_ping,
            "logging/setLevel": self._handle_set_level,
        }

        if capabilities.resources:
            handlers["resources/list"] = self._handle_list_resources
            handlers["resources/templates/list"] = self._handle_list_templates
            handlers["resources/read"] = self._handle_read_resource

        if capabilities.tools:
            handlers["tools/list"] = self._handle_list_tools
            handlers["tools/call"] = self._handle_call_tool

        if capabilities.prompts:
            handlers["prompts/list"] = self._handle_list_prompts
            handlers["prompts/get"] = self._handle_get_prompt

        if capabilities.roots:
            handlers["roots/list"] = self._handle_list_roots

        self._handlers = handlers

    @property
    def handlers(self) -> Mapping[str, RequestHandler]:
        """Read-only view of the bound handler table."""
        return MappingProxyType(self._handlers)

    def has_handler(self, method: str) -> bool:
        return method in self._handlers

    def get_handler(self, method: str) -> RequestHandler | None:
        """Return the handler bound to method, or None if unbound."""
        return self._handlers.get(method)

    # -------------------------------------------------------------------------
    # Session services
    # -------------------------------------------------------------------------

    def send_log(self, level: str, message: str) -> None:
        """
        Push a log message to the connected peer.

        Messages below the level set by logging/setLevel are dropped.

        Raises:
            SessionNotReadyError: If the session is not SERVING.
            InvalidArgumentError: If level is not a client log level.
        """
        if self.state is not SessionState.SERVING or self._transport is None:
            raise SessionNotReadyError("send log message", self.state.value)
        if not is_valid_level(level):
            raise InvalidArgumentError(
                f"Invalid log level: {level}",
                details={"level": level, "levels": LOG_LEVELS},
            )
        if level_rank(level) < level_rank(self._client_log_level):
            return

        self._transport.send(
            format_notification(
                "notifications/message",
                {
                    "level": level,
                    "logger": self.server_name,
                    "data": format_log_message(level, message),
                },
            )
        )

    def set_client_log_level(self, level: str) -> None:
        """
        Set the minimum level forwarded by send_log.

        Raises:
            InvalidArgumentError: If level is not a client log level.
        """
        if not is_valid_level(level):
            raise InvalidArgumentError(
                f"Invalid log level: {level}",
                details={"level": level, "levels": LOG_LEVELS},
            )
        self._client_log_level = level

    @property
    def client_log_level(self) -> str:
        return self._client_log_level

    def create_context(
        self,
        tool_name: str,
        meta: dict[str, Any] | None,
        request_id: RequestId | None = None,
    ) -> CallContext:
        """
        Build the CallContext for one tool call.

        Raises:
            SessionNotReadyError: If the session is not SERVING.
        """
        if self.state is not SessionState.SERVING:
            raise SessionNotReadyError("create call context", self.state.value)
        return CallContext.from_request(
            tool_name,
            meta,
            log=self.send_log,
            resources=self.resources,
            request_id=request_id,
        )

    # -------------------------------------------------------------------------
    # Always-bound handlers
    # -------------------------------------------------------------------------

    async def _handle_initialize(
        self, params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        version = (
            requested if requested in SUPPORTED_PROTOCOL_VERSIONS else PROTOCOL_VERSION
        )
        result: dict[str, Any] = {
            "protocolVersion": version,
            "capabilities": (
                self.capabilities.to_dict() if self.capabilities is not None else {}
            ),
            "serverInfo": {
                "name": self.server_name,
                "version": self.server_version,
            },
        }
        if self.instructions:
            result["instructions"] = self.instructions
        logger.info(
            "Client initialized",
            extra={
                "protocol_version": version,
                "client": params.get("clientInfo"),
            },
        )
        return result

    async def _handle_initialized(
        self, _params: dict[str, Any], _request_id: RequestId | None
    ) -> None:
        return None

    async def _handle_ping(
        self, _params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        return {}

    async def _handle_set_level(
        self, params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        self.set_client_log_level(_require_str(params, "level"))
        return {}

    # -------------------------------------------------------------------------
    # Resources
    # -------------------------------------------------------------------------

    async def _handle_list_resources(
        self, _params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        return {"resources": self.resources.list_resources()}

    async def _handle_list_templates(
        self, _params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        return {"resourceTemplates": self.resources.list_templates()}

    async def _handle_read_resource(
        self, params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        """Read a resource; a missing resource yields a placeholder result."""
        uri = _require_str(params, "uri")
        try:
            return await self.resources.read(uri)
        except ResourceNotFoundError:
            logger.info("Resource not found", extra={"uri": uri})
            return {
                "contents": [
                    {
                        "uri": uri,
                        "mimeType": "text/plain",
                        "text": RESOURCE_NOT_FOUND_TEXT,
                    }
                ]
            }

    # -------------------------------------------------------------------------
    # Tools
    # -------------------------------------------------------------------------

    async def _handle_list_tools(
        self, _params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        return {"tools": self.tools.list()}

    async def _handle_call_tool(
        self, params: dict[str, Any], request_id: RequestId | None
    ) -> dict[str, Any]:
        name = _require_str(params, "name")
        arguments = _optional_mapping(params, "arguments")
        meta = _optional_mapping(params, "_meta")

        context = self.create_context(name, meta, request_id)
        text = await self.tools.call(name, arguments, context)
        return {"content": [{"type": "text", "text": text}]}

    # -------------------------------------------------------------------------
    # Prompts
    # -------------------------------------------------------------------------

    async def _handle_list_prompts(
        self, _params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        return {"prompts": self.prompts.list()}

    async def _handle_get_prompt(
        self, params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        name = _require_str(params, "name")
        arguments = _optional_mapping(params, "arguments")

        text = await self.prompts.call(name, arguments)
        result: dict[str, Any] = {
            "messages": [
                {
                    "role": "user",
                    "content": {"type": "text", "text": text},
                }
            ]
        }
        prompt = self.prompts.get(name)
        if prompt is not None and prompt.description:
            result["description"] = prompt.description
        return result

    # -------------------------------------------------------------------------
    # Roots
    # -------------------------------------------------------------------------

    async def _handle_list_roots(
        self, _params: dict[str, Any], _request_id: RequestId | None
    ) -> dict[str, Any]:
        return {"roots": self.roots.list()}
