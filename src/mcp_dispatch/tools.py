"""
Tool registry for the MCP dispatch core.

A Tool pairs a unique name with declared inputs and a handler called as
handler(args, context). ToolManager.call() validates that every required
input is present, passes undeclared keys through untouched, and coerces the
handler's return value to text.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcp_dispatch.errors import (
    MissingArgumentError,
    ToolExecutionError,
    ToolNotFoundError,
)
from mcp_dispatch.logging import get_logger
from mcp_dispatch.registry import NamedRegistry, call_handler, coerce_text
from mcp_dispatch.schema import (
    InputSpec,
    function_handler,
    input_schema,
    inputs_from_function,
    missing_required,
)

if TYPE_CHECKING:
    from mcp_dispatch.context import CallContext

logger = get_logger(__name__)

# handler(args, context) -> result (may be awaitable)
ToolHandler = Callable[[dict[str, Any], "CallContext"], Any]


@dataclass(frozen=True)
class ToolConfig:
    """
    Registration settings for a tool.

    Attributes:
        description: Human-readable description.
        inputs: Declared inputs for a handler(args, context) callable. None
            means the handler is a keyword-style function whose signature
            supplies the inputs (see Tool.from_function).
    """

    description: str = ""
    inputs: Sequence[InputSpec] | None = None


@dataclass(frozen=True)
class Tool:
    """
    A registered tool.

    Attributes:
        name: Unique tool name.
        description: Human-readable description.
        inputs: Declared inputs in order.
        handler: Callable invoked as handler(args, context).
    """

    name: str
    handler: ToolHandler
    description: str = ""
    inputs: tuple[InputSpec, ...] = field(default_factory=tuple)

    @classmethod
    def from_function(
        cls,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
    ) -> Tool:
        """
        Create a Tool from a keyword-style function.

        Inputs come from the function signature; a ctx/context parameter
        receives the CallContext.

        Example:
            >>> def add(a: int, b: int) -> int:
            ...     return a + b
            >>> Tool.from_function(add).inputs[0].name
            'a'
        """
        return cls(
            name=name or func.__name__,
            handler=function_handler(func, with_context=True),
            description=description
            if description is not None
            else (func.__doc__ or "").strip(),
            inputs=tuple(inputs_from_function(func)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return listing metadata (no handler)."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": input_schema(self.inputs),
        }


class ToolManager:
    """
    Registry of tools with validated invocation.

    Example:
        >>> tools = ToolManager()
        >>> tools.add(Tool.from_function(add))
        >>> await tools.call("add", {"a": 1, "b": 2}, ctx)
        '3'
    """

    def __init__(self) -> None:
        """Initialize an empty tool registry."""
        self._registry: NamedRegistry[Tool] = NamedRegistry("tool")

    def add(self, tool: Tool) -> Tool:
        """
        Register a tool.

        Raises:
            DuplicateNameError: If the name is already registered.
            RegistryLockedError: If the session has connected.
        """
        self._registry.register(tool.name, tool)
        logger.debug(
            "Registered tool",
            extra={"tool": tool.name, "inputs": [spec.name for spec in tool.inputs]},
        )
        return tool

    def get(self, name: str) -> Tool | None:
        """Return the tool registered under name, or None."""
        return self._registry.get(name)

    def list(self) -> list[dict[str, Any]]:
        """Return tool metadata in registration order."""
        return [tool.to_dict() for tool in self._registry]

    def lock(self) -> None:
        """Reject further registrations."""
        self._registry.lock()

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    async def call(
        self,
        name: str,
        args: Mapping[str, Any] | None,
        context: CallContext,
    ) -> str:
        """
        Invoke a tool by name.

        Args:
            name: Registered tool name.
            args: Call arguments; undeclared keys are passed through.
            context: Per-call context handed to the handler.

        Returns:
            The handler's result coerced to text.

        Raises:
            ToolNotFoundError: If no tool has this name.
            MissingArgumentError: If a required input is absent.
            ToolExecutionError: If the handler raises; the message is preserved.
        """
        tool = self._registry.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        arguments = dict(args or {})
        missing = missing_required(tool.inputs, arguments)
        if missing is not None:
            raise MissingArgumentError(missing, details={"tool": name})

        try:
            result = await call_handler(tool.handler, arguments, context)
        except Exception as e:
            logger.warning(
                "Tool handler failed",
                extra={"tool": name, "exception_type": type(e).__name__},
            )
            raise ToolExecutionError(name, str(e)) from e

        return coerce_text(result)
