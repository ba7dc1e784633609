"""
Prompt registry for the MCP dispatch core.

Prompts mirror tools without the call context: handler(args) returns the
prompt text, which the dispatcher wraps as a single user message.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from mcp_dispatch.errors import (
    MissingArgumentError,
    PromptExecutionError,
    PromptNotFoundError,
)
from mcp_dispatch.logging import get_logger
from mcp_dispatch.registry import NamedRegistry, call_handler, coerce_text
from mcp_dispatch.schema import (
    InputSpec,
    function_handler,
    inputs_from_function,
    missing_required,
    prompt_arguments,
)

logger = get_logger(__name__)

PromptHandler = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class PromptConfig:
    """
    Registration settings for a prompt.

    Attributes:
        description: Human-readable description.
        inputs: Declared inputs for a handler(args) callable. None means the
            handler is a keyword-style function (see Prompt.from_function).
    """

    description: str = ""
    inputs: Sequence[InputSpec] | None = None


@dataclass(frozen=True)
class Prompt:
    """A registered prompt."""

    name: str
    handler: PromptHandler
    description: str = ""
    inputs: tuple[InputSpec, ...] = field(default_factory=tuple)

    @classmethod
    def from_function(
        cls,
        func: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
    ) -> Prompt:
        """Create a Prompt from a keyword-style function."""
        return cls(
            name=name or func.__name__,
            handler=function_handler(func, with_context=False),
            description=description
            if description is not None
            else (func.__doc__ or "").strip(),
            inputs=tuple(inputs_from_function(func, with_context=False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return listing metadata (no handler)."""
        return {
            "name": self.name,
            "description": self.description,
            "arguments": prompt_arguments(self.inputs),
        }


class PromptManager:
    """Registry of prompts with validated invocation."""

    def __init__(self) -> None:
        self._registry: NamedRegistry[Prompt] = NamedRegistry("prompt")

    def add(self, prompt: Prompt) -> Prompt:
        """
        Register a prompt.

        Raises:
            DuplicateNameError: If the name is already registered.
            RegistryLockedError: If the session has connected.
        """
        self._registry.register(prompt.name, prompt)
        logger.debug("Registered prompt", extra={"prompt": prompt.name})
        return prompt

    def get(self, name: str) -> Prompt | None:
        """Return the prompt registered under name, or None."""
        return self._registry.get(name)

    def list(self) -> list[dict[str, Any]]:
        """Return prompt metadata in registration order."""
        return [prompt.to_dict() for prompt in self._registry]

    def lock(self) -> None:
        """Reject further registrations."""
        self._registry.lock()

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    async def call(self, name: str, args: Mapping[str, Any] | None) -> str:
        """
        Render a prompt by name.

        Raises:
            PromptNotFoundError: If no prompt has this name.
            MissingArgumentError: If a required input is absent.
            PromptExecutionError: If the handler raises; the message is preserved.
        """
        prompt = self._registry.get(name)
        if prompt is None:
            raise PromptNotFoundError(name)

        arguments = dict(args or {})
        missing = missing_required(prompt.inputs, arguments)
        if missing is not None:
            raise MissingArgumentError(missing, details={"prompt": name})

        try:
            result = await call_handler(prompt.handler, arguments)
        except Exception as e:
            logger.warning(
                "Prompt handler failed",
                extra={"prompt": name, "exception_type": type(e).__name__},
            )
            raise PromptExecutionError(name, str(e)) from e

        return coerce_text(result)
