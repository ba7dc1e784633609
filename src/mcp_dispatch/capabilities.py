"""
Capability negotiation for the MCP dispatch core.

At connect time the negotiator counts the entries of every registry and
builds the capability set the server advertises. A registry with no entries
contributes nothing; logging is always advertised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mcp_dispatch.logging import LOG_LEVELS

if TYPE_CHECKING:
    from mcp_dispatch.prompts import PromptManager
    from mcp_dispatch.resources import ResourceManager
    from mcp_dispatch.roots import RootsManager
    from mcp_dispatch.tools import ToolManager


@dataclass(frozen=True)
class CapabilitySet:
    """
    Snapshot of advertised capabilities.

    Attributes:
        resources: Static resources or templates are registered.
        tools: At least one tool is registered.
        prompts: At least one prompt is registered.
        roots: At least one root is registered.
        logging: Always True.
    """

    resources: bool = False
    tools: bool = False
    prompts: bool = False
    roots: bool = False
    logging: bool = True

    def to_dict(self) -> dict[str, Any]:
        """
        Render the set as an MCP ServerCapabilities object.

        Returns:
            Dictionary with one key per advertised capability.
        """
        capabilities: dict[str, Any] = {}
        if self.resources:
            capabilities["resources"] = {}
        if self.logging:
            capabilities["logging"] = {"levels": list(LOG_LEVELS)}
        if self.tools:
            capabilities["tools"] = {}
        if self.prompts:
            capabilities["prompts"] = {}
        if self.roots:
            capabilities["roots"] = {}
        return capabilities


class CapabilityNegotiator:
    """Derives the CapabilitySet from registry contents."""

    def __init__(
        self,
        resources: ResourceManager,
        tools: ToolManager,
        prompts: PromptManager,
        roots: RootsManager,
    ) -> None:
        self.resources = resources
        self.tools = tools
        self.prompts = prompts
        self.roots = roots

    def negotiate(self) -> CapabilitySet:
        """Compute the capability set from current registry sizes."""
        return CapabilitySet(
            resources=self.resources.resource_count > 0
            or self.resources.template_count > 0,
            tools=len(self.tools) > 0,
            prompts=len(self.prompts) > 0,
            roots=len(self.roots) > 0,
            logging=True,
        )
