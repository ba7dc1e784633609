"""
Tests for the capabilities module.
"""

from __future__ import annotations

from mcp_dispatch.capabilities import CapabilityNegotiator, CapabilitySet
from mcp_dispatch.logging import LOG_LEVELS
from mcp_dispatch.prompts import PromptManager
from mcp_dispatch.resources import ResourceManager
from mcp_dispatch.roots import Root, RootsManager
from mcp_dispatch.tools import Tool, ToolManager


def _negotiator(
    resources: ResourceManager | None = None,
    tools: ToolManager | None = None,
    prompts: PromptManager | None = None,
    roots: RootsManager | None = None,
) -> CapabilityNegotiator:
    return CapabilityNegotiator(
        resources or ResourceManager(),
        tools or ToolManager(),
        prompts or PromptManager(),
        roots or RootsManager(),
    )


class TestCapabilitySet:
    """Tests for CapabilitySet.to_dict."""

    def test_logging_always_advertised(self) -> None:
        """Test that an empty set still advertises logging with its levels."""
        assert CapabilitySet().to_dict() == {"logging": {"levels": LOG_LEVELS}}

    def test_all_capabilities(self) -> None:
        """Test a set with every capability."""
        data = CapabilitySet(resources=True, tools=True, prompts=True, roots=True).to_dict()

        assert set(data) == {"resources", "logging", "tools", "prompts", "roots"}
        assert data["tools"] == {}


class TestCapabilityNegotiator:
    """Tests for CapabilityNegotiator.negotiate."""

    def test_empty_registries(self) -> None:
        """Test that empty registries advertise only logging."""
        assert _negotiator().negotiate() == CapabilitySet()

    def test_tools_only(self) -> None:
        """Test that one tool advertises tools and nothing else."""
        tools = ToolManager()
        tools.add(Tool(name="t", handler=lambda args, ctx: None))

        capabilities = _negotiator(tools=tools).negotiate()

        assert capabilities.tools
        assert not capabilities.resources
        assert not capabilities.prompts
        assert not capabilities.roots

    def test_templates_only_advertise_resources(self) -> None:
        """Test that templates alone are enough for the resources capability."""
        resources = ResourceManager()
        resources.add_template("file://{name}", "files", lambda v: v["name"])

        assert _negotiator(resources=resources).negotiate().resources

    def test_roots(self) -> None:
        """Test that roots are advertised when present."""
        roots = RootsManager()
        roots.add(Root("file:///w"))

        assert _negotiator(roots=roots).negotiate().roots
