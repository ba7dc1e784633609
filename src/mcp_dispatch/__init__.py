"""
MCP Dispatch - capability registries and request dispatch for MCP servers.

This package keeps registries of tools, prompts, static resources, resource
templates and workspace roots, negotiates which capabilities a session
advertises, and routes inbound MCP requests to the registered handlers.
"""

from mcp_dispatch.context import CallContext
from mcp_dispatch.prompts import Prompt, PromptConfig
from mcp_dispatch.roots import Root
from mcp_dispatch.schema import InputSpec
from mcp_dispatch.server import MCPServer, ResourceConfig, TemplateConfig
from mcp_dispatch.tools import Tool, ToolConfig

__version__ = "0.1.0"

__all__ = [
    "CallContext",
    "InputSpec",
    "MCPServer",
    "Prompt",
    "PromptConfig",
    "ResourceConfig",
    "Root",
    "TemplateConfig",
    "Tool",
    "ToolConfig",
]
