"""
Command-line entry point for the MCP dispatch server.

Usage:
    mcp-dispatch --app myapp.server:server [--config config.yml] [--debug]

The --app target is either an MCPServer instance or a zero-argument factory
returning one. Any failure before the session is serving is written to
stderr and the process exits with status 1.
"""

from __future__ import annotations

import asyncio
import importlib
import sys

from mcp_dispatch.config import AppConfig, load_config
from mcp_dispatch.logging import get_logger, setup_logging
from mcp_dispatch.server import MCPServer

logger = get_logger(__name__)


def load_app(app_path: str) -> MCPServer:
    """
    Import the server referenced by "package.module:attribute".

    Args:
        app_path: Import path of an MCPServer or a factory returning one.

    Returns:
        The MCPServer instance.

    Raises:
        ImportError: If the module cannot be imported.
        AttributeError: If the attribute does not exist.
        TypeError: If the target is not an MCPServer (or factory for one).
    """
    module_name, _, attribute = app_path.partition(":")
    module = importlib.import_module(module_name)
    target = getattr(module, attribute)

    if not isinstance(target, MCPServer) and callable(target):
        target = target()

    if not isinstance(target, MCPServer):
        raise TypeError(
            f"'{app_path}' is {type(target).__name__}, expected MCPServer"
        )
    return target


def run(config: AppConfig) -> None:
    """Load the configured application and serve it on stdio."""
    if config.server.app is None:
        raise ValueError("No application configured; pass --app module:attribute")

    server = load_app(config.server.app)
    if config.logging.client_level is not None:
        server.dispatcher.set_client_log_level(config.logging.client_level)
    if config.server.instructions is not None:
        server.dispatcher.instructions = config.server.instructions
    asyncio.run(server.serve())


def main(argv: list[str] | None = None) -> int:
    """
    Run the server from the command line.

    Returns:
        Process exit status.
    """
    try:
        config = load_config(cli_args=argv)
        setup_logging(config.logging)
        run(config)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.exception("Error starting server")
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
