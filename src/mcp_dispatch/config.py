"""
Configuration management for the MCP dispatch server.

This module implements the AppConfig Pydantic model and configuration loading.

Configuration is loaded from multiple sources with layered precedence:
1. Built-in defaults (Pydantic model defaults)
2. YAML config file (--config path)
3. Environment variables (MCP_DISPATCH_* prefix, __ for nesting)
4. Command-line arguments (highest precedence)
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from mcp_dispatch.logging import LOG_LEVELS

_PROCESS_LOG_LEVELS = {"debug", "info", "warning", "error", "critical"}

# =============================================================================
# Server Configuration
# =============================================================================


class ServerConfig(BaseModel):
    """Application settings.

    Attributes:
        instructions: Optional usage instructions returned on initialize,
            overriding the ones the application set.
        app: Import path of the application ("package.module:attribute").
    """

    instructions: str | None = Field(
        default=None,
        description="Usage instructions returned on initialize",
    )
    app: str | None = Field(
        default=None,
        description="Application import path, e.g. 'myapp.server:server'",
    )

    @field_validator("app")
    @classmethod
    def validate_app(cls, v: str | None) -> str | None:
        """Require the module:attribute form."""
        if v is None:
            return v
        module, sep, attribute = v.partition(":")
        if not sep or not module or not attribute:
            raise ValueError(
                f"Invalid app path: {v}. Expected 'package.module:attribute'"
            )
        return v


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Process log level (stderr diagnostics).
        json_format: Whether process logs are JSON objects.
        log_to_stderr: Whether to log to stderr.
        client_level: Minimum level forwarded to the connected client.
    """

    level: str = Field(
        default="info",
        description="Log level: debug, info, warn, error, critical",
    )
    json_format: bool = Field(
        default=True,
        description="Emit process logs as JSON objects",
    )
    log_to_stderr: bool = Field(
        default=True,
        description="Whether to log to stderr",
    )
    client_level: str | None = Field(
        default=None,
        description="Minimum client log level until the client sets one",
    )

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate and normalize the process log level."""
        v_lower = v.lower()
        # Normalize 'warn' to 'warning'
        if v_lower == "warn":
            return "warning"
        if v_lower not in _PROCESS_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Must be one of: "
                f"{', '.join(sorted(_PROCESS_LOG_LEVELS))}"
            )
        return v_lower

    @field_validator("client_level")
    @classmethod
    def validate_client_level(cls, v: str | None) -> str | None:
        """Validate the client log level against the MCP levels."""
        if v is None:
            return v
        v_lower = v.lower()
        if v_lower not in LOG_LEVELS:
            raise ValueError(
                f"Invalid client log level: {v}. Must be one of: {', '.join(LOG_LEVELS)}"
            )
        return v_lower


# =============================================================================
# Main Application Configuration
# =============================================================================


class AppConfig(BaseModel):
    """
    Main application configuration model.

    Attributes:
        server: Application settings.
        logging: Logging configuration.
    """

    server: ServerConfig = Field(
        default_factory=ServerConfig,
        description="Server settings",
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )


# =============================================================================
# Configuration Loading Functions
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Args:
        base: The base dictionary.
        override: The dictionary with values to override.

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to appropriate Python type.

    Returns:
        Parsed value (bool, int, float, or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _load_env_config(prefix: str = "MCP_DISPATCH_") -> dict[str, Any]:
    """
    Load configuration from environment variables.

    Nested keys use a double underscore separator, for example
    MCP_DISPATCH_LOGGING__LEVEL=debug.

    Args:
        prefix: Environment variable prefix.

    Returns:
        Dictionary with configuration values.
    """
    result: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        config_key = key[len(prefix) :].lower()
        parts = config_key.split("__")

        current = result
        for part in parts[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        current[parts[-1]] = _parse_env_value(value)

    return result


def _parse_cli_args(args: list[str] | None = None) -> dict[str, Any]:
    """
    Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Dictionary with parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="MCP dispatch server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        "-c",
        type=str,
        help="Path to configuration file",
    )

    parser.add_argument(
        "--app",
        type=str,
        help="Application to serve, as 'package.module:attribute'",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "warning", "error"],
        help="Override log level",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parsed = parser.parse_args(args)

    result: dict[str, Any] = {}

    if parsed.config:
        result["_config_path"] = parsed.config

    if parsed.app:
        result["server"] = {"app": parsed.app}

    if parsed.log_level:
        result["logging"] = {"level": parsed.log_level}

    if parsed.debug:
        result.setdefault("logging", {})["level"] = "debug"

    return result


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = "MCP_DISPATCH_",
    cli_args: list[str] | None = None,
) -> AppConfig:
    """
    Load configuration from all sources with layered precedence.

    Later sources override earlier ones: defaults, YAML file, environment,
    command line.

    Args:
        config_path: Path to YAML configuration file. If None, uses the CLI
            --config argument when given.
        env_prefix: Prefix for environment variables.
        cli_args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Fully configured AppConfig instance.

    Raises:
        FileNotFoundError: If specified config file doesn't exist.
        ValidationError: If configuration is invalid.

    Example:
        >>> config = load_config(cli_args=["--app", "demo.server:server"])
        >>> config.server.app
        'demo.server:server'
    """
    config_dict: dict[str, Any] = {}

    cli_config = _parse_cli_args(cli_args)

    if config_path is None:
        if "_config_path" in cli_config:
            config_path = Path(cli_config.pop("_config_path"))
    else:
        cli_config.pop("_config_path", None)
        if isinstance(config_path, str):
            config_path = Path(config_path)

    if config_path is not None:
        yaml_config = _load_yaml_config(config_path)
        config_dict = _deep_merge(config_dict, yaml_config)

    env_config = _load_env_config(env_prefix)
    config_dict = _deep_merge(config_dict, env_config)

    config_dict = _deep_merge(config_dict, cli_config)

    return AppConfig(**config_dict)
