"""
Error types for the MCP dispatch core.

This module defines the MCPError base class and the typed failures raised by
the registries and the request dispatcher. Registry code raises these errors
instead of building JSON-RPC error objects directly; the protocol layer maps
each error_code to a JSON-RPC error code.

Hierarchy:
- InvalidArgumentError -> MissingArgumentError
- NotFoundError -> ToolNotFoundError, PromptNotFoundError, ResourceNotFoundError
- AlreadyExistsError -> DuplicateResourceError, DuplicateNameError
- ExecutionError -> ToolExecutionError, PromptExecutionError, ResourceError
- FailedPreconditionError -> SessionNotReadyError, RegistryLockedError
- InternalError
"""

from __future__ import annotations

from typing import Any


class MCPError(Exception):
    """
    Base exception class for dispatch-core errors.

    MCPError instances are caught at the request boundary and mapped to
    JSON-RPC errors by mcp_dispatch.protocol.

    Attributes:
        error_code: Internal error code string (e.g., "invalid_argument",
            "not_found", "execution_failed").
        message: Human-readable error message.
        details: Optional structured details (e.g., tool name, URI).

    Example:
        >>> raise MCPError(
        ...     error_code="not_found",
        ...     message="Tool 'add' is not registered",
        ...     details={"tool": "add"},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize an MCPError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for serialization.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# =============================================================================
# Category Errors
# =============================================================================


class InvalidArgumentError(MCPError):
    """Error raised when a request carries invalid arguments."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class NotFoundError(MCPError):
    """Error raised when a lookup by name or URI finds nothing."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(error_code="not_found", message=message, details=details)


class AlreadyExistsError(MCPError):
    """Error raised when a registration collides with an existing entry."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            error_code="already_exists", message=message, details=details
        )


class ExecutionError(MCPError):
    """
    Error raised when a registered handler fails.

    The message is the handler's original exception message, unmodified.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            error_code="execution_failed", message=message, details=details
        )


class FailedPreconditionError(MCPError):
    """Error raised when an operation is invoked in the wrong session state."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            error_code="failed_precondition", message=message, details=details
        )


class InternalError(MCPError):
    """Error raised for unexpected internal failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(error_code="internal", message=message, details=details)


# =============================================================================
# Validation Errors
# =============================================================================


class MissingArgumentError(InvalidArgumentError):
    """
    Error raised when a required input is absent from the call arguments.

    Attributes:
        param_name: Name of the missing parameter.
    """

    def __init__(self, param_name: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=f"Missing required argument: '{param_name}'",
            details={"param": param_name, **(details or {})},
        )
        self.param_name = param_name


# =============================================================================
# Lookup Errors
# =============================================================================


class ToolNotFoundError(NotFoundError):
    """Error raised when a tool name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool '{name}' is not registered", details={"tool": name})
        self.name = name


class PromptNotFoundError(NotFoundError):
    """Error raised when a prompt name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Prompt '{name}' is not registered", details={"prompt": name}
        )
        self.name = name


class ResourceNotFoundError(NotFoundError):
    """
    Error raised when no static resource or template matches a URI.

    The dispatcher turns this into a placeholder response instead of a
    protocol error.
    """

    def __init__(self, uri: str) -> None:
        super().__init__(f"Resource '{uri}' not found", details={"uri": uri})
        self.uri = uri


# =============================================================================
# Registration Errors
# =============================================================================


class DuplicateResourceError(AlreadyExistsError):
    """Error raised when a static resource URI is registered twice."""

    def __init__(self, uri: str) -> None:
        super().__init__(
            f"Resource '{uri}' is already registered", details={"uri": uri}
        )
        self.uri = uri


class DuplicateNameError(AlreadyExistsError):
    """
    Error raised when a tool or prompt name is registered twice.

    Attributes:
        kind: Registry kind ("tool" or "prompt").
        name: The colliding name.
    """

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(
            f"{kind.capitalize()} '{name}' is already registered",
            details={"kind": kind, "name": name},
        )
        self.kind = kind
        self.name = name


# =============================================================================
# Execution Errors
# =============================================================================


class ToolExecutionError(ExecutionError):
    """Error raised when a tool handler raises."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message, details={"tool": name})
        self.name = name


class PromptExecutionError(ExecutionError):
    """Error raised when a prompt handler raises."""

    def __init__(self, name: str, message: str) -> None:
        super().__init__(message, details={"prompt": name})
        self.name = name


class ResourceError(ExecutionError):
    """Error raised when a resource or template handler raises."""

    def __init__(self, message: str, uri: str | None = None) -> None:
        super().__init__(message, details={"uri": uri} if uri is not None else None)
        self.uri = uri


# =============================================================================
# Session Errors
# =============================================================================


class SessionNotReadyError(FailedPreconditionError):
    """
    Error raised when an operation needs an active session before SERVING.

    This is a programming-contract violation, not a recoverable condition.
    """

    def __init__(self, operation: str, state: str) -> None:
        super().__init__(
            f"Cannot {operation}: session is {state}, call serve() first",
            details={"operation": operation, "state": state},
        )


class RegistryLockedError(FailedPreconditionError):
    """Error raised when a registry is modified after the session connected."""

    def __init__(self, kind: str) -> None:
        super().__init__(
            f"Cannot register {kind}: registries are locked once connected",
            details={"kind": kind},
        )
