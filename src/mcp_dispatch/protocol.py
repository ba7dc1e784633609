"""
JSON-RPC 2.0 framing for the MCP dispatch core.

Frames read by the transport are parsed here into JSONRPCRequest objects, and
handler results or failures are turned back into response frames. MCPError
categories map onto server error codes:

- invalid_argument -> -32602
- not_found -> -32003
- failed_precondition -> -32004
- already_exists -> -32007
- execution_failed -> -32010
- internal -> -32099
- anything else -> -32000
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from mcp_dispatch.errors import MCPError

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

ERROR_CODE_MAP: dict[str, int] = {
    "invalid_argument": INVALID_PARAMS,
    "not_found": -32003,
    "failed_precondition": -32004,
    "already_exists": -32007,
    "execution_failed": -32010,
    "internal": -32099,
}

DEFAULT_SERVER_ERROR = -32000

RequestId = str | int | None


class JSONRPCError(Exception):
    """Error object of a response frame; raised while parsing or dispatching."""

    def __init__(
        self, code: int, message: str, data: dict[str, Any] | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


@dataclass
class JSONRPCRequest:
    """
    An inbound request frame.

    A frame without an id is a notification and gets no response.
    """

    id: RequestId
    method: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return self.id is None


@dataclass
class JSONRPCResponse:
    """An outbound response frame carrying a result or an error."""

    id: RequestId
    result: Any = None
    error: JSONRPCError | None = None

    def to_dict(self) -> dict[str, Any]:
        frame: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.id}
        if self.error is not None:
            frame["error"] = self.error.to_dict()
        else:
            frame["result"] = self.result
        return frame

    def to_json(self) -> str:
        """Serialize to one line, as the stdio transport requires."""
        return json.dumps(self.to_dict(), separators=(",", ":"))


def _invalid_request(reason: str) -> JSONRPCError:
    return JSONRPCError(INVALID_REQUEST, f"Invalid Request: {reason}")


def parse_request(frame: str) -> JSONRPCRequest:
    """
    Parse one inbound frame.

    Raises:
        JSONRPCError: -32700 for malformed JSON, -32600 for a frame that is
            not a 2.0 request, -32602 when params is not an object.
    """
    try:
        data = json.loads(frame)
    except json.JSONDecodeError as e:
        raise JSONRPCError(PARSE_ERROR, f"Parse error: Invalid JSON - {e.msg}") from e

    if not isinstance(data, dict):
        raise _invalid_request("Request must be a JSON object")

    version = data.get("jsonrpc")
    if version is None:
        raise _invalid_request("Missing 'jsonrpc' field")
    if version != JSONRPC_VERSION:
        raise _invalid_request(f"jsonrpc must be '2.0', got '{version}'")

    method = data.get("method")
    if method is None:
        raise _invalid_request("Missing 'method' field")
    if not isinstance(method, str) or not method:
        raise _invalid_request("'method' must be a non-empty string")

    params = data.get("params")
    if params is None:
        params = {}
    elif not isinstance(params, dict):
        raise JSONRPCError(INVALID_PARAMS, "Invalid params: 'params' must be an object")

    return JSONRPCRequest(id=data.get("id"), method=method, params=params)


def format_success_response(request_id: RequestId, result: Any) -> JSONRPCResponse:
    return JSONRPCResponse(id=request_id, result=result)


def format_error_response(
    request_id: RequestId, error: JSONRPCError
) -> JSONRPCResponse:
    return JSONRPCResponse(id=request_id, error=error)


def format_notification(method: str, params: dict[str, Any]) -> dict[str, Any]:
    """Build a notification frame such as notifications/message."""
    return {"jsonrpc": JSONRPC_VERSION, "method": method, "params": params}


def mcp_error_to_jsonrpc_error(error: MCPError) -> JSONRPCError:
    """
    Map a typed failure onto a JSON-RPC error.

    The error category picks the code; the full MCPError goes into data.
    """
    return JSONRPCError(
        ERROR_CODE_MAP.get(error.error_code, DEFAULT_SERVER_ERROR),
        error.message,
        data=error.to_dict(),
    )


def create_method_not_found_error(method: str) -> JSONRPCError:
    """Error for a method with no bound handler."""
    return JSONRPCError(
        METHOD_NOT_FOUND,
        f"Method not found: {method}",
        data={
            "error_code": "not_found",
            "message": f"No handler bound for '{method}'",
            "details": {"method": method},
        },
    )


def create_internal_error(
    message: str, details: dict[str, Any] | None = None
) -> JSONRPCError:
    """Error for an unexpected exception escaping a handler."""
    return JSONRPCError(
        INTERNAL_ERROR,
        message,
        data={"error_code": "internal", "message": message, "details": details or {}},
    )
