"""JSON-RPC 2.0 message model, parsing and formatting.

Implements the JSON-RPC 2.0 envelope used by every MCP transport. A single
``JsonRpcMessage`` type covers requests, notifications, success responses
and error responses; module-level functions convert between messages and
their wire form.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

JSONRPC_VERSION = "2.0"

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Maximum message size (10 MiB)
MAX_MESSAGE_SIZE = 10 * 1024 * 1024

MessageId = str | int | float | None


class JsonRpcError(Exception):
    """JSON-RPC error with code and message."""

    def __init__(self, code: int, message: str, data: Any | None = None) -> None:
        """Initialize the error.

        Args:
            code: JSON-RPC error code.
            message: Human-readable error message.
            data: Optional additional error data.
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_message(self, msg_id: MessageId = None) -> JsonRpcMessage:
        """Convert the error into an error response.

        Args:
            msg_id: ID of the request being answered (None if unknown).

        Returns:
            Error response message.
        """
        return JsonRpcMessage.failure(msg_id, self.code, self.message, self.data)


@dataclass
class JsonRpcMessage:
    """A JSON-RPC 2.0 message.

    Exactly one of two shapes holds: a request/notification (``method`` set)
    or a response (``result`` xor ``error`` set). ``id is None`` marks a
    notification.
    """

    id: MessageId = None
    method: str = ""
    params: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    error: dict[str, Any] | None = None
    jsonrpc: str = JSONRPC_VERSION

    @classmethod
    def request(
        cls, msg_id: MessageId, method: str, params: dict[str, Any] | None = None
    ) -> JsonRpcMessage:
        """Create a request expecting a response."""
        return cls(id=msg_id, method=method, params=params)

    @classmethod
    def notification(cls, method: str, params: dict[str, Any] | None = None) -> JsonRpcMessage:
        """Create a notification (no id, never answered)."""
        return cls(method=method, params=params)

    @classmethod
    def success(cls, msg_id: MessageId, result: dict[str, Any]) -> JsonRpcMessage:
        """Create a success response.

        Args:
            msg_id: Request ID to echo back.
            result: Result payload.

        Returns:
            Response message.
        """
        return cls(id=msg_id, result=result)

    @classmethod
    def failure(
        cls,
        msg_id: MessageId,
        code: int,
        message: str,
        data: Any | None = None,
    ) -> JsonRpcMessage:
        """Create an error response.

        Args:
            msg_id: Request ID (or None for parse errors).
            code: Error code.
            message: Error message.
            data: Optional error data.

        Returns:
            Error response message.
        """
        error_obj: dict[str, Any] = {
            "code": code,
            "message": message,
        }
        if data is not None:
            error_obj["data"] = data
        return cls(id=msg_id, error=error_obj)

    @property
    def is_response(self) -> bool:
        """True for success and error responses."""
        return self.result is not None or self.error is not None

    @property
    def is_request(self) -> bool:
        """True for requests that expect a response."""
        return not self.is_response and self.id is not None

    @property
    def is_notification(self) -> bool:
        """True for notifications (no id)."""
        return not self.is_response and self.id is None

    @property
    def error_code(self) -> int | None:
        """Error code of an error response, None otherwise."""
        if self.error is None:
            return None
        return self.error.get("code")


def _valid_id(value: Any) -> bool:
    # bool is a subclass of int but is not a valid JSON-RPC id
    if isinstance(value, bool):
        return False
    return value is None or isinstance(value, str | int | float)


def from_dict(data: Any) -> JsonRpcMessage:
    """Build a message from an already JSON-decoded value.

    Args:
        data: Decoded JSON value.

    Returns:
        Parsed message.

    Raises:
        JsonRpcError: If the value is not a valid JSON-RPC message.
    """
    if not isinstance(data, dict):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: message must be an object")

    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: jsonrpc must be '2.0'")

    has_result = "result" in data
    has_error = "error" in data

    if has_result or has_error:
        if has_result and has_error:
            raise JsonRpcError(
                INVALID_REQUEST, "Invalid Request: response cannot carry both result and error"
            )
        if "method" in data:
            raise JsonRpcError(
                INVALID_REQUEST, "Invalid Request: response cannot carry a method"
            )
        if "id" not in data:
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request: response must include id")
        msg_id = data["id"]
        if not _valid_id(msg_id):
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request: id must be string or number")

        if has_result:
            result = data["result"]
            if not isinstance(result, dict):
                raise JsonRpcError(INVALID_REQUEST, "Invalid Request: result must be an object")
            if msg_id is None:
                raise JsonRpcError(INVALID_REQUEST, "Invalid Request: result must have an id")
            return JsonRpcMessage(id=msg_id, result=result)

        error = data["error"]
        if (
            not isinstance(error, dict)
            or isinstance(error.get("code"), bool)
            or not isinstance(error.get("code"), int)
            or not isinstance(error.get("message"), str)
        ):
            raise JsonRpcError(INVALID_REQUEST, "Invalid Request: malformed error object")
        return JsonRpcMessage(id=msg_id, error=error)

    method = data.get("method")
    if not isinstance(method, str) or not method:
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: method must be a non-empty string")

    params = data.get("params")
    if params is not None and not isinstance(params, dict):
        raise JsonRpcError(INVALID_PARAMS, "Invalid params: params must be an object")

    msg_id = data.get("id")
    if not _valid_id(msg_id):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: id must be string or number")

    return JsonRpcMessage(id=msg_id, method=method, params=params)


def parse_json(raw: str) -> Any:
    """Parse raw JSON text, enforcing the size limit.

    Raises:
        JsonRpcError: With PARSE_ERROR if too large or not valid JSON.
    """
    # Check message size before parsing to prevent DoS
    if len(raw) > MAX_MESSAGE_SIZE:
        raise JsonRpcError(
            PARSE_ERROR, f"Message too large: {len(raw)} bytes exceeds {MAX_MESSAGE_SIZE} limit"
        )

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise JsonRpcError(PARSE_ERROR, f"Parse error: {e}") from e


def decode(raw: str) -> JsonRpcMessage:
    """Parse a single JSON-RPC message from a string.

    Args:
        raw: Raw JSON string.

    Returns:
        Parsed message.

    Raises:
        JsonRpcError: If the message is invalid.
    """
    return from_dict(parse_json(raw))


def decode_values(values: list[Any]) -> list[JsonRpcMessage]:
    """Decode a list of JSON-decoded values, all or nothing."""
    if not values:
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: empty batch")
    return [from_dict(item) for item in values]


def decode_batch(raw: str) -> list[JsonRpcMessage]:
    """Parse a JSON array of messages.

    A single malformed element fails the whole batch.

    Raises:
        JsonRpcError: If the input is not an array or an element is invalid.
    """
    data = parse_json(raw)
    if not isinstance(data, list):
        raise JsonRpcError(INVALID_REQUEST, "Invalid Request: batch must be an array")
    return decode_values(data)


def to_dict(message: JsonRpcMessage) -> dict[str, Any]:
    """Convert a message to its wire dictionary.

    Raises:
        ValueError: If the message state is inconsistent.
    """
    data: dict[str, Any] = {"jsonrpc": message.jsonrpc}

    if message.error is not None:
        if message.result is not None:
            raise ValueError("Message cannot carry both result and error")
        data["error"] = message.error
        data["id"] = message.id
    elif message.result is not None:
        if message.id is None:
            raise ValueError("Result message must have an id")
        data["result"] = message.result
        data["id"] = message.id
    else:
        if not message.method:
            raise ValueError("Request message must have a method")
        data["method"] = message.method
        if message.params is not None:
            data["params"] = message.params
        if message.id is not None:
            data["id"] = message.id

    return data


def encode(message: JsonRpcMessage) -> str:
    """Serialize a message to compact JSON."""
    return json.dumps(to_dict(message), separators=(",", ":"))


def encode_batch(messages: list[JsonRpcMessage]) -> str:
    """Serialize messages to a JSON array, preserving order."""
    return json.dumps([to_dict(m) for m in messages], separators=(",", ":"))
