"""MCP Protocol layer for JSON-RPC communication."""

from mcp_server_kit.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    JsonRpcError,
    JsonRpcMessage,
    decode,
    decode_batch,
    encode,
    encode_batch,
    from_dict,
    to_dict,
)
from mcp_server_kit.protocol.lifecycle import (
    MCP_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    LifecycleManager,
    LifecycleState,
    ProtocolError,
)

__all__ = [
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "JsonRpcError",
    "JsonRpcMessage",
    "LifecycleManager",
    "LifecycleState",
    "MCP_PROTOCOL_VERSION",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "ProtocolError",
    "SUPPORTED_PROTOCOL_VERSIONS",
    "decode",
    "decode_batch",
    "encode",
    "encode_batch",
    "from_dict",
    "to_dict",
]
