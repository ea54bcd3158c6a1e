"""Transports: stdio and Streamable HTTP."""

from mcp_server_kit.transport.base import Transport
from mcp_server_kit.transport.http import (
    HttpEndpoint,
    HttpOptions,
    HttpRequest,
    HttpResponse,
    HttpState,
    HttpTransport,
)
from mcp_server_kit.transport.sessions import Session, SessionStore, SseEvent
from mcp_server_kit.transport.stdio import StdioTransport

__all__ = [
    "HttpEndpoint",
    "HttpOptions",
    "HttpRequest",
    "HttpResponse",
    "HttpState",
    "HttpTransport",
    "Session",
    "SessionStore",
    "SseEvent",
    "StdioTransport",
    "Transport",
]
