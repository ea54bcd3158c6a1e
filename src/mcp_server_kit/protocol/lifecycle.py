"""MCP lifecycle management.

Handles the initialize handshake and tracks connection state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Supported MCP protocol versions (oldest first)
SUPPORTED_PROTOCOL_VERSIONS = ["2024-11-05", "2025-03-26", "2025-06-18"]
# Version to answer with when the client asks for an unknown one
MCP_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[-1]


class LifecycleState(Enum):
    """MCP server lifecycle states."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


class ProtocolError(Exception):
    """Raised when protocol constraints are violated."""

    pass


def negotiate_version(requested: str) -> str:
    """Pick the protocol version to answer with.

    Args:
        requested: Version requested by the client.

    Returns:
        The requested version if supported, else the latest supported one.
    """
    if requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return MCP_PROTOCOL_VERSION


@dataclass
class LifecycleManager:
    """Tracks the server's lifecycle state and the connected client."""

    state: LifecycleState = LifecycleState.UNINITIALIZED
    protocol_version: str | None = None
    client_info: dict[str, Any] | None = None
    client_capabilities: dict[str, Any] = field(default_factory=dict)

    @property
    def is_initialized(self) -> bool:
        """Check if the handshake has completed."""
        return self.state == LifecycleState.INITIALIZED

    @property
    def is_closed(self) -> bool:
        return self.state == LifecycleState.CLOSED

    def require_initialized(self) -> None:
        """Assert that the connection is ready for operations.

        Raises:
            ProtocolError: If not initialized or already shut down.
        """
        if self.state in (LifecycleState.SHUTTING_DOWN, LifecycleState.CLOSED):
            raise ProtocolError("Server is shut down")
        if self.state != LifecycleState.INITIALIZED:
            raise ProtocolError("Server not initialized")

    def begin_initialize(self, params: dict[str, Any]) -> str:
        """Validate an initialize request and record the client.

        The state does not change until ``complete_initialize`` is called,
        so a failed capability initialization leaves the server
        uninitialized.

        Args:
            params: Initialize request parameters.

        Returns:
            The negotiated protocol version.

        Raises:
            ProtocolError: If already initialized or shut down.
        """
        if self.state != LifecycleState.UNINITIALIZED:
            if self.state == LifecycleState.INITIALIZED:
                raise ProtocolError("Server already initialized")
            raise ProtocolError("Server is shut down")

        self.protocol_version = negotiate_version(params["protocolVersion"])
        self.client_info = params.get("clientInfo")
        self.client_capabilities = params.get("capabilities") or {}
        return self.protocol_version

    def complete_initialize(self) -> None:
        """Mark the handshake as complete."""
        self.state = LifecycleState.INITIALIZED

    def begin_shutdown(self) -> None:
        """Enter the shutting-down state."""
        self.state = LifecycleState.SHUTTING_DOWN

    def complete_shutdown(self) -> None:
        """Enter the closed state."""
        self.state = LifecycleState.CLOSED
