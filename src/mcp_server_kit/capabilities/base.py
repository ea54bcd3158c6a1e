"""Capability base class.

Defines the interface that every handler module registered with the
server must implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from mcp_server_kit.protocol.jsonrpc import JsonRpcMessage


class Capability(ABC):
    """Abstract base class for capabilities.

    A capability owns a fixed set of protocol methods. The server asks each
    registered capability, in registration order, whether it accepts a
    method and delegates the message to the first one that does.

    Example:
        class PingCapability(Capability):
            methods = frozenset({"ping"})

            def describe(self) -> dict:
                return {}

            def handle(self, message):
                if message.is_notification:
                    return None
                return JsonRpcMessage.success(message.id, {})
    """

    methods: ClassVar[frozenset[str]] = frozenset()

    @property
    def name(self) -> str:
        """Return the capability identifier used in logs and errors."""
        return type(self).__name__

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        """Return capability flags merged into the initialize result."""
        pass

    def accepts(self, method: str) -> bool:
        """Check whether this capability serves a method.

        Args:
            method: JSON-RPC method name.

        Returns:
            True if ``handle`` should be called for the method.
        """
        return method in self.methods

    @abstractmethod
    def handle(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        """Handle a request or notification.

        Notifications must yield None. Parameter problems should be
        reported as an error message; unexpected exceptions may propagate
        and are converted to INTERNAL_ERROR by the server.

        Args:
            message: Incoming request or notification.

        Returns:
            Response message, or None for notifications.
        """
        pass

    def initialize(self) -> None:
        """Called once when the client completes the handshake."""

    def shutdown(self) -> None:
        """Called once when the session ends."""
