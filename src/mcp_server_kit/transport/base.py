"""Transport base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from mcp_server_kit.protocol.jsonrpc import JsonRpcMessage


class Transport(ABC):
    """Boundary over which batches of messages are received and sent."""

    @abstractmethod
    def receive(self) -> list[Any] | None:
        """Receive the next batch of JSON-decoded messages.

        Returns:
            A batch of raw messages, or None when input has ended.

        Raises:
            JsonRpcError: If the input is not valid JSON.
        """
        pass

    @abstractmethod
    def send(self, messages: list[JsonRpcMessage]) -> None:
        """Send a batch of outbound messages."""
        pass

    @abstractmethod
    def is_closed(self) -> bool:
        """Check whether the transport can deliver more input."""
        pass

    def log(self, message: str) -> None:
        """Write a diagnostic line outside the protocol stream."""
