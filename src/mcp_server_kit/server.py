"""MCP Server - message dispatcher.

Owns the registered capabilities and a transport, runs the
receive -> route -> handle -> send loop, and manages the
initialize/shutdown lifecycle.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mcp_server_kit.audit import AuditLogger
from mcp_server_kit.capabilities.base import Capability
from mcp_server_kit.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JsonRpcError,
    JsonRpcMessage,
    decode_values,
)
from mcp_server_kit.protocol.lifecycle import LifecycleManager, LifecycleState, ProtocolError
from mcp_server_kit.transport.base import Transport

if TYPE_CHECKING:
    from mcp_server_kit.config import ServerConfig

logger = logging.getLogger(__name__)

# Client-facing log levels (RFC 5424 severities, most severe first)
LOG_LEVELS = ["emergency", "alert", "critical", "error", "warning", "notice", "info", "debug"]

_PYTHON_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "notice": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
    "alert": logging.CRITICAL,
    "emergency": logging.CRITICAL,
}

# Notifications acknowledged without any effect
NO_OP_NOTIFICATIONS = frozenset({"notifications/initialized", "notifications/cancelled"})


class MCPServer:
    """MCP Server implementation.

    Provides a complete MCP server that handles:
    - Lifecycle management (initialize/shutdown)
    - Routing of every other method to the first accepting capability
    - Per-message error containment
    - Client-directed log notifications (logging/setLevel)
    """

    def __init__(
        self,
        name: str = "mcp-server-kit",
        version: str = "1.0.0",
        instructions: str | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            name: Server name reported in serverInfo.
            version: Server version reported in serverInfo.
            instructions: Instructions returned from initialize.
            audit: Optional audit trail for dispatched requests.
        """
        self._name = name
        self._version = version
        self._instructions = instructions or (
            "This server implements the Model Context Protocol (MCP) "
            "and exposes resources and tools."
        )
        self._audit = audit
        self._capabilities: list[Capability] = []
        self._lifecycle = LifecycleManager()
        self._transport: Transport | None = None
        self._client_log_level: str | None = None
        self._capabilities_shut_down = False

    @classmethod
    def from_config(cls, config: ServerConfig, audit: AuditLogger | None = None) -> MCPServer:
        """Create a server from loaded configuration.

        Args:
            config: Loaded configuration.
            audit: Shared audit trail; opened from ``audit_log_file`` if omitted.
        """
        if audit is None and config.audit_log_file:
            audit = AuditLogger(Path(config.audit_log_file))
        return cls(
            name=config.name,
            version=config.version,
            instructions=config.instructions,
            audit=audit,
        )

    @property
    def state(self) -> LifecycleState:
        return self._lifecycle.state

    @property
    def is_initialized(self) -> bool:
        return self._lifecycle.is_initialized

    @property
    def is_closed(self) -> bool:
        return self._lifecycle.is_closed

    @property
    def capabilities(self) -> list[Capability]:
        """Registered capabilities in registration order."""
        return list(self._capabilities)

    def add_capability(self, capability: Capability) -> None:
        """Register a capability.

        Registration order is the routing order (first match wins) and
        the shutdown order.

        Args:
            capability: Capability to register.
        """
        self._capabilities.append(capability)

    def connect(self, transport: Transport) -> None:
        """Attach the transport used by ``run`` and log notifications."""
        self._transport = transport

    def run(self) -> None:
        """Process batches from the transport until input ends.

        Raises:
            RuntimeError: If no transport is connected.
        """
        if self._transport is None:
            raise RuntimeError("No transport connected")
        transport = self._transport

        while not self._lifecycle.is_closed:
            try:
                raw_batch = transport.receive()
            except JsonRpcError as e:
                logger.warning("Rejected malformed input: %s", e)
                transport.send([e.to_message(None)])
                continue

            if raw_batch is None:
                break

            try:
                messages = decode_values(raw_batch)
            except JsonRpcError as e:
                logger.warning("Rejected malformed batch: %s", e)
                transport.send([e.to_message(None)])
                continue

            responses = self.handle_batch(messages)
            if responses:
                transport.send(responses)

    def handle_batch(self, messages: list[JsonRpcMessage]) -> list[JsonRpcMessage]:
        """Handle a batch and collect the responses, in order.

        Notifications and client responses produce nothing.
        """
        responses = []
        for message in messages:
            response = self.handle_message(message)
            if response is not None:
                responses.append(response)
        return responses

    def handle_message(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        """Handle a single message.

        Args:
            message: The message to handle.

        Returns:
            Response message, or None for notifications and responses.
        """
        if message.is_response:
            logger.debug("Ignoring response message with id %r", message.id)
            return None

        if message.is_notification:
            response = self._dispatch(message)
            if response is not None and response.error is not None:
                logger.warning(
                    "Notification %s failed: %s", message.method, response.error.get("message")
                )
            return None

        if self._audit is not None:
            self._audit.log_request(message.id, message.method, message.params)
        started = time.perf_counter()

        response = self._dispatch(message)

        if self._audit is not None:
            status = "error" if response is None or response.error is not None else "success"
            duration_ms = round((time.perf_counter() - started) * 1000, 3)
            self._audit.log_response(message.id, status, duration_ms)

        if response is None:
            # A capability broke the contract; the client always gets an answer
            return JsonRpcMessage.failure(
                message.id, INTERNAL_ERROR, f"No response produced for {message.method}"
            )
        return response

    def _dispatch(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        method = message.method
        try:
            if method == "initialize":
                return self._handle_initialize(message)

            if method in NO_OP_NOTIFICATIONS and message.is_notification:
                return None

            try:
                self._lifecycle.require_initialized()
            except ProtocolError as e:
                return JsonRpcMessage.failure(message.id, INTERNAL_ERROR, str(e))

            if method == "shutdown":
                return self._handle_shutdown(message)
            if method == "logging/setLevel":
                return self._handle_set_level(message)

            for capability in self._capabilities:
                if capability.accepts(method):
                    return capability.handle(message)

            return JsonRpcMessage.failure(message.id, METHOD_NOT_FOUND, f"Method not found: {method}")

        except JsonRpcError as e:
            return e.to_message(message.id)
        except Exception as e:
            logger.exception("Error processing %s", method)
            self._notify_client("error", f"Error processing {method}: {e}", "server")
            return JsonRpcMessage.failure(message.id, INTERNAL_ERROR, str(e))

    def _handle_initialize(self, message: JsonRpcMessage) -> JsonRpcMessage:
        params = message.params or {}
        if not isinstance(params.get("protocolVersion"), str):
            return JsonRpcMessage.failure(
                message.id,
                INVALID_PARAMS,
                "Missing protocol version parameter in initialize request.",
            )

        try:
            protocol_version = self._lifecycle.begin_initialize(params)
        except ProtocolError as e:
            return JsonRpcMessage.failure(message.id, INTERNAL_ERROR, str(e))

        started: list[Capability] = []
        for capability in self._capabilities:
            try:
                capability.initialize()
            except Exception as e:
                logger.error("Failed to initialize capability '%s': %s", capability.name, e)
                self._roll_back(started)
                return JsonRpcMessage.failure(
                    message.id,
                    INTERNAL_ERROR,
                    f"Failed to initialize capability '{capability.name}': {e}",
                )
            started.append(capability)

        self._lifecycle.complete_initialize()
        logger.info("Initialized with protocol version %s", protocol_version)

        return JsonRpcMessage.success(
            message.id,
            {
                "protocolVersion": protocol_version,
                "capabilities": self.server_capabilities(),
                "serverInfo": {"name": self._name, "version": self._version},
                "instructions": self._instructions,
            },
        )

    def _roll_back(self, started: list[Capability]) -> None:
        """Shut down capabilities started by a failed initialize, in order."""
        for capability in started:
            try:
                capability.shutdown()
            except Exception as e:
                logger.error(
                    "Error during shutdown of capability '%s': %s", capability.name, e
                )

    def server_capabilities(self) -> dict[str, Any]:
        """Merge every capability's descriptor, in registration order."""
        merged: dict[str, Any] = {}
        for capability in self._capabilities:
            merged.update(capability.describe())
        merged["logging"] = {}
        return merged

    def _handle_shutdown(self, message: JsonRpcMessage) -> JsonRpcMessage:
        failures = self._shutdown_capabilities()
        if failures:
            capability_name, error = failures[0]
            return JsonRpcMessage.failure(
                message.id,
                INTERNAL_ERROR,
                f"Error during shutdown of capability '{capability_name}': {error}",
                data={"failures": [{"capability": n, "message": m} for n, m in failures]},
            )
        return JsonRpcMessage.success(message.id, {})

    def _shutdown_capabilities(self) -> list[tuple[str, str]]:
        """Shut down every capability, continuing past failures.

        Returns:
            (capability name, error message) for each failure.
        """
        failures: list[tuple[str, str]] = []
        if not self._capabilities_shut_down:
            self._lifecycle.begin_shutdown()
            for capability in self._capabilities:
                try:
                    capability.shutdown()
                except Exception as e:
                    logger.error(
                        "Error during shutdown of capability '%s': %s", capability.name, e
                    )
                    failures.append((capability.name, str(e)))
            self._capabilities_shut_down = True
        self._lifecycle.complete_shutdown()
        return failures

    def shutdown(self) -> None:
        """Shut down the server outside of a shutdown request.

        Idempotent. Capabilities are only shut down if the server was
        initialized.
        """
        if not self._lifecycle.is_initialized:
            self._capabilities_shut_down = True
        self._shutdown_capabilities()

    def _handle_set_level(self, message: JsonRpcMessage) -> JsonRpcMessage:
        level = (message.params or {}).get("level")
        if not isinstance(level, str) or level.lower() not in LOG_LEVELS:
            return JsonRpcMessage.failure(
                message.id,
                INVALID_PARAMS,
                f"Invalid or missing log level. Must be one of: {', '.join(LOG_LEVELS)}",
            )
        self._client_log_level = level.lower()
        logger.info("Client log level set to: %s", self._client_log_level)
        return JsonRpcMessage.success(message.id, {})

    def log_message(
        self,
        level: str,
        text: str,
        logger_name: str | None = None,
        data: Any | None = None,
    ) -> None:
        """Log a message locally and, if enabled, to the client.

        Args:
            level: One of LOG_LEVELS (unknown levels are treated as info).
            text: Log message.
            logger_name: Optional name of the emitting component.
            data: Optional structured data.
        """
        level = level.lower() if level.lower() in LOG_LEVELS else "info"
        logger.log(_PYTHON_LOG_LEVELS[level], "%s%s", f"{logger_name}: " if logger_name else "", text)
        self._notify_client(level, text, logger_name, data)

    def _notify_client(
        self, level: str, text: str, logger_name: str | None = None, data: Any | None = None
    ) -> None:
        if self._transport is None or self._client_log_level is None:
            return
        if LOG_LEVELS.index(level) > LOG_LEVELS.index(self._client_log_level):
            return

        params: dict[str, Any] = {
            "level": level,
            "data": text if data is None else {"message": text, "details": data},
        }
        if logger_name is not None:
            params["logger"] = logger_name
        try:
            self._transport.send([JsonRpcMessage.notification("notifications/message", params)])
        except Exception as e:
            logger.warning("Failed to send log notification to client: %s", e)

    def close(self) -> None:
        """Shut down the server and release resources."""
        self.shutdown()
        if self._audit is not None:
            self._audit.close()

    def __enter__(self) -> MCPServer:
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        self.close()
