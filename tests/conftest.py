"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from mcp_server_kit.capabilities.base import Capability
from mcp_server_kit.capabilities.resources import Resource, ResourcesCapability
from mcp_server_kit.capabilities.tools import Parameter, Tool, ToolsCapability
from mcp_server_kit.content import TextContent
from mcp_server_kit.protocol.jsonrpc import JsonRpcMessage
from mcp_server_kit.server import MCPServer


class RecordingCapability(Capability):
    """Capability double that records lifecycle calls into a shared list."""

    methods = frozenset({"test/echo"})

    def __init__(
        self,
        label: str,
        calls: list[str],
        fail_on_initialize: bool = False,
        fail_on_shutdown: bool = False,
    ) -> None:
        self.label = label
        self.calls = calls
        self.fail_on_initialize = fail_on_initialize
        self.fail_on_shutdown = fail_on_shutdown
        self.handled: list[JsonRpcMessage] = []

    @property
    def name(self) -> str:
        return self.label

    def describe(self) -> dict[str, Any]:
        return {self.label: {}}

    def handle(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        self.handled.append(message)
        if message.is_notification:
            return None
        return JsonRpcMessage.success(message.id, {"handledBy": self.label})

    def initialize(self) -> None:
        self.calls.append(f"{self.label}.initialize")
        if self.fail_on_initialize:
            raise RuntimeError(f"{self.label} failed to start")

    def shutdown(self) -> None:
        self.calls.append(f"{self.label}.shutdown")
        if self.fail_on_shutdown:
            raise RuntimeError(f"{self.label} failed to stop")


class EchoTool(Tool):
    name = "echo"
    description = "Echoes back the provided message."
    parameters = (Parameter("message", "string", "The message to echo."),)

    def run(self, arguments):
        return [TextContent(f"Echo: {arguments['message']}")]


class FailingTool(Tool):
    name = "explode"
    description = "Always fails."

    def run(self, arguments):
        raise RuntimeError("boom")


class UserResource(Resource):
    uri = "test://users/{userId}"
    description = "A user profile"

    def read(self, parameters):
        return self.text(f"user {parameters['userId']}", parameters=parameters)


class ReadmeResource(Resource):
    uri = "test://readme"

    def read(self, parameters):
        return self.text("# Readme", mime_type="text/markdown")


INITIALIZE_PARAMS = {
    "protocolVersion": "2025-06-18",
    "clientInfo": {"name": "test", "version": "1.0"},
    "capabilities": {},
}


def initialize_request(msg_id: Any = 1) -> JsonRpcMessage:
    return JsonRpcMessage.request(msg_id, "initialize", dict(INITIALIZE_PARAMS))


def build_server() -> MCPServer:
    """Build a server with the test tools and resources registered."""
    server = MCPServer(name="test-server", version="0.1.0")
    resources = ResourcesCapability()
    resources.add_resource(UserResource())
    resources.add_resource(ReadmeResource())
    tools = ToolsCapability()
    tools.add_tool(EchoTool())
    tools.add_tool(FailingTool())
    server.add_capability(resources)
    server.add_capability(tools)
    return server


@pytest.fixture
def server() -> MCPServer:
    """Create a server with test tools and resources."""
    return build_server()


@pytest.fixture
def initialized_server(server: MCPServer) -> MCPServer:
    """Create an initialized server."""
    server.handle_message(initialize_request())
    server.handle_message(JsonRpcMessage.notification("notifications/initialized"))
    return server
