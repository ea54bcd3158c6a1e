"""Tools capability: tools/list, tools/call and completion/complete.

Routes tool calls to registered tools and formats results as MCP
tool results. Tool execution failures are reported as tool
results with ``isError`` set, never as protocol errors.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, ClassVar

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError, UnknownType

from mcp_server_kit.capabilities.base import Capability
from mcp_server_kit.content import ContentItem, TextContent
from mcp_server_kit.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    JsonRpcMessage,
)

logger = logging.getLogger(__name__)

COMPLETION_REF_TYPES = ("ref/tool", "ref/prompt")


class ToolArgumentError(ValueError):
    """Raised when tool arguments do not match the declared parameters."""

    pass


@dataclass(frozen=True)
class Parameter:
    """A declared tool parameter."""

    name: str
    type: str = "string"
    description: str | None = None
    required: bool = True

    def to_schema(self) -> dict[str, Any]:
        """Convert to a JSON schema property."""
        schema: dict[str, Any] = {"type": self.type}
        if self.description is not None:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True)
class ToolAnnotations:
    """Behavioral hints about a tool."""

    title: str | None = None
    read_only_hint: bool | None = None
    destructive_hint: bool | None = None
    idempotent_hint: bool | None = None
    open_world_hint: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        fields = {
            "title": self.title,
            "readOnlyHint": self.read_only_hint,
            "destructiveHint": self.destructive_hint,
            "idempotentHint": self.idempotent_hint,
            "openWorldHint": self.open_world_hint,
        }
        return {key: value for key, value in fields.items() if value is not None}


@dataclass
class ToolResult:
    """Result of a tool execution."""

    content: list[dict[str, Any]]
    is_error: bool = False

    @classmethod
    def failed(cls, text: str) -> ToolResult:
        """Build an error result carrying a single text item."""
        return cls(content=[TextContent(text).to_dict()], is_error=True)

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP result format.

        Returns:
            Dictionary in MCP tools/call result format.
        """
        return {
            "content": self.content,
            "isError": self.is_error,
        }


class Tool(ABC):
    """Abstract base class for tools.

    Subclasses declare ``name``, ``description`` and ``parameters`` and
    implement ``run``.

    Example:
        class EchoTool(Tool):
            name = "echo"
            description = "Echoes back the provided message."
            parameters = (Parameter("message", "string", "The message to echo."),)

            def run(self, arguments):
                return [TextContent(f"Echo: {arguments['message']}")]
    """

    name: ClassVar[str] = ""
    description: ClassVar[str | None] = None
    parameters: ClassVar[Sequence[Parameter]] = ()
    annotations: ClassVar[ToolAnnotations | None] = None

    def input_schema(self) -> dict[str, Any]:
        """Build the JSON schema for the tool's input."""
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {param.name: param.to_schema() for param in self.parameters},
        }
        required = [param.name for param in self.parameters if param.required]
        if required:
            schema["required"] = required
        return schema

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP tools/list format."""
        data: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }
        if self.annotations is not None:
            serialized = self.annotations.to_dict()
            if serialized:
                data["annotations"] = serialized
        return data

    def validate_arguments(self, arguments: dict[str, Any]) -> None:
        """Validate arguments against the tool's input schema.

        Undeclared arguments are rejected.

        Raises:
            ToolArgumentError: If the arguments do not match the schema.
        """
        schema = {**self.input_schema(), "additionalProperties": False}
        try:
            errors = list(Draft202012Validator(schema).iter_errors(arguments))
        except (SchemaError, UnknownType) as e:
            raise ToolArgumentError(f"Invalid schema for tool {self.name}: {e}") from e
        if errors:
            # Report first error
            error = errors[0]
            path = ".".join(str(p) for p in error.path) if error.path else "root"
            raise ToolArgumentError(f"Schema validation failed at '{path}': {error.message}")

    def execute(self, arguments: dict[str, Any]) -> list[dict[str, Any]]:
        """Validate arguments, run the tool and serialize its content.

        Args:
            arguments: Tool arguments.

        Returns:
            Serialized content items.
        """
        self.validate_arguments(arguments)
        return [item.to_dict() for item in self.run(arguments)]

    @abstractmethod
    def run(self, arguments: dict[str, Any]) -> Sequence[ContentItem]:
        """Execute the tool's logic with validated arguments."""
        pass

    def complete(
        self, argument_name: str, value: Any, arguments: dict[str, Any]
    ) -> dict[str, Any]:
        """Suggest completions for an argument.

        Returns:
            ``{"values": [...], "total": int, "hasMore": bool}``.
        """
        return {"values": [], "total": 0, "hasMore": False}

    def initialize(self) -> None:
        """Hook called when the capability initializes."""

    def shutdown(self) -> None:
        """Hook called when the capability shuts down."""


class ToolsCapability(Capability):
    """Serves tools/list, tools/call and completion/complete.

    Maintains an ordered registry of tools keyed by name.
    """

    methods = frozenset({"tools/list", "tools/call", "completion/complete"})

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def add_tool(self, tool: Tool) -> None:
        """Register a tool under its name."""
        if not tool.name:
            raise ValueError(f"{type(tool).__name__} must define a name")
        self._tools[tool.name] = tool

    @property
    def tools(self) -> list[Tool]:
        return list(self._tools.values())

    def describe(self) -> dict[str, Any]:
        return {"tools": {"listChanged": False}, "completions": {}}

    def handle(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        if message.is_notification:
            return None
        if message.method == "tools/list":
            return JsonRpcMessage.success(
                message.id, {"tools": [tool.to_dict() for tool in self._tools.values()]}
            )
        if message.method == "tools/call":
            params = message.params or {}
            result = self.call_tool(params.get("name"), params.get("arguments", {}))
            return JsonRpcMessage.success(message.id, result.to_dict())
        return self._handle_complete(message)

    def initialize(self) -> None:
        for tool in self._tools.values():
            tool.initialize()

    def shutdown(self) -> None:
        for tool in self._tools.values():
            tool.shutdown()

    def call_tool(self, name: Any, arguments: Any) -> ToolResult:
        """Call a tool by name.

        Every failure is returned as an error result.

        Args:
            name: Name of the tool to call.
            arguments: Arguments to pass to the tool.

        Returns:
            ToolResult from the tool execution.
        """
        if not isinstance(name, str) or not name:
            return ToolResult.failed("Invalid or missing tool name.")

        tool = self._tools.get(name)
        if tool is None:
            return ToolResult.failed(f"Tool not found: {name}")

        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            return ToolResult.failed("Invalid arguments format: arguments must be an object/map.")

        try:
            return ToolResult(content=tool.execute(arguments))
        except Exception as e:
            logger.warning("Tool '%s' execution failed: %s", name, e)
            return ToolResult.failed(f"Error executing tool '{name}': {e}")

    def _handle_complete(self, message: JsonRpcMessage) -> JsonRpcMessage:
        params = message.params or {}
        ref = params.get("ref")
        argument = params.get("argument")

        if not isinstance(ref, dict):
            return JsonRpcMessage.failure(
                message.id, INVALID_PARAMS, 'Missing or invalid "ref" parameter for completion/complete'
            )
        if not isinstance(argument, dict):
            return JsonRpcMessage.failure(
                message.id,
                INVALID_PARAMS,
                'Missing or invalid "argument" parameter for completion/complete',
            )

        ref_type = ref.get("type")
        if not isinstance(ref_type, str) or ref_type not in COMPLETION_REF_TYPES:
            return JsonRpcMessage.failure(
                message.id, INVALID_PARAMS, f'Unsupported "ref.type" for tool completion: {ref_type}'
            )
        tool_name = ref.get("name")
        if not isinstance(tool_name, str):
            return JsonRpcMessage.failure(
                message.id, INVALID_PARAMS, 'Missing or invalid "ref.name" for completion/complete'
            )
        argument_name = argument.get("name")
        if not isinstance(argument_name, str):
            return JsonRpcMessage.failure(
                message.id,
                INVALID_PARAMS,
                'Missing or invalid "argument.name" for completion/complete',
            )

        tool = self._tools.get(tool_name)
        if tool is None:
            return JsonRpcMessage.failure(
                message.id, METHOD_NOT_FOUND, f"Tool not found for completion: {tool_name}"
            )

        other_arguments = params.get("arguments")
        if not isinstance(other_arguments, dict):
            other_arguments = {}

        suggestions = tool.complete(argument_name, argument.get("value", ""), other_arguments)
        if not isinstance(suggestions, dict) or not isinstance(suggestions.get("values"), list):
            logger.error(
                "Tool %s returned invalid suggestions for argument '%s'", tool_name, argument_name
            )
            return JsonRpcMessage.failure(
                message.id,
                INTERNAL_ERROR,
                f"Tool {tool_name} returned invalid completion suggestions",
            )

        completion: dict[str, Any] = {"values": suggestions["values"]}
        if "total" in suggestions:
            completion["total"] = suggestions["total"]
        if "hasMore" in suggestions:
            completion["hasMore"] = suggestions["hasMore"]
        return JsonRpcMessage.success(message.id, {"completion": completion})
