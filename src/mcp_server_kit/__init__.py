"""mcp-server-kit: a Model Context Protocol server framework."""

from mcp_server_kit.capabilities import (
    BlobResourceContents,
    Capability,
    Parameter,
    Resource,
    ResourcesCapability,
    TextResourceContents,
    Tool,
    ToolAnnotations,
    ToolResult,
    ToolsCapability,
)
from mcp_server_kit.content import (
    Annotations,
    AudioContent,
    EmbeddedResource,
    ImageContent,
    TextContent,
)
from mcp_server_kit.protocol import JsonRpcError, JsonRpcMessage
from mcp_server_kit.server import MCPServer

__version__ = "1.0.0"

__all__ = [
    "Annotations",
    "AudioContent",
    "BlobResourceContents",
    "Capability",
    "EmbeddedResource",
    "ImageContent",
    "JsonRpcError",
    "JsonRpcMessage",
    "MCPServer",
    "Parameter",
    "Resource",
    "ResourcesCapability",
    "TextContent",
    "TextResourceContents",
    "Tool",
    "ToolAnnotations",
    "ToolResult",
    "ToolsCapability",
    "__version__",
]
