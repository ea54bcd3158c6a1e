"""Capability modules: resources and tools."""

from mcp_server_kit.capabilities.base import Capability
from mcp_server_kit.capabilities.resources import (
    BlobResourceContents,
    Resource,
    ResourceContents,
    ResourcesCapability,
    TextResourceContents,
    match_uri_template,
    resolve_uri_template,
)
from mcp_server_kit.capabilities.tools import (
    Parameter,
    Tool,
    ToolAnnotations,
    ToolArgumentError,
    ToolResult,
    ToolsCapability,
)

__all__ = [
    "BlobResourceContents",
    "Capability",
    "Parameter",
    "Resource",
    "ResourceContents",
    "ResourcesCapability",
    "TextResourceContents",
    "Tool",
    "ToolAnnotations",
    "ToolArgumentError",
    "ToolResult",
    "ToolsCapability",
    "match_uri_template",
    "resolve_uri_template",
]
