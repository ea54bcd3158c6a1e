"""Resources capability: resources/list and resources/read.

Resources are registered under a URI or a URI template such as
``test://users/{userId}``. Reads are dispatched to the first registered
template matching the requested URI.
"""

from __future__ import annotations

import base64
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from mcp_server_kit.capabilities.base import Capability
from mcp_server_kit.content import Annotations
from mcp_server_kit.protocol.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    JsonRpcMessage,
)

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _template_pattern(template: str) -> re.Pattern[str]:
    parts: list[str] = []
    position = 0
    for match in PLACEHOLDER.finditer(template):
        parts.append(re.escape(template[position : match.start()]))
        parts.append(f"(?P<{match.group(1)}>[^/]+)")
        position = match.end()
    parts.append(re.escape(template[position:]))
    return re.compile("".join(parts))


def match_uri_template(template: str, uri: str) -> dict[str, str] | None:
    """Match a URI against a template.

    Literal text must match exactly; each ``{name}`` placeholder matches one
    or more characters other than ``/``.

    Args:
        template: URI template.
        uri: Concrete URI.

    Returns:
        Placeholder bindings, or None if the URI does not match.
    """
    match = _template_pattern(template).fullmatch(uri)
    if match is None:
        return None
    return match.groupdict()


def resolve_uri_template(template: str, parameters: dict[str, Any]) -> str:
    """Substitute parameter values into a URI template."""
    uri = template
    for key, value in parameters.items():
        uri = uri.replace("{" + key + "}", str(value))
    return uri


@dataclass(frozen=True)
class TextResourceContents:
    """Text contents of a resource."""

    uri: str
    text: str
    mime_type: str | None = "text/plain"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"uri": self.uri}
        if self.mime_type is not None:
            data["mimeType"] = self.mime_type
        data["text"] = self.text
        return data


@dataclass(frozen=True)
class BlobResourceContents:
    """Binary contents of a resource, base64-encoded."""

    uri: str
    blob: str
    mime_type: str

    @classmethod
    def from_bytes(cls, uri: str, raw: bytes, mime_type: str) -> BlobResourceContents:
        return cls(uri, base64.b64encode(raw).decode("ascii"), mime_type)

    def to_dict(self) -> dict[str, Any]:
        return {"uri": self.uri, "mimeType": self.mime_type, "blob": self.blob}


ResourceContents = TextResourceContents | BlobResourceContents


class Resource(ABC):
    """Abstract base class for resources.

    Subclasses set ``uri`` (optionally a template) and ``description`` and
    implement ``read``.

    Example:
        class UserResource(Resource):
            uri = "app://users/{userId}"
            description = "A user profile"

            def read(self, parameters):
                return self.text(f"user {parameters['userId']}", parameters=parameters)
    """

    uri: ClassVar[str] = ""
    description: ClassVar[str | None] = None

    def __init__(
        self,
        name: str | None = None,
        mime_type: str | None = None,
        size: int | None = None,
        annotations: Annotations | None = None,
    ) -> None:
        """Initialize the resource.

        Args:
            name: Display name (defaults to the URI).
            mime_type: MIME type of the contents, if known.
            size: Size of the contents in bytes, if known.
            annotations: Audience and priority hints.
        """
        if not self.uri:
            raise ValueError(f"{type(self).__name__} must define a uri")
        self.name = name or self.uri
        self.mime_type = mime_type
        self.size = size
        self.annotations = annotations

    def to_dict(self) -> dict[str, Any]:
        """Convert to MCP resources/list format."""
        data: dict[str, Any] = {"uri": self.uri, "name": self.name}
        if self.description is not None:
            data["description"] = self.description
        if self.mime_type is not None:
            data["mimeType"] = self.mime_type
        if self.size is not None:
            data["size"] = self.size
        if self.annotations is not None:
            serialized = self.annotations.to_dict()
            if serialized:
                data["annotations"] = serialized
        return data

    @abstractmethod
    def read(self, parameters: dict[str, str]) -> ResourceContents:
        """Read the resource.

        Args:
            parameters: Values bound to the URI template's placeholders.

        Returns:
            The resource contents.
        """
        pass

    def text(
        self,
        text: str,
        mime_type: str | None = None,
        parameters: dict[str, Any] | None = None,
    ) -> TextResourceContents:
        """Build text contents addressed by the resolved URI."""
        return TextResourceContents(
            uri=resolve_uri_template(self.uri, parameters or {}),
            text=text,
            mime_type=mime_type or self.mime_type or "text/plain",
        )

    def blob(
        self,
        data: bytes,
        mime_type: str,
        parameters: dict[str, Any] | None = None,
    ) -> BlobResourceContents:
        """Build blob contents addressed by the resolved URI."""
        return BlobResourceContents.from_bytes(
            resolve_uri_template(self.uri, parameters or {}), data, mime_type
        )

    def initialize(self) -> None:
        """Hook called when the capability initializes."""

    def shutdown(self) -> None:
        """Hook called when the capability shuts down."""


class ResourcesCapability(Capability):
    """Serves resources/list and resources/read."""

    methods = frozenset({"resources/list", "resources/read"})

    def __init__(self) -> None:
        self._resources: dict[str, Resource] = {}

    def add_resource(self, resource: Resource) -> None:
        """Register a resource under its URI template.

        Registering the same template again replaces the earlier resource
        but keeps its position.
        """
        self._resources[resource.uri] = resource

    @property
    def resources(self) -> list[Resource]:
        return list(self._resources.values())

    def describe(self) -> dict[str, Any]:
        return {"resources": {"subscribe": False, "listChanged": False}}

    def handle(self, message: JsonRpcMessage) -> JsonRpcMessage | None:
        if message.is_notification:
            return None
        if message.method == "resources/list":
            return self._handle_list(message)
        return self._handle_read(message)

    def initialize(self) -> None:
        for resource in self._resources.values():
            resource.initialize()

    def shutdown(self) -> None:
        for resource in self._resources.values():
            resource.shutdown()

    def find(self, uri: str) -> tuple[Resource, dict[str, str]] | None:
        """Find the first registered resource whose template matches a URI."""
        for template, resource in self._resources.items():
            parameters = match_uri_template(template, uri)
            if parameters is not None:
                return resource, parameters
        return None

    def _handle_list(self, message: JsonRpcMessage) -> JsonRpcMessage:
        resources = [resource.to_dict() for resource in self._resources.values()]
        return JsonRpcMessage.success(message.id, {"resources": resources})

    def _handle_read(self, message: JsonRpcMessage) -> JsonRpcMessage:
        uri = (message.params or {}).get("uri")
        if not isinstance(uri, str) or not uri:
            return JsonRpcMessage.failure(message.id, INVALID_PARAMS, "Missing uri parameter")

        found = self.find(uri)
        if found is None:
            return JsonRpcMessage.failure(message.id, INVALID_PARAMS, f"Resource not found: {uri}")

        resource, parameters = found
        try:
            contents = resource.read(parameters)
        except Exception as e:
            logger.exception("Error reading resource %s", uri)
            return JsonRpcMessage.failure(
                message.id, INTERNAL_ERROR, f"Error reading resource {uri}: {e}"
            )

        return JsonRpcMessage.success(message.id, {"contents": [contents.to_dict()]})
