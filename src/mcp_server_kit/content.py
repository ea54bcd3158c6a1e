"""Content items returned by tool executions.

The set of variants is closed: text, image, audio and embedded resource.
Each variant serializes itself with ``to_dict()`` into the MCP wire shape.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any

AUDIENCE_ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Annotations:
    """Hints about who a piece of content is for and how important it is."""

    audience: list[str] | None = None
    priority: float | None = None

    def __post_init__(self) -> None:
        if self.audience is not None:
            for role in self.audience:
                if role not in AUDIENCE_ROLES:
                    raise ValueError(
                        f"Invalid audience role: {role}. Must be 'user' or 'assistant'."
                    )
        if self.priority is not None and not 0.0 <= self.priority <= 1.0:
            raise ValueError("Priority must be between 0.0 and 1.0.")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.audience is not None:
            data["audience"] = list(self.audience)
        if self.priority is not None:
            data["priority"] = self.priority
        return data


def _with_annotations(data: dict[str, Any], annotations: Annotations | None) -> dict[str, Any]:
    if annotations is not None:
        serialized = annotations.to_dict()
        if serialized:
            data["annotations"] = serialized
    return data


@dataclass(frozen=True)
class TextContent:
    """Plain text content."""

    text: str
    annotations: Annotations | None = None

    def to_dict(self) -> dict[str, Any]:
        return _with_annotations({"type": "text", "text": self.text}, self.annotations)


@dataclass(frozen=True)
class ImageContent:
    """Base64-encoded image content."""

    data: str
    mime_type: str
    annotations: Annotations | None = None

    @classmethod
    def from_bytes(
        cls, raw: bytes, mime_type: str, annotations: Annotations | None = None
    ) -> ImageContent:
        return cls(base64.b64encode(raw).decode("ascii"), mime_type, annotations)

    def to_dict(self) -> dict[str, Any]:
        return _with_annotations(
            {"type": "image", "data": self.data, "mimeType": self.mime_type},
            self.annotations,
        )


@dataclass(frozen=True)
class AudioContent:
    """Base64-encoded audio content."""

    data: str
    mime_type: str
    annotations: Annotations | None = None

    @classmethod
    def from_bytes(
        cls, raw: bytes, mime_type: str, annotations: Annotations | None = None
    ) -> AudioContent:
        return cls(base64.b64encode(raw).decode("ascii"), mime_type, annotations)

    def to_dict(self) -> dict[str, Any]:
        return _with_annotations(
            {"type": "audio", "data": self.data, "mimeType": self.mime_type},
            self.annotations,
        )


@dataclass(frozen=True)
class EmbeddedResource:
    """Resource contents embedded in a tool result.

    The resource dict must carry either a ``text`` or a ``blob`` key.
    """

    resource: dict[str, Any]
    annotations: Annotations | None = None

    def __post_init__(self) -> None:
        if "text" not in self.resource and "blob" not in self.resource:
            raise ValueError("EmbeddedResource data must contain either a 'text' or a 'blob' key.")

    def to_dict(self) -> dict[str, Any]:
        return _with_annotations(
            {"type": "resource", "resource": dict(self.resource)},
            self.annotations,
        )


ContentItem = TextContent | ImageContent | AudioContent | EmbeddedResource
