"""Discovery of tools and resources from Python files on disk."""

from __future__ import annotations

import importlib.util
import inspect
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

from mcp_server_kit.capabilities.resources import Resource, ResourcesCapability
from mcp_server_kit.capabilities.tools import Tool, ToolsCapability
from mcp_server_kit.server import MCPServer

logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Raised when a discovered module cannot be loaded."""

    pass


@dataclass
class DiscoveryResult:
    """Tool and resource classes found by ``discover``.

    Classes rather than instances are kept so that every server built from
    the result owns its own tools and resources.
    """

    tools: list[type[Tool]] = field(default_factory=list)
    resources: list[type[Resource]] = field(default_factory=list)

    def extend(self, other: DiscoveryResult) -> None:
        self.tools.extend(other.tools)
        self.resources.extend(other.resources)


def _import_file(path: Path, root: Path) -> ModuleType:
    relative = path.relative_to(root).with_suffix("")
    module_name = "mcp_server_kit_discovered." + ".".join(relative.parts)

    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise DiscoveryError(f"Cannot load module from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        del sys.modules[spec.name]
        raise DiscoveryError(f"Failed to import {path}: {e}") from e
    return module


def _instantiate(cls: type, kind: str) -> Any:
    try:
        return cls()
    except Exception as e:
        raise DiscoveryError(f"Cannot instantiate {kind} {cls.__name__}: {e}") from e


def _defined_subclasses(module: ModuleType, base: type) -> list[type]:
    return [
        obj
        for _, obj in inspect.getmembers(module, inspect.isclass)
        if issubclass(obj, base)
        and obj is not base
        and obj.__module__ == module.__name__
        and not inspect.isabstract(obj)
    ]


def discover(directory: Path) -> DiscoveryResult:
    """Load every concrete Tool and Resource defined below a directory.

    Files are imported in sorted path order; files whose name starts with
    an underscore are skipped. Each class must be constructible without
    arguments; this is checked once here.

    Args:
        directory: Directory to scan recursively for ``*.py`` files.

    Returns:
        DiscoveryResult with the tool and resource classes.

    Raises:
        DiscoveryError: If the directory is missing or a module or class fails to load.
    """
    if not directory.is_dir():
        raise DiscoveryError(f"Discovery directory not found: {directory}")

    result = DiscoveryResult()
    for path in sorted(directory.rglob("*.py")):
        if path.name.startswith("_"):
            continue
        module = _import_file(path, directory)

        for cls in _defined_subclasses(module, Tool):
            _instantiate(cls, "tool")
            result.tools.append(cls)
        for cls in _defined_subclasses(module, Resource):
            _instantiate(cls, "resource")
            result.resources.append(cls)

    logger.info(
        "Discovered %d tool(s) and %d resource(s) in %s",
        len(result.tools),
        len(result.resources),
        directory,
    )
    return result


def register(server: MCPServer, result: DiscoveryResult) -> None:
    """Add new instances of the discovered tools and resources to a server.

    Reuses the server's first ToolsCapability/ResourcesCapability, or
    registers a new one when the server has none and there is something
    to add.
    """
    if result.resources:
        resources = next(
            (c for c in server.capabilities if isinstance(c, ResourcesCapability)), None
        )
        if resources is None:
            resources = ResourcesCapability()
            server.add_capability(resources)
        for cls in result.resources:
            resources.add_resource(_instantiate(cls, "resource"))

    if result.tools:
        tools = next((c for c in server.capabilities if isinstance(c, ToolsCapability)), None)
        if tools is None:
            tools = ToolsCapability()
            server.add_capability(tools)
        for cls in result.tools:
            tools.add_tool(_instantiate(cls, "tool"))
