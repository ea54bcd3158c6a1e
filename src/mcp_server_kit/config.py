"""Server configuration loader.

Loads server settings from a YAML file. Every key is optional; missing
keys fall back to defaults.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mcp_server_kit.transport.http import HttpOptions


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def expand_env_vars(value: str) -> str:
    """Expand environment variables in a string.

    Supports ${VAR_NAME} syntax. Unknown variables are left unchanged.

    Args:
        value: String potentially containing environment variable references.

    Returns:
        String with known environment variables expanded.
    """
    pattern = re.compile(r"\$\{([^}]+)\}")

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is not None:
            return env_value
        # Special handling for HOME
        if var_name == "HOME":
            return os.path.expanduser("~")
        return match.group(0)  # Return unchanged if not found

    return pattern.sub(replacer, value)


@dataclass
class ServerConfig:
    """Server configuration."""

    # Server identity
    name: str = "mcp-server-kit"
    version: str = "1.0.0"
    instructions: str = (
        "This server implements the Model Context Protocol (MCP) "
        "and exposes resources and tools."
    )

    # Logging and audit
    log_level: str = "INFO"
    audit_log_file: str = ""

    # Stdio settings
    stdio_debug: bool = False

    # HTTP settings
    http_host: str = "127.0.0.1"
    http_port: int = 8000
    http_path: str = "/mcp"
    allowed_origins: list[str] = field(default_factory=list)
    allow_unsolicited_stream: bool = False
    prefer_sse: bool = False
    session_ttl: float = 3600.0
    replay_buffer_size: int = 100
    replay_stream_limit: int = 16

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> ServerConfig:
        """Create a ServerConfig from a configuration dictionary.

        Args:
            config: Dictionary parsed from YAML configuration.

        Returns:
            ServerConfig instance with all settings populated.

        Raises:
            ConfigError: If a section is not a mapping or a value has the wrong type.
        """
        sections = {}
        for key in ("server", "logging", "audit", "stdio", "http"):
            section = config.get(key) or {}
            if not isinstance(section, dict):
                raise ConfigError(f"Config section '{key}' must be a mapping")
            sections[key] = section

        server = sections["server"]
        http = sections["http"]
        defaults = cls()

        origins = http.get("allowed_origins", [])
        if not isinstance(origins, list):
            raise ConfigError("http.allowed_origins must be a list")

        try:
            return cls(
                name=str(server.get("name", defaults.name)),
                version=str(server.get("version", defaults.version)),
                instructions=str(server.get("instructions", defaults.instructions)),
                log_level=str(sections["logging"].get("level", defaults.log_level)).upper(),
                audit_log_file=expand_env_vars(str(sections["audit"].get("log_file", ""))),
                stdio_debug=bool(sections["stdio"].get("debug", False)),
                http_host=str(http.get("host", defaults.http_host)),
                http_port=int(http.get("port", defaults.http_port)),
                http_path=str(http.get("path", defaults.http_path)),
                allowed_origins=[str(origin) for origin in origins],
                allow_unsolicited_stream=bool(http.get("allow_unsolicited_stream", False)),
                prefer_sse=bool(http.get("prefer_sse", False)),
                session_ttl=float(http.get("session_ttl", defaults.session_ttl)),
                replay_buffer_size=int(http.get("replay_buffer_size", defaults.replay_buffer_size)),
                replay_stream_limit=int(
                    http.get("replay_stream_limit", defaults.replay_stream_limit)
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

    def http_options(self) -> HttpOptions:
        """Build the options used by the HTTP transport."""
        return HttpOptions(
            allowed_origins=list(self.allowed_origins),
            allow_unsolicited_stream=self.allow_unsolicited_stream,
            prefer_sse=self.prefer_sse,
            session_ttl=self.session_ttl,
            replay_buffer_size=self.replay_buffer_size,
            replay_stream_limit=self.replay_stream_limit,
        )


def load_config(path: Path) -> ServerConfig:
    """Load server configuration from a YAML file.

    Args:
        path: Path to the configuration YAML file.

    Returns:
        ServerConfig instance.

    Raises:
        ConfigError: If the file cannot be found, parsed, or validated.
    """
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config YAML: {e}") from e

    if config is None:
        return ServerConfig()
    if not isinstance(config, dict):
        raise ConfigError("Config must be a YAML mapping")

    return ServerConfig.from_dict(config)
