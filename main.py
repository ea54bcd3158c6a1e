#!/usr/bin/env python3
"""mcp-server-kit - Main entry point.

Runs an MCP server over stdio or Streamable HTTP, serving the tools and
resources found in one or more discovery directories.

================================================================================
DEVELOPER GUIDE: Adding Tools and Resources
================================================================================

1. Write a module that subclasses Tool or Resource:

    from mcp_server_kit import Parameter, TextContent, Tool

    class EchoTool(Tool):
        name = "echo"
        description = "Echo the input text"
        parameters = [Parameter("text", description="Text to echo")]

        def run(self, arguments):
            return [TextContent(arguments["text"])]

2. Put it in a directory and point the server at it:

    python main.py --discover demo
    python main.py --discover demo --transport http --port 8000

Every concrete class must be constructible without arguments. Each server
gets fresh instances: over HTTP every session owns its own tools and
resources, and their shutdown() hooks run when that session ends.

================================================================================
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from mcp_server_kit import __version__
from mcp_server_kit.audit import AuditLogger
from mcp_server_kit.config import ConfigError, ServerConfig, load_config
from mcp_server_kit.discovery import DiscoveryError, DiscoveryResult, discover, register
from mcp_server_kit.server import MCPServer
from mcp_server_kit.transport.app import run_http
from mcp_server_kit.transport.http import HttpEndpoint
from mcp_server_kit.transport.stdio import StdioTransport

logger = logging.getLogger("mcp_server_kit")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="MCP server for discovered tools and resources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Path to server configuration YAML file",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport to serve on (default: stdio)",
    )
    parser.add_argument(
        "--discover",
        type=Path,
        action="append",
        default=[],
        metavar="DIR",
        help="Directory to load tools and resources from (repeatable)",
    )
    parser.add_argument("--host", default=None, help="HTTP host (overrides config)")
    parser.add_argument("--port", type=int, default=None, help="HTTP port (overrides config)")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug logging and stdio message tracing",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"mcp-server-kit {__version__}",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the MCP server.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config) if args.config else ServerConfig()
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    # stdout carries the stdio protocol; logs go to stderr
    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    discovered = DiscoveryResult()
    try:
        for directory in args.discover:
            discovered.extend(discover(directory))
    except DiscoveryError as e:
        logger.error("%s", e)
        return 1

    def build_server(audit: AuditLogger | None = None) -> MCPServer:
        server = MCPServer.from_config(config, audit)
        register(server, discovered)
        return server

    try:
        if args.transport == "http":
            # One audit file shared by every session's server
            audit = AuditLogger(Path(config.audit_log_file)) if config.audit_log_file else None
            endpoint = HttpEndpoint(lambda: build_server(audit), config.http_options())
            run_http(
                endpoint,
                host=args.host or config.http_host,
                port=args.port or config.http_port,
                path=config.http_path,
                log_level="debug" if args.debug else config.log_level,
            )
            if audit is not None:
                audit.close()
            return 0

        transport = StdioTransport(debug=args.debug or config.stdio_debug)
        transport.log("mcp-server-kit started")
        with build_server() as server:
            server.connect(transport)
            server.run()
        transport.log("EOF received, shutting down")

    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        return 130  # Standard exit code for SIGINT

    except Exception as e:
        logger.exception("Server error: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
