"""STDIO transport layer for MCP communication.

Handles reading/writing JSON-RPC batches over stdin/stdout, one JSON value
per line.
"""

from __future__ import annotations

import sys
from typing import Any, TextIO

from mcp_server_kit.protocol.jsonrpc import JsonRpcMessage, encode_batch, parse_json
from mcp_server_kit.transport.base import Transport


class StdioTransport(Transport):
    """STDIO transport for MCP communication.

    Reads JSON-RPC messages from stdin and writes responses to stdout.
    Logging goes to stderr to avoid corrupting the protocol stream.
    """

    def __init__(
        self,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
        debug: bool = False,
    ) -> None:
        """Initialize the transport.

        Args:
            stdin: Input stream (defaults to sys.stdin).
            stdout: Output stream (defaults to sys.stdout).
            stderr: Log stream (defaults to sys.stderr).
            debug: Trace every inbound and outbound line to stderr.
        """
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._stderr = stderr or sys.stderr
        self._debug = debug
        self._closed = False

    def read_line(self) -> str | None:
        """Read the next non-empty line from stdin.

        Returns:
            Line (stripped), or None on EOF.
        """
        while True:
            try:
                line = self._stdin.readline()
            except (OSError, ValueError) as e:
                self.log(f"Read failed: {e}")
                self._closed = True
                return None

            if not line:  # EOF
                self._closed = True
                return None

            line = line.strip()
            if line:  # Skip empty lines
                return line

    def receive(self) -> list[Any] | None:
        """Read one line and normalize it to a batch.

        A line holding a single object yields a one-element batch; a line
        holding an array is returned as-is.

        Raises:
            JsonRpcError: With PARSE_ERROR if the line is not valid JSON.
        """
        line = self.read_line()
        if line is None:
            return None
        if self._debug:
            self.log(f"<- {line}")

        data = parse_json(line)
        if isinstance(data, list):
            return data
        return [data]

    def send(self, messages: list[JsonRpcMessage]) -> None:
        """Write a batch as one compact JSON array line and flush."""
        if not messages:
            return
        line = encode_batch(messages)
        if self._debug:
            self.log(f"-> {line}")
        self._stdout.write(line + "\n")
        self._stdout.flush()

    def is_closed(self) -> bool:
        return self._closed

    def log(self, message: str) -> None:
        """Write a log message to stderr.

        Args:
            message: Log message.
        """
        self._stderr.write(f"[MCP] {message}\n")
        self._stderr.flush()
