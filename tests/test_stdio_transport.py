"""Tests for the STDIO transport."""

import io
import json

import pytest

from mcp_server_kit.protocol.jsonrpc import PARSE_ERROR, JsonRpcError, JsonRpcMessage
from mcp_server_kit.transport.stdio import StdioTransport


def make_transport(stdin_text: str = "", debug: bool = False):
    stdout, stderr = io.StringIO(), io.StringIO()
    transport = StdioTransport(
        stdin=io.StringIO(stdin_text), stdout=stdout, stderr=stderr, debug=debug
    )
    return transport, stdout, stderr


class TestStdioReceive:
    """Tests for reading from stdin."""

    def test_wraps_single_message_in_batch(self):
        """Should normalize a single object to a one-element batch."""
        transport, _, _ = make_transport('{"jsonrpc":"2.0","id":1,"method":"test"}\n')

        assert transport.receive() == [{"jsonrpc": "2.0", "id": 1, "method": "test"}]

    def test_returns_array_as_batch(self):
        """Should return a JSON array unchanged."""
        transport, _, _ = make_transport('[{"a": 1}, {"b": 2}]\n')

        assert transport.receive() == [{"a": 1}, {"b": 2}]

    def test_skips_empty_lines(self):
        """Should skip blank lines."""
        transport, _, _ = make_transport('\n  \n{"valid": true}\n\n')

        assert transport.receive() == [{"valid": True}]

    def test_returns_none_on_eof(self):
        """Should return None and close when stdin is exhausted."""
        transport, _, _ = make_transport("")

        assert transport.receive() is None
        assert transport.is_closed()

    def test_raises_parse_error(self):
        """Should raise PARSE_ERROR for invalid JSON."""
        transport, _, _ = make_transport("{nope\n")

        with pytest.raises(JsonRpcError) as exc_info:
            transport.receive()
        assert exc_info.value.code == PARSE_ERROR
        assert not transport.is_closed()

    def test_closed_stream(self):
        """Should treat a closed stdin as end of input."""
        stdin = io.StringIO("x")
        stdin.close()
        transport = StdioTransport(stdin=stdin, stdout=io.StringIO(), stderr=io.StringIO())

        assert transport.receive() is None
        assert transport.is_closed()


class TestStdioSend:
    """Tests for writing to stdout."""

    def test_writes_batch_line(self):
        """Should write one compact JSON array line per batch."""
        transport, stdout, _ = make_transport()

        transport.send([JsonRpcMessage.success(1, {}), JsonRpcMessage.success(2, {})])

        assert stdout.getvalue() == (
            '[{"jsonrpc":"2.0","result":{},"id":1},{"jsonrpc":"2.0","result":{},"id":2}]\n'
        )

    def test_writes_nothing_for_empty_batch(self):
        """Should not write anything for an empty batch."""
        transport, stdout, _ = make_transport()

        transport.send([])

        assert stdout.getvalue() == ""

    def test_logs_to_stderr(self):
        """Should write log lines to stderr only."""
        transport, stdout, stderr = make_transport()

        transport.log("started")

        assert stderr.getvalue() == "[MCP] started\n"
        assert stdout.getvalue() == ""

    def test_debug_traces_traffic(self):
        """Should trace inbound and outbound lines in debug mode."""
        transport, stdout, stderr = make_transport('{"a": 1}\n', debug=True)

        transport.receive()
        transport.send([JsonRpcMessage.success(1, {})])

        trace = stderr.getvalue()
        assert '[MCP] <- {"a": 1}' in trace
        assert "[MCP] -> " in trace
        assert json.loads(stdout.getvalue()) == [{"jsonrpc": "2.0", "result": {}, "id": 1}]
