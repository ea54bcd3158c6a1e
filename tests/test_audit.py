"""Tests for the request audit trail."""

import json
from datetime import datetime
from pathlib import Path

from mcp_server_kit.audit import AuditLogger, sanitize


class TestSanitize:
    """Tests for sensitive value redaction."""

    def test_redacts_sensitive_keys(self):
        """Should redact values under sensitive-looking keys."""
        result = sanitize(
            {
                "query": "normal query",
                "password": "secret123",
                "api_key": "sk-12345",
                "Authorization": "Bearer x",
            }
        )

        assert result == {
            "query": "normal query",
            "password": "[REDACTED]",
            "api_key": "[REDACTED]",
            "Authorization": "[REDACTED]",
        }

    def test_redacts_nested_mappings(self):
        """Should recurse into nested dictionaries such as tool arguments."""
        result = sanitize({"name": "login", "arguments": {"user": "bob", "token": "t"}})

        assert result == {"name": "login", "arguments": {"user": "bob", "token": "[REDACTED]"}}


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_creates_log_directory_if_missing(self, tmp_path: Path):
        """Should create the log directory if it doesn't exist."""
        log_path = tmp_path / "subdir" / "audit.log"
        logger = AuditLogger(log_path)

        assert log_path.parent.exists()
        logger.close()

    def test_writes_request_and_response_lines(self, tmp_path: Path):
        """Should write one JSON line per event."""
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as logger:
            logger.log_request(1, "tools/call", {"name": "echo", "arguments": {"password": "x"}})
            logger.log_response(1, "success", 1.25)

        request, response = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert request["type"] == "request"
        assert request["method"] == "tools/call"
        assert request["params"]["arguments"]["password"] == "[REDACTED]"
        assert response == {
            "type": "response",
            "timestamp": response["timestamp"],
            "request_id": 1,
            "result_status": "success",
            "execution_time_ms": 1.25,
        }

    def test_timestamp_is_iso8601_utc(self, tmp_path: Path):
        """Should use ISO 8601 timestamps in UTC."""
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as logger:
            logger.log_request("req-001", "ping", None)

        timestamp = json.loads(log_path.read_text())["timestamp"]
        assert timestamp.endswith("Z")
        assert datetime.fromisoformat(timestamp.replace("Z", "+00:00")).tzinfo is not None

    def test_append_mode_preserves_existing_logs(self, tmp_path: Path):
        """Should append to an existing log file."""
        log_path = tmp_path / "audit.log"
        with AuditLogger(log_path) as logger:
            logger.log_request("req-001", "a", {})
        with AuditLogger(log_path) as logger:
            logger.log_request("req-002", "b", {})

        assert len(log_path.read_text().splitlines()) == 2

    def test_flush_on_each_write(self, tmp_path: Path):
        """Should be readable before the logger is closed."""
        log_path = tmp_path / "audit.log"
        logger = AuditLogger(log_path)

        logger.log_request("req-001", "tool", {})

        assert "req-001" in log_path.read_text()
        logger.close()
