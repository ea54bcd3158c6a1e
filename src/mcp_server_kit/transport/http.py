"""Streamable HTTP transport for MCP.

Implements the MCP Streamable-HTTP rules for one HTTP request at a time:
POST carries JSON-RPC messages (answered with JSON or an SSE stream),
GET resumes an SSE stream from a Last-Event-ID, DELETE ends a session.
The classes here are framework-neutral; ``transport.app`` adapts them to
Starlette.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from mcp_server_kit.protocol.jsonrpc import (
    INVALID_REQUEST,
    PARSE_ERROR,
    JsonRpcError,
    JsonRpcMessage,
    decode_values,
    encode,
    parse_json,
    to_dict,
)
from mcp_server_kit.transport.base import Transport
from mcp_server_kit.transport.sessions import (
    Session,
    SessionStore,
    SseEvent,
    is_valid_session_id,
)

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
LAST_EVENT_ID_HEADER = "Last-Event-ID"

JSON_MEDIA_TYPE = "application/json"
SSE_MEDIA_TYPE = "text/event-stream"


@dataclass
class HttpOptions:
    """Behavior switches for the HTTP transport."""

    allowed_origins: list[str] = field(default_factory=list)
    allow_unsolicited_stream: bool = False
    prefer_sse: bool = False
    session_ttl: float = 3600.0
    replay_buffer_size: int = 100
    replay_stream_limit: int = 16


@dataclass
class HttpRequest:
    """A framework-neutral HTTP request."""

    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def __post_init__(self) -> None:
        self.method = self.method.upper()
        self.headers = {key.lower(): value for key, value in self.headers.items()}

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


@dataclass
class HttpResponse:
    """A framework-neutral HTTP response.

    Streaming responses carry ``events`` instead of a body.
    """

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    events: list[SseEvent] | None = None

    @property
    def is_stream(self) -> bool:
        return self.events is not None

    def iter_events(self) -> Iterator[bytes]:
        """Yield each SSE frame in order."""
        for event in self.events or []:
            yield event.encode().encode("utf-8")


class HttpState(Enum):
    """States of a single HTTP exchange."""

    AWAITING_REQUEST = "awaiting_request"
    PROCESSING = "processing"
    JSON_RESPONSE = "json_response"
    SSE_STREAM = "sse_stream"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def accepts_media_type(accept: str | None, media_type: str, default: bool = True) -> bool:
    """Check whether an Accept header allows a media type.

    Args:
        accept: Raw Accept header value.
        media_type: Media type to look for.
        default: Result when the header is missing or empty.

    Returns:
        True if the media type (or a matching wildcard) is acceptable.
    """
    if not accept or not accept.strip():
        return default

    major = media_type.split("/")[0]
    for part in accept.split(","):
        pieces = [piece.strip() for piece in part.split(";")]
        candidate = pieces[0].lower()
        quality = 1.0
        for piece in pieces[1:]:
            if piece.startswith("q="):
                try:
                    quality = float(piece[2:])
                except ValueError:
                    quality = 0.0
        if quality <= 0:
            continue
        if candidate in (media_type, "*/*", f"{major}/*"):
            return True
    return False


def _error_body(message: str, code: int = INVALID_REQUEST) -> bytes:
    return json.dumps(to_dict(JsonRpcMessage.failure(None, code, message))).encode("utf-8")


class HttpTransport(Transport):
    """Transport bound to a single HTTP request.

    ``admit()`` validates and classifies the request. Only a POST that
    carries messages for the server returns True; everything else is
    answered directly and exposed through ``response``.
    """

    def __init__(
        self,
        request: HttpRequest,
        sessions: SessionStore,
        options: HttpOptions | None = None,
    ) -> None:
        self._request = request
        self._sessions = sessions
        self._options = options or HttpOptions()
        self._state = HttpState.AWAITING_REQUEST
        self._session: Session | None = None
        self._stream_id: str | None = None
        self._response: HttpResponse | None = None
        self._raw_batch: list[Any] | None = None
        self._is_batch = False
        self._use_sse = False
        self._received = False
        self._outbound: list[JsonRpcMessage] = []
        self._events: list[SseEvent] = []
        self._local_event_id = 0
        self.requests_initialize = False

    @property
    def state(self) -> HttpState:
        return self._state

    @property
    def session(self) -> Session | None:
        return self._session

    def admit(self) -> bool:
        """Validate the request.

        Returns:
            True if the request carries messages that must be dispatched.
        """
        if self._state != HttpState.AWAITING_REQUEST:
            raise RuntimeError("Request already admitted")

        origin = self._request.header("Origin")
        if origin is not None and origin not in self._options.allowed_origins:
            self._reject(403, f"Origin not allowed: {origin}")
            return False

        method = self._request.method
        if method == "POST":
            return self._admit_post()
        if method == "GET":
            self._handle_get()
        elif method == "DELETE":
            self._handle_delete()
        else:
            self._reject(405, f"Method not allowed: {method}", {"Allow": "GET, POST, DELETE"})
        return False

    def _reject(self, status: int, message: str, headers: dict[str, str] | None = None,
                code: int = INVALID_REQUEST) -> None:
        logger.info("Rejected %s request with %d: %s", self._request.method, status, message)
        self._state = HttpState.REJECTED
        response_headers = {"Content-Type": JSON_MEDIA_TYPE}
        response_headers.update(headers or {})
        self._response = HttpResponse(status, response_headers, _error_body(message, code))

    def _resolve_session(self, required: bool) -> Session | None:
        """Look up the session named by the request header.

        Rejects the request when the header is malformed, names an unknown
        session, or is missing while ``required``.

        Returns:
            The session, or None if there is none or the request was rejected.
        """
        session_id = self._request.header(SESSION_HEADER)
        if session_id is None:
            if required:
                self._reject(400, f"Missing {SESSION_HEADER} header")
            return None
        if not is_valid_session_id(session_id):
            self._reject(400, f"Malformed {SESSION_HEADER} header")
            return None
        session = self._sessions.get(session_id)
        if session is None:
            self._reject(404, f"Unknown session: {session_id}")
        return session

    def _admit_post(self) -> bool:
        content_type = (self._request.header("Content-Type") or "").split(";")[0].strip().lower()
        if content_type != JSON_MEDIA_TYPE:
            self._reject(415, f"Unsupported Content-Type: {content_type or 'none'}")
            return False

        accept = self._request.header("Accept")
        json_ok = accepts_media_type(accept, JSON_MEDIA_TYPE)
        sse_ok = accepts_media_type(accept, SSE_MEDIA_TYPE, default=False)
        if not json_ok and not sse_ok:
            self._reject(406, "Accept must allow application/json or text/event-stream")
            return False

        self._session = self._resolve_session(required=False)
        if self._state == HttpState.REJECTED:
            return False

        try:
            raw = parse_json(self._request.body.decode("utf-8"))
            self._is_batch = isinstance(raw, list)
            values = raw if isinstance(raw, list) else [raw]
            messages = decode_values(values)
        except UnicodeDecodeError:
            self._reject(400, "Request body is not valid UTF-8", code=PARSE_ERROR)
            return False
        except JsonRpcError as e:
            self._reject(400, e.message, code=e.code)
            return False

        self._raw_batch = values
        self.requests_initialize = any(
            m.method == "initialize" and m.is_request for m in messages
        )

        if not any(m.is_request for m in messages):
            self._state = HttpState.ACCEPTED
            self._response = HttpResponse(202)
            return True

        self._use_sse = sse_ok and (not json_ok or self._options.prefer_sse)
        if self._use_sse and self._session is not None:
            self._stream_id = self._session.open_stream()
        self._state = HttpState.PROCESSING
        return True

    def _handle_get(self) -> None:
        if not accepts_media_type(self._request.header("Accept"), SSE_MEDIA_TYPE, default=False):
            self._reject(406, "GET requires Accept: text/event-stream")
            return
        session = self._resolve_session(required=True)
        if session is None:
            return
        self._session = session

        last_event_id = self._request.header(LAST_EVENT_ID_HEADER)
        if last_event_id is None:
            if not self._options.allow_unsolicited_stream:
                self._reject(405, "Server does not offer an unsolicited stream", {"Allow": "POST, DELETE"})
                return
            events: list[SseEvent] = []
        else:
            try:
                after = int(last_event_id)
            except ValueError:
                self._reject(400, f"Malformed {LAST_EVENT_ID_HEADER} header")
                return
            with session.lock:
                events = session.replay_after(after)

        self._state = HttpState.SSE_STREAM
        self._response = HttpResponse(200, self._sse_headers(), events=events)

    def _handle_delete(self) -> None:
        session = self._resolve_session(required=True)
        if session is None:
            return
        self._session = session
        with session.lock:
            session.server.shutdown()
        self._sessions.remove(session.id)
        logger.info("Session %s terminated by client", session.id)
        self._state = HttpState.ACCEPTED
        self._response = HttpResponse(204)

    def attach_session(self, session: Session) -> None:
        """Bind a session created for this request."""
        self._session = session
        if self._use_sse:
            self._stream_id = session.open_stream()

    def detach_session(self) -> None:
        """Unbind a session that was discarded."""
        self._session = None
        self._stream_id = None

    def receive(self) -> list[Any] | None:
        """Return the admitted batch once, then None."""
        if self._received or self._raw_batch is None:
            return None
        self._received = True
        return self._raw_batch

    def send(self, messages: list[JsonRpcMessage]) -> None:
        """Queue outbound messages.

        In SSE mode every message becomes an event. In JSON mode only
        responses are kept; notifications cannot be delivered.
        """
        if self._state != HttpState.PROCESSING:
            logger.debug("Dropping %d message(s) for a request that needs no reply", len(messages))
            return

        for message in messages:
            if self._use_sse:
                self._events.append(self._next_event(encode(message)))
            elif message.is_response:
                self._outbound.append(message)
            else:
                logger.debug("Dropping %s: JSON responses cannot carry notifications", message.method)

    def _next_event(self, data: str) -> SseEvent:
        if self._session is not None and self._stream_id is not None:
            return self._session.record(self._stream_id, data)
        self._local_event_id += 1
        return SseEvent(id=self._local_event_id, data=data)

    def is_closed(self) -> bool:
        return self._received or self._state != HttpState.PROCESSING

    @staticmethod
    def _sse_headers() -> dict[str, str]:
        return {"Content-Type": SSE_MEDIA_TYPE, "Cache-Control": "no-cache"}

    @property
    def response(self) -> HttpResponse:
        """The HTTP response for this request."""
        if self._state == HttpState.AWAITING_REQUEST:
            raise RuntimeError("Request has not been admitted")

        if self._state == HttpState.PROCESSING:
            if self._use_sse:
                self._state = HttpState.SSE_STREAM
                self._response = HttpResponse(200, self._sse_headers(), events=list(self._events))
            elif self._outbound:
                self._state = HttpState.JSON_RESPONSE
                if self._is_batch:
                    payload: Any = [to_dict(m) for m in self._outbound]
                else:
                    payload = to_dict(self._outbound[0])
                self._response = HttpResponse(
                    200, {"Content-Type": JSON_MEDIA_TYPE}, json.dumps(payload).encode("utf-8")
                )
            else:
                self._state = HttpState.ACCEPTED
                self._response = HttpResponse(202)

        if self._session is not None and self._state != HttpState.REJECTED:
            self._response.headers[SESSION_HEADER] = self._session.id
        return self._response


class HttpEndpoint:
    """Serves MCP over HTTP, one request at a time per session.

    Each session gets its own server built by ``server_factory``.
    Sessionless POSTs are served by a fresh server (stateless use).
    """

    def __init__(
        self,
        server_factory: Callable[[], Any],
        options: HttpOptions | None = None,
        sessions: SessionStore | None = None,
    ) -> None:
        """Initialize the endpoint.

        Args:
            server_factory: Returns a new MCPServer with its capabilities registered.
            options: HTTP transport options.
            sessions: Session store (created from the options if omitted).
        """
        self._server_factory = server_factory
        self._options = options or HttpOptions()
        self._sessions = sessions or SessionStore(
            ttl=self._options.session_ttl,
            buffer_size=self._options.replay_buffer_size,
            stream_limit=self._options.replay_stream_limit,
        )

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    def handle(self, request: HttpRequest) -> HttpResponse:
        """Handle one HTTP request."""
        transport = HttpTransport(request, self._sessions, self._options)
        if not transport.admit():
            return transport.response

        session = transport.session
        if session is None:
            if not transport.requests_initialize:
                server = self._server_factory()
                self._serve(server, transport)
                if server.is_initialized:
                    server.shutdown()
                return transport.response

            session = self._sessions.create(self._server_factory())
            transport.attach_session(session)
            with session.lock:
                self._serve(session.server, transport)
            if not session.server.is_initialized:
                self._sessions.remove(session.id)
                transport.detach_session()
            else:
                logger.info("Session %s created", session.id)
            return transport.response

        with session.lock:
            self._serve(session.server, transport)
        if session.server.is_closed:
            self._sessions.remove(session.id)
            logger.info("Session %s closed by shutdown", session.id)
        return transport.response

    @staticmethod
    def _serve(server: Any, transport: HttpTransport) -> None:
        server.connect(transport)
        server.run()
