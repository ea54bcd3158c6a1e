"""HTTP session state.

A session is created by a successful initialize over HTTP and holds the
session's server, the SSE event-id counter and the replay buffers used for
stream resumability.
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from collections import OrderedDict, deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mcp_server_kit.server import MCPServer

logger = logging.getLogger(__name__)

# Session ids must consist of visible ASCII characters
SESSION_ID_PATTERN = re.compile(r"^[\x21-\x7e]{1,256}$")


def is_valid_session_id(value: str) -> bool:
    """Check that a session id is well formed."""
    return bool(SESSION_ID_PATTERN.match(value))


@dataclass(frozen=True)
class SseEvent:
    """A single Server-Sent Event."""

    id: int
    data: str
    event: str = "message"

    def encode(self) -> str:
        """Render the event in SSE wire format."""
        lines = [f"id: {self.id}", f"event: {self.event}"]
        lines.extend(f"data: {line}" for line in self.data.split("\n"))
        return "\n".join(lines) + "\n\n"


class Session:
    """State of one HTTP session.

    Requests for the same session are serialized with ``lock``; the event
    counter and replay buffers are only touched while it is held. At most
    ``stream_limit`` streams are kept for replay, oldest dropped first.
    """

    def __init__(
        self,
        session_id: str,
        server: MCPServer,
        buffer_size: int = 100,
        stream_limit: int = 16,
    ) -> None:
        self.id = session_id
        self.server = server
        self.lock = threading.Lock()
        self.last_seen = time.monotonic()
        self._buffer_size = buffer_size
        self._stream_limit = stream_limit
        self._last_event_id = 0
        self._streams: OrderedDict[str, deque[SseEvent]] = OrderedDict()

    @property
    def stream_count(self) -> int:
        return len(self._streams)

    def open_stream(self) -> str:
        """Create a new stream and return its id."""
        stream_id = uuid.uuid4().hex
        self._buffer(stream_id)
        return stream_id

    def _buffer(self, stream_id: str) -> deque[SseEvent]:
        events = self._streams.get(stream_id)
        if events is None:
            events = self._streams[stream_id] = deque(maxlen=self._buffer_size)
            while len(self._streams) > self._stream_limit:
                dropped, _ = self._streams.popitem(last=False)
                logger.debug("Session %s dropped replay buffer of stream %s", self.id, dropped)
        return events

    def record(self, stream_id: str, data: str) -> SseEvent:
        """Assign the next event id to a payload and buffer it for replay."""
        self._last_event_id += 1
        event = SseEvent(id=self._last_event_id, data=data)
        self._buffer(stream_id).append(event)
        return event

    def replay_after(self, last_event_id: int) -> list[SseEvent]:
        """Return the buffered events sent after ``last_event_id``.

        Events are replayed from the stream that carried ``last_event_id``;
        if that event is no longer buffered, every buffered event with a
        greater id is returned.
        """
        for events in self._streams.values():
            if any(event.id == last_event_id for event in events):
                return [event for event in events if event.id > last_event_id]

        later = [
            event
            for events in self._streams.values()
            for event in events
            if event.id > last_event_id
        ]
        return sorted(later, key=lambda event: event.id)


class SessionStore:
    """In-memory registry of live sessions with expiry."""

    def __init__(
        self,
        ttl: float = 3600.0,
        buffer_size: int = 100,
        stream_limit: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the store.

        Args:
            ttl: Seconds of inactivity after which a session expires.
            buffer_size: Events kept per stream for replay.
            stream_limit: Streams kept per session for replay.
            clock: Monotonic time source.
        """
        self._ttl = ttl
        self._buffer_size = buffer_size
        self._stream_limit = stream_limit
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, server: MCPServer) -> Session:
        """Create and register a new session for a server."""
        session = Session(uuid.uuid4().hex, server, self._buffer_size, self._stream_limit)
        session.last_seen = self._clock()
        with self._lock:
            self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Session | None:
        """Look up a live session, dropping expired ones first."""
        self.purge_expired()
        with self._lock:
            session = self._sessions.get(session_id)
        if session is not None:
            session.last_seen = self._clock()
        return session

    def remove(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.pop(session_id, None)

    def purge_expired(self) -> None:
        """Remove sessions idle for longer than the TTL and shut down their servers."""
        now = self._clock()
        with self._lock:
            expired = [s for s in self._sessions.values() if now - s.last_seen > self._ttl]
            for session in expired:
                del self._sessions[session.id]

        for session in expired:
            logger.info("Session %s expired", session.id)
            with session.lock:
                session.server.shutdown()
