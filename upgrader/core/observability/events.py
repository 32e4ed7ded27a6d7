"""
EventBus — thread-safe, in-process structured event sink with replay.

Every pipeline component receives the bus explicitly and publishes its
progress through it (step started / succeeded / failed, workspace
cleanup problems). The bus keeps a bounded ring buffer so the HTTP log
view and tests can replay what happened.

Message standard (v1)
─────────────────────
Every event is a dict with these fields::

    {
        "v": 1,                       # schema version
        "ts": 1739648400.123,         # wall-clock timestamp
        "seq": 47,                    # monotonic sequence
        "type": "step:failed",        # <domain>:<action>
        "key": "admin-app",           # module name ("" for system events)
        "data": { ... },              # event-specific payload
    }
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = 1

_WARNING_TYPES = {"workspace:cleanup_failed"}


class EventBus:
    """Thread-safe structured event sink with a bounded replay buffer.

    Parameters
    ----------
    buffer_size : int
        Maximum number of events kept for replay. Older events are
        silently discarded.
    """

    def __init__(self, *, buffer_size: int = 1000) -> None:
        self._lock = threading.Lock()
        self._seq: int = 0
        self._buffer: deque[dict[str, Any]] = deque(maxlen=buffer_size)

    @property
    def seq(self) -> int:
        """Current sequence number (monotonically increasing)."""
        with self._lock:
            return self._seq

    def publish(
        self,
        event_type: str,
        *,
        key: str = "",
        data: dict[str, Any] | None = None,
        **kw: Any,
    ) -> dict[str, Any]:
        """Record an event and mirror it to the log.

        Parameters
        ----------
        event_type : str
            Event type in ``<domain>:<action>`` format.
        key : str
            Module name the event belongs to.
        data : dict | None
            Event-specific payload.
        **kw :
            Additional top-level fields (``error``, ``duration_ms``).

        Returns
        -------
        dict
            The full event dict with ``seq`` assigned.
        """
        with self._lock:
            self._seq += 1
            event: dict[str, Any] = {
                "v": _SCHEMA_VERSION,
                "ts": time.time(),
                "seq": self._seq,
                "type": event_type,
                "key": key,
                "data": data or {},
                **kw,
            }
            self._buffer.append(event)

        level = logging.WARNING if event_type in _WARNING_TYPES or "error" in kw else logging.INFO
        logger.log(level, "[%s] %s %s", key or "-", event_type, event["data"] or "")
        return event

    def recent(self, key: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        """Buffered events, oldest first, optionally filtered by module."""
        with self._lock:
            events = [e for e in self._buffer if key is None or e["key"] == key]
        return events[-limit:] if limit > 0 else events

    def types(self, key: str | None = None) -> list[str]:
        """Event types in publish order (convenience for assertions)."""
        return [e["type"] for e in self.recent(key, limit=0)]

    def clear(self) -> None:
        """Drop the replay buffer (sequence keeps counting)."""
        with self._lock:
            self._buffer.clear()
