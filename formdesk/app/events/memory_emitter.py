from __future__ import annotations

from typing import List

from formdesk.app.events.emitter import FormEventEmitter
from formdesk.app.events.models import FormEvent, FormEventType


class MemoryEventEmitter(FormEventEmitter):
    """
    In-memory buffer of notices.

    The HTTP layer drains the buffer after every request and returns the
    notices alongside the response.

    Properties:
    - deterministic ordering
    - bounded (oldest notices are dropped first)
    """

    def __init__(self, max_events: int = 100) -> None:
        self._events: List[FormEvent] = []
        self._max_events = max_events

    def emit(self, event: FormEvent) -> None:
        self._events.append(event)
        if len(self._events) > self._max_events:
            del self._events[: len(self._events) - self._max_events]

    @property
    def events(self) -> List[FormEvent]:
        return list(self._events)

    def of_type(self, event_type: FormEventType) -> List[FormEvent]:
        return [e for e in self._events if e.event_type == event_type]

    def drain(self) -> List[FormEvent]:
        """Return buffered notices in order and empty the buffer."""
        drained, self._events = self._events, []
        return drained
