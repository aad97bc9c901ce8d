"""
In-process registry of form sessions.

Each session gets its own notice buffer; the HTTP layer drains it after
every request. Sessions share the process-wide Document Service client
and debounced writer, but each keeps its durable state under its own
storage namespace: the client id when the caller supplies one, else the
session id.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from formdesk.app.coordinator.form_session import FormSession
from formdesk.app.events import FormEvent, MemoryEventEmitter

logger = logging.getLogger(__name__)

# (session id, notice buffer, storage namespace)
SessionFactory = Callable[[str, MemoryEventEmitter, str], FormSession]


class UnknownSessionError(KeyError):
    """Raised when a session id is not registered."""


class SessionRegistry:
    def __init__(self, factory: SessionFactory, max_notices: int = 100) -> None:
        self._factory = factory
        self._max_notices = max_notices
        self._sessions: Dict[str, FormSession] = {}
        self._notices: Dict[str, MemoryEventEmitter] = {}

    def create(self, client_id: Optional[str] = None) -> FormSession:
        session_id = uuid4().hex
        notices = MemoryEventEmitter(max_events=self._max_notices)
        session = self._factory(session_id, notices, client_id or session_id)
        self._sessions[session_id] = session
        self._notices[session_id] = notices
        logger.info("sessions: created session=%s", session_id)
        return session

    def get(self, session_id: str) -> FormSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise UnknownSessionError(session_id) from None

    def remove(self, session_id: str) -> None:
        session = self.get(session_id)
        session.flush()
        del self._sessions[session_id]
        del self._notices[session_id]
        logger.info("sessions: closed session=%s", session_id)

    def drain_notices(self, session_id: str) -> List[FormEvent]:
        self.get(session_id)
        return self._notices[session_id].drain()

    def __len__(self) -> int:
        return len(self._sessions)
