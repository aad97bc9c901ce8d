from __future__ import annotations

from typing import Protocol

from formdesk.app.events.models import FormEvent


class FormEventEmitter(Protocol):
    """
    Interface for broadcasting user-visible notices.

    Implementations must be:
    - non-blocking
    - fail-safe (emission failures must not break a form operation)
    """

    def emit(self, event: FormEvent) -> None:
        ...


class NullEventEmitter:
    """
    A safe no-op emitter.

    Used when:
    - no UI is attached
    - tests that do not care about notices
    """

    def emit(self, event: FormEvent) -> None:
        return
