import random
import time
from typing import Callable, Optional, Tuple

from formdesk.app.coordinator.form_session import FormSession
from formdesk.app.events import MemoryEventEmitter
from formdesk.app.storage.debounce import DebouncedWriter
from formdesk.app.storage.kv import InMemoryKeyValueStore, KeyValueStore
from formdesk.tests.fixtures.fake_document_service import FakeDocumentService


def build_session(
    service: Optional[FakeDocumentService] = None,
    *,
    store: Optional[KeyValueStore] = None,
    writer: Optional[DebouncedWriter] = None,
    window_seconds: float = 0.0,
    clock: Optional[Callable[[], float]] = None,
    autosave: bool = False,
    storage_namespace: Optional[str] = None,
    session_id: str = "session-test",
    template_id: Optional[str] = "designation",
) -> Tuple[FormSession, MemoryEventEmitter]:
    """
    A session over in-memory storage.

    Writes go through by default; pass ``window_seconds`` and a fake
    ``clock`` to exercise the debounce window, or a shared ``writer`` to
    put several sessions on one store. The emitter is returned alongside
    so tests can inspect notices.
    """
    if writer is None:
        writer = DebouncedWriter(
            store if store is not None else InMemoryKeyValueStore(),
            window_seconds=window_seconds,
            clock=clock if clock is not None else time.monotonic,
        )
    emitter = MemoryEventEmitter()
    session = FormSession(
        session_id=session_id,
        document_service=service if service is not None else FakeDocumentService(),
        writer=writer,
        emitter=emitter,
        autosave=autosave,
        storage_namespace=storage_namespace,
        rng=random.Random(7),
    )
    if template_id is not None:
        session.select_template(template_id)
    return session, emitter


def fill(session: FormSession, values: dict) -> None:
    for field_id, value in values.items():
        session.set_value(field_id, value)
