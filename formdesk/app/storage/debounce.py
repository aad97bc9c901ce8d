"""
Debounced durable writes.

A burst of writes to the same key inside the debounce window collapses
to a single write of the latest value (trailing-edge debounce). Pending
writes are lost if the process ends before they are flushed; callers
flush explicitly on template switches and on shutdown. Reads through
the writer see pending values before they reach the store.

The writer is driven cooperatively: ``poll()`` performs every write whose
window has elapsed and is called from the event loop (see the
persistence ticker in ``formdesk.app.main``).
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

from formdesk.app.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


class DebouncedWriter:
    """
    Collapses bursts of writes per key.

    A window of zero writes through immediately.
    """

    def __init__(
        self,
        store: KeyValueStore,
        window_seconds: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._window = max(0.0, window_seconds)
        self._clock = clock
        # key -> (deadline, latest value)
        self._pending: Dict[str, Tuple[float, str]] = {}
        self.write_count = 0

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def has_pending(self, key: Optional[str] = None) -> bool:
        if key is None:
            return bool(self._pending)
        return key in self._pending

    def read(self, key: str) -> Optional[str]:
        """Latest value of ``key``, pending writes included."""
        entry = self._pending.get(key)
        if entry is not None:
            return entry[1]
        return self._store.read(key)

    def schedule(self, key: str, value: str) -> None:
        """Queue ``value`` for ``key``, restarting the key's window."""
        if self._window == 0:
            self._pending.pop(key, None)
            self._write(key, value)
            return
        self._pending[key] = (self._clock() + self._window, value)

    def cancel(self, key: str) -> None:
        self._pending.pop(key, None)

    def poll(self) -> int:
        """Write every pending entry whose window has elapsed."""
        now = self._clock()
        due = [key for key, (deadline, _) in self._pending.items() if deadline <= now]
        for key in due:
            _, value = self._pending.pop(key)
            self._write(key, value)
        return len(due)

    def flush(self, key: Optional[str] = None) -> int:
        """Write pending entries immediately (one key, or all)."""
        keys = [key] if key is not None else list(self._pending)
        written = 0
        for k in keys:
            entry = self._pending.pop(k, None)
            if entry is None:
                continue
            self._write(k, entry[1])
            written += 1
        return written

    def _write(self, key: str, value: str) -> None:
        self._store.write(key, value)
        self.write_count += 1
        logger.debug("storage: wrote key=%s", key)
