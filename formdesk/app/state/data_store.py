"""
Per-template data store.

Holds the in-progress field values of every template touched during a
session, isolated per template so that switching templates never loses
work. Exactly one template is active (bound to the rendered form) at a
time.

Side effects of an edit:
- the template's generation cache entry is invalidated
- in the autosave variant, a debounced durable write is scheduled when
  the edited template is the active one

Autosaved values are read back through the writer, so a value still
waiting in the debounce window is never shadowed by an older stored one.

A template that was never touched is simply empty; lookups never raise.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Optional

from formdesk.app.state.generation_cache import GenerationCache
from formdesk.app.storage.debounce import DebouncedWriter
from formdesk.app.storage.kv import values_key

logger = logging.getLogger(__name__)

FormValues = Dict[str, str]


class TemplateDataStore:
    def __init__(
        self,
        cache: GenerationCache,
        writer: Optional[DebouncedWriter] = None,
        autosave: bool = False,
        namespace: Optional[str] = None,
    ) -> None:
        self._cache = cache
        self._writer = writer
        self._namespace = namespace
        self._autosave = autosave and writer is not None
        self._values: Dict[str, FormValues] = {}
        self._active: Optional[str] = None

    @property
    def active_template_id(self) -> Optional[str]:
        return self._active

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_values(self, template_id: str) -> FormValues:
        """Return a copy of the template's values (empty if never touched)."""
        return dict(self._state(template_id))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_value(self, template_id: str, field_id: str, value: Optional[str]) -> None:
        state = self._state(template_id)
        state[field_id] = "" if value is None else str(value)

        self._cache.invalidate(template_id)

        if self._autosave and template_id == self._active:
            self._writer.schedule(self._key(template_id), self._serialize(state))

    def switch_to(self, template_id: str) -> FormValues:
        """
        Make ``template_id`` the active template.

        Pending writes of the outgoing template are flushed first. The
        incoming state is fully loaded before the active pointer moves,
        so a reader never observes a half-migrated state.
        """
        outgoing = self._active
        if self._autosave and outgoing is not None:
            self._writer.flush(self._key(outgoing))

        incoming = dict(self._state(template_id))
        self._active = template_id

        if outgoing != template_id:
            logger.info(
                "store: switched template %s -> %s (%d values)",
                outgoing,
                template_id,
                len(incoming),
            )
        return incoming

    def clear(self, template_id: str) -> None:
        self._values[template_id] = {}
        self._cache.invalidate(template_id)

        if self._autosave:
            self._writer.schedule(self._key(template_id), self._serialize({}))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _state(self, template_id: str) -> FormValues:
        state = self._values.get(template_id)
        if state is None:
            state = self._load(template_id) if self._autosave else {}
            self._values[template_id] = state
        return state

    def _key(self, template_id: str) -> str:
        return values_key(template_id, self._namespace)

    def _load(self, template_id: str) -> FormValues:
        raw = self._writer.read(self._key(template_id))
        if raw is None:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(
                "store: autosaved values for template=%s are corrupt, ignoring",
                template_id,
            )
            return {}
        if not isinstance(data, dict):
            logger.warning(
                "store: autosaved values for template=%s are not a mapping, ignoring",
                template_id,
            )
            return {}
        return {
            str(k): str(v) for k, v in data.items() if isinstance(v, (str, int, float, bool))
        }

    @staticmethod
    def _serialize(values: FormValues) -> str:
        return json.dumps(values, sort_keys=True, ensure_ascii=False)
