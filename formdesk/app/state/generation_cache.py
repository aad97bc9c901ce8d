"""
Generation cache.

Document generation is a network round-trip to the Document Service.
The cache keeps at most one result per template, tagged with the hash
of the values it was generated from. An entry is served only while that
hash still matches the values supplied by the caller; any edit of the
template invalidates it outright.
"""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional

from formdesk.app.schemas.generation import GenerationCacheEntry
from formdesk.app.utils.hashing import compute_values_hash

logger = logging.getLogger(__name__)


class GenerationCache:
    def __init__(self) -> None:
        self._entries: Dict[str, GenerationCacheEntry] = {}

    def get(
        self,
        template_id: str,
        current_values: Mapping[str, str],
    ) -> Optional[GenerationCacheEntry]:
        entry = self._entries.get(template_id)
        if entry is None:
            return None
        if entry.data_hash != compute_values_hash(current_values):
            return None
        return entry

    def put(
        self,
        template_id: str,
        current_values: Mapping[str, str],
        word_artifact: bytes,
        pdf_artifact: bytes,
    ) -> GenerationCacheEntry:
        entry = GenerationCacheEntry(
            template_id=template_id,
            data_hash=compute_values_hash(current_values),
            word_artifact=word_artifact,
            pdf_artifact=pdf_artifact,
        )
        self._entries[template_id] = entry
        logger.debug(
            "cache: stored template=%s hash=%s", template_id, entry.data_hash[:19]
        )
        return entry

    def invalidate(self, template_id: str) -> None:
        if self._entries.pop(template_id, None) is not None:
            logger.debug("cache: invalidated template=%s", template_id)

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
