"""
Durable key-value storage.

Client-local persistent storage for layouts and autosaved values, keyed
by plain strings:

    layout:<templateId>   serialized FieldLayoutConfig
    values:<templateId>   serialized field values (autosave variant)

When several clients share one backing store, each gets a namespace
and its keys read ``layout:<namespace>:<templateId>``.

Values are opaque strings; callers serialize structurally (JSON).
Corrupt or missing data is never fatal: a store whose backing file
cannot be parsed behaves as an empty store.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


def _key(kind: str, template_id: str, namespace: Optional[str]) -> str:
    if namespace:
        return f"{kind}:{namespace}:{template_id}"
    return f"{kind}:{template_id}"


def layout_key(template_id: str, namespace: Optional[str] = None) -> str:
    return _key("layout", template_id, namespace)


def values_key(template_id: str, namespace: Optional[str] = None) -> str:
    return _key("values", template_id, namespace)


class KeyValueStore(Protocol):
    """
    Interface for durable string storage.

    Implementations must never raise on a missing key.
    """

    def read(self, key: str) -> Optional[str]:
        ...

    def write(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """
    Process-local store.

    Used when:
    - durable storage is disabled
    - tests that do not care about the filesystem
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileKeyValueStore:
    """
    Store backed by a single JSON object on disk.

    The file is re-read on every access so that several stores pointing
    at the same path observe each other's writes. Writes replace the
    file atomically (temporary file + rename).
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def _load(self) -> Dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("storage: cannot read %s: %s", self._path, exc)
            return {}

        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning(
                "storage: %s is not valid JSON, treating as empty", self._path
            )
            return {}

        if not isinstance(data, dict):
            logger.warning(
                "storage: %s does not hold a JSON object, treating as empty",
                self._path,
            )
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _dump(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=".storage-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, sort_keys=True)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def read(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def write(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)
