"""
Deterministic fingerprinting of form values.

The generation cache is keyed by a hash of a template's current field
values. Two logically identical value sets MUST hash identically
regardless of the order in which the individual edits were issued, so
values are canonicalized (sorted keys, compact separators, UTF-8) before
hashing.
"""

import hashlib
import json
from typing import Mapping


def canonicalize_values(values: Mapping[str, str]) -> bytes:
    """
    Canonical byte representation of a field-value mapping.

    Keys are sorted; values are serialized as their string form.
    """
    return json.dumps(
        {str(key): "" if value is None else str(value) for key, value in values.items()},
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    ).encode("utf-8")


def compute_values_hash(values: Mapping[str, str]) -> str:
    """
    Compute the data hash of a field-value mapping.

    Returns:
        A SHA-256 hash string with an explicit algorithm prefix.
        Example: ``SHA-256:3b7c0e4c...``
    """
    digest = hashlib.sha256(canonicalize_values(values)).hexdigest()
    return f"SHA-256:{digest}"
