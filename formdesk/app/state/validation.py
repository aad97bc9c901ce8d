"""
Validation gate.

Computes whether a step, or the whole form, satisfies every
required-field constraint. The gate is a pure function of the field
definitions being rendered and the current values; it holds no cached
result, so every edit is reflected on the next query.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional, Sequence

from formdesk.app.registry.registry import STEPS
from formdesk.app.schemas.fields import FieldCategory, FieldDefinition

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_filled(value: Optional[str]) -> bool:
    return value is not None and str(value).strip() != ""


def is_valid_email(address: str) -> bool:
    return bool(_EMAIL_PATTERN.match(address.strip()))


def normalize_recipients(recipients: Iterable[str]) -> List[str]:
    """Trim and de-duplicate recipients, preserving first-seen order."""
    seen: List[str] = []
    for raw in recipients:
        address = raw.strip()
        if address and address not in seen:
            seen.append(address)
    return seen


class ValidationGate:
    """
    Required-field checks over a set of field definitions.

    ``fields`` are the definitions known to the active template, normally
    the fields of its current layout.
    """

    def __init__(
        self,
        fields: Sequence[FieldDefinition],
        values: Mapping[str, str],
        steps: Sequence[FieldCategory] = tuple(step.id for step in STEPS),
    ) -> None:
        self._fields = list(fields)
        self._values = values
        self._steps = list(steps)

    def missing_required(self, step: Optional[FieldCategory] = None) -> List[str]:
        """Ids of required fields left empty, for one step or all."""
        return [
            f.id
            for f in self._fields
            if f.required
            and (step is None or f.category == step)
            and not is_filled(self._values.get(f.id))
        ]

    def is_step_valid(self, step: FieldCategory) -> bool:
        return not self.missing_required(step)

    def is_form_valid(self) -> bool:
        return all(self.is_step_valid(step) for step in self._steps)

    def first_invalid_step(self) -> Optional[int]:
        for index, step in enumerate(self._steps):
            if not self.is_step_valid(step):
                return index
        return None
