"""
Field customization subsystem.

Lets the user curate which fields appear, and in what order, for a
template, independently of the schema's declared defaults.

Modes:

    FILLING  <->  CUSTOMIZING

FILLING is the initial mode. Layout operations are accepted only while
CUSTOMIZING a template that allows customization; they are visible in
the render immediately but become durable only on ``commit()``.

Index-based operations originate from internal UI events. Out-of-range
indices are clamped or ignored, never raised.

Removed fields are kept in a plain list rather than a stack: any record
may be restored regardless of removal order. A record's
``original_index`` is the position at removal time and is not adjusted
for later removals; restoring inserts at
``min(original_index, len(selected_fields))``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional

from pydantic import ValidationError

from formdesk.app.registry.registry import field_universe, get_template
from formdesk.app.schemas.fields import FieldCategory, FieldDefinition
from formdesk.app.schemas.layout import FieldLayoutConfig, RemovedFieldRecord
from formdesk.app.storage.debounce import DebouncedWriter
from formdesk.app.storage.kv import layout_key

logger = logging.getLogger(__name__)


class CustomizationMode(str, Enum):
    FILLING = "filling"
    CUSTOMIZING = "customizing"


class MoveDirection(str, Enum):
    UP = "up"
    DOWN = "down"


def default_layout(template_id: str) -> FieldLayoutConfig:
    """All known fields of the template, in schema-declared order."""
    return FieldLayoutConfig(
        template_id=template_id,
        selected_fields=[f.id for f in field_universe(template_id)],
    )


def load_layout(
    writer: DebouncedWriter, template_id: str, namespace: Optional[str] = None
) -> Optional[FieldLayoutConfig]:
    """
    Read the persisted layout of a template.

    A committed layout still waiting in the writer counts as persisted.

    Returns None when nothing usable is stored. Unknown and duplicate
    field ids are dropped so the loaded layout always satisfies the
    layout invariants against the current schema.
    """
    raw = writer.read(layout_key(template_id, namespace))
    if raw is None:
        return None

    try:
        stored = FieldLayoutConfig.model_validate_json(raw)
    except ValidationError:
        logger.warning(
            "layout: stored layout for template=%s is corrupt, using defaults",
            template_id,
        )
        return None

    known = {f.id for f in field_universe(template_id)}
    cleaned: List[str] = []
    for field_id in stored.selected_fields:
        if field_id in known and field_id not in cleaned:
            cleaned.append(field_id)

    if len(cleaned) != len(stored.selected_fields):
        logger.warning(
            "layout: dropped %d unknown field(s) from stored layout of template=%s",
            len(stored.selected_fields) - len(cleaned),
            template_id,
        )

    return FieldLayoutConfig(template_id=template_id, selected_fields=cleaned)


class FieldCustomizer:
    """
    Layout editor for the active template of a session.

    Owns the working copy of ``selected_fields`` and the removed-field
    list. Durable writes go through the debounced writer, under keys
    scoped by ``namespace`` when one is given.
    """

    def __init__(self, writer: DebouncedWriter, namespace: Optional[str] = None) -> None:
        self._writer = writer
        self._namespace = namespace
        self._template_id: Optional[str] = None
        self._universe: Dict[str, FieldDefinition] = {}
        self._selected: List[str] = []
        self._removed: List[RemovedFieldRecord] = []
        self._mode = CustomizationMode.FILLING

    # ------------------------------------------------------------------
    # Template binding
    # ------------------------------------------------------------------

    def load(self, template_id: str) -> FieldLayoutConfig:
        """
        Bind the customizer to a template.

        Leaves customization mode, discarding the removed-field list, and
        loads the persisted layout (or the schema default).
        """
        self._template_id = template_id
        self._universe = {f.id: f for f in field_universe(template_id)}
        layout = (
            load_layout(self._writer, template_id, self._namespace)
            or default_layout(template_id)
        )
        self._selected = list(layout.selected_fields)
        self._removed = []
        self._mode = CustomizationMode.FILLING
        return layout

    @property
    def template_id(self) -> Optional[str]:
        return self._template_id

    @property
    def allows_customization(self) -> bool:
        if self._template_id is None:
            return False
        template = get_template(self._template_id)
        return template is not None and template.allows_customization

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    @property
    def mode(self) -> CustomizationMode:
        return self._mode

    @property
    def is_customizing(self) -> bool:
        return self._mode == CustomizationMode.CUSTOMIZING

    def enter(self) -> bool:
        if not self.allows_customization:
            logger.debug("layout: template=%s does not allow customization", self._template_id)
            return False
        self._mode = CustomizationMode.CUSTOMIZING
        return True

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def selected_fields(self) -> List[str]:
        return list(self._selected)

    @property
    def removed_fields(self) -> List[RemovedFieldRecord]:
        return list(self._removed)

    def layout(self) -> FieldLayoutConfig:
        return FieldLayoutConfig(
            template_id=self._template_id or "",
            selected_fields=list(self._selected),
        )

    def selected_definitions(
        self, category: Optional[FieldCategory] = None
    ) -> List[FieldDefinition]:
        """Field definitions in render order, optionally for one step."""
        definitions = [self._universe[f] for f in self._selected if f in self._universe]
        if category is None:
            return definitions
        return [f for f in definitions if f.category == category]

    def available_fields(
        self, category: Optional[FieldCategory] = None
    ) -> List[FieldDefinition]:
        """Fields of the universe not yet in the layout."""
        selected = set(self._selected)
        return [
            f
            for f in self._universe.values()
            if f.id not in selected and (category is None or f.category == category)
        ]

    # ------------------------------------------------------------------
    # Layout operations (CUSTOMIZING only)
    # ------------------------------------------------------------------

    def add_field(self, field_id: str) -> None:
        if not self._editable():
            return
        if field_id in self._selected:
            return
        if field_id not in self._universe:
            logger.debug("layout: ignoring unknown field=%s", field_id)
            return
        self._selected.append(field_id)

    def remove_field(self, index: int) -> None:
        if not self._editable():
            return
        if not 0 <= index < len(self._selected):
            logger.debug("layout: remove index %d out of range", index)
            return
        field_id = self._selected.pop(index)
        self._removed.append(
            RemovedFieldRecord(field=self._universe[field_id], original_index=index)
        )

    def restore_field(self, record: RemovedFieldRecord) -> None:
        if not self._editable():
            return
        try:
            position = self._removed.index(record)
        except ValueError:
            logger.debug("layout: no removed record for field=%s", record.field.id)
            return
        del self._removed[position]

        if record.field.id in self._selected:
            # Re-added through add_field since removal.
            return
        insert_index = min(record.original_index, len(self._selected))
        self._selected.insert(insert_index, record.field.id)

    def restore_field_by_id(self, field_id: str) -> None:
        """Restore the first removed record for ``field_id``, if any."""
        for record in self._removed:
            if record.field.id == field_id:
                self.restore_field(record)
                return

    def move_field(self, index: int, direction: MoveDirection) -> None:
        if not self._editable():
            return
        if not 0 <= index < len(self._selected):
            return
        target = index - 1 if direction == MoveDirection.UP else index + 1
        if not 0 <= target < len(self._selected):
            return
        self._selected[index], self._selected[target] = (
            self._selected[target],
            self._selected[index],
        )

    def reorder(self, from_index: int, to_index: int) -> None:
        """Drag-and-drop move of a single element (not a swap)."""
        if not self._editable():
            return
        if not 0 <= from_index < len(self._selected):
            return
        to_index = max(0, min(to_index, len(self._selected) - 1))
        if from_index == to_index:
            return
        field_id = self._selected.pop(from_index)
        self._selected.insert(to_index, field_id)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def commit(self) -> FieldLayoutConfig:
        """
        Persist the working layout and return to FILLING.

        Returns the new authoritative layout.
        """
        layout = self.layout()
        if self._template_id is not None:
            self._writer.schedule(
                layout_key(self._template_id, self._namespace),
                layout.model_dump_json(),
            )
            logger.info(
                "layout: committed template=%s (%d fields)",
                self._template_id,
                len(layout.selected_fields),
            )
        self._removed = []
        self._mode = CustomizationMode.FILLING
        return layout

    def has_custom_layout(self, template_id: Optional[str] = None) -> bool:
        template_id = template_id or self._template_id
        if template_id is None:
            return False
        return self._writer.read(layout_key(template_id, self._namespace)) is not None

    def reset_layout(self) -> FieldLayoutConfig:
        """
        Forget the persisted layout and fall back to schema defaults.

        Like the other layout operations, ignored outside customization
        mode. Returns to FILLING without committing the working layout.
        """
        if not self._editable():
            return self.layout()
        key = layout_key(self._template_id, self._namespace)
        self._writer.cancel(key)
        self._writer.store.delete(key)
        layout = default_layout(self._template_id)
        self._selected = list(layout.selected_fields)
        self._removed = []
        self._mode = CustomizationMode.FILLING
        logger.info("layout: reset template=%s to defaults", self._template_id)
        return layout

    def _editable(self) -> bool:
        if not self.is_customizing or not self.allows_customization:
            logger.debug("layout: operation ignored outside customization mode")
            return False
        return True
