"""
Form view construction.

The renderer is a pure function of the ordered field definitions, the
current values and the session flags. It produces a transport-agnostic
description of the form; any rendering technology consumes this
description and sends edits back as discrete events.
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict

from formdesk.app.registry.registry import STEPS
from formdesk.app.schemas.fields import FieldCategory, FieldDefinition, FieldKind
from formdesk.app.schemas.templates import StepDefinition
from formdesk.app.state.validation import ValidationGate, is_filled


class FieldView(BaseModel):
    id: str
    label: str
    kind: FieldKind
    required: bool
    readonly: bool
    options: Optional[Tuple[str, ...]] = None
    placeholder: Optional[str] = None
    value: str = ""
    missing: bool = False

    model_config = ConfigDict(frozen=True)


class StepView(BaseModel):
    id: FieldCategory
    label: str
    description: str
    valid: bool
    fields: List[FieldView]
    available_fields: List[str] = []

    model_config = ConfigDict(frozen=True)


class FormView(BaseModel):
    template_id: str
    mode: str
    current_step: int
    steps: List[StepView]
    removed_fields: List[str]
    can_advance: bool
    can_generate: bool

    model_config = ConfigDict(frozen=True)


def build_field_view(field: FieldDefinition, values: Mapping[str, str]) -> FieldView:
    value = values.get(field.id)
    if value is None:
        value = field.default_value or ""
    return FieldView(
        id=field.id,
        label=field.label,
        kind=field.kind,
        required=field.required,
        readonly=field.kind == FieldKind.READONLY_AUTO,
        options=field.options,
        placeholder=field.placeholder,
        value=value,
        missing=field.required and not is_filled(values.get(field.id)),
    )


def build_form_view(
    *,
    template_id: str,
    fields: Sequence[FieldDefinition],
    values: Mapping[str, str],
    current_step: int,
    customizing: bool,
    available: Sequence[FieldDefinition] = (),
    removed: Sequence[str] = (),
    steps: Sequence[StepDefinition] = STEPS,
) -> FormView:
    """
    Describe the form for the renderer.

    ``fields`` are in layout order. Available (not yet added) fields are
    only listed while customizing.
    """
    gate = ValidationGate(fields, values, steps=[s.id for s in steps])
    step_views = [
        StepView(
            id=step.id,
            label=step.label,
            description=step.description,
            valid=gate.is_step_valid(step.id),
            fields=[build_field_view(f, values) for f in fields if f.category == step.id],
            available_fields=(
                [f.id for f in available if f.category == step.id] if customizing else []
            ),
        )
        for step in steps
    ]

    current_valid = (
        step_views[current_step].valid if 0 <= current_step < len(step_views) else True
    )
    return FormView(
        template_id=template_id,
        mode="customizing" if customizing else "filling",
        current_step=current_step,
        steps=step_views,
        removed_fields=list(removed),
        can_advance=customizing or current_valid,
        can_generate=gate.is_form_valid(),
    )
