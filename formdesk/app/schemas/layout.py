"""
Field layout schema.

A layout is the user-curated, ordered list of field ids rendered for a
template. It is persisted per template and survives reloads.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from formdesk.app.schemas.fields import FieldDefinition


class FieldLayoutConfig(BaseModel):
    """
    Ordered selection of fields for one template.

    Insertion order of ``selected_fields`` IS the render order.
    """

    template_id: str
    selected_fields: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("selected_fields")
    @classmethod
    def no_duplicate_ids(cls, v: List[str]) -> List[str]:
        if len(set(v)) != len(v):
            raise ValueError("selected_fields must not contain duplicate ids")
        return v


class RemovedFieldRecord(BaseModel):
    """
    A field taken out of the layout during a customization session.

    ``original_index`` is the position the field held in the layout at
    the moment it was removed.
    """

    field: FieldDefinition
    original_index: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)
