"""
Template and step schema.
"""

from typing import Tuple

from pydantic import BaseModel, ConfigDict

from formdesk.app.schemas.fields import FieldCategory, FieldDefinition


class StepDefinition(BaseModel):
    """One navigable section of the form, bound to a field category."""

    id: FieldCategory
    label: str
    description: str

    model_config = ConfigDict(frozen=True)


class TemplateDefinition(BaseModel):
    """
    Declarative description of a document template.

    ``fields`` lists the template-specific fields only. The full field
    universe of a template is the registry's common fields plus these,
    see ``formdesk.app.registry.registry.field_universe``.
    """

    id: str
    title: str
    description: str
    fields: Tuple[FieldDefinition, ...] = ()
    allows_customization: bool = True

    model_config = ConfigDict(frozen=True)
