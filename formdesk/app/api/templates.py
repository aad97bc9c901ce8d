"""
Template discovery and field schema endpoints.

Both routes are read-only and operate entirely from the in-process
registry.
"""

from typing import List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from formdesk.app.registry.registry import STEPS, TEMPLATE_REGISTRY, field_universe
from formdesk.app.schemas.fields import FieldDefinition
from formdesk.app.schemas.templates import StepDefinition

router = APIRouter()


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TemplateListItem(BaseModel):
    id: str
    title: str
    description: str
    allows_customization: bool


class TemplateFieldsResponse(BaseModel):
    id: str
    title: str
    steps: List[StepDefinition]
    fields: List[FieldDefinition]


# ---------------------------------------------------------------------------
# GET /templates
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=List[TemplateListItem],
    summary="List registered document templates",
)
def list_templates() -> List[TemplateListItem]:
    return [
        TemplateListItem(
            id=entry.id,
            title=entry.title,
            description=entry.description,
            allows_customization=entry.allows_customization,
        )
        for entry in TEMPLATE_REGISTRY.values()
    ]


# ---------------------------------------------------------------------------
# GET /templates/{template_id}/fields
# ---------------------------------------------------------------------------


@router.get(
    "/{template_id}/fields",
    response_model=TemplateFieldsResponse,
    summary="Return every field known to a template",
)
def get_template_fields(template_id: str) -> TemplateFieldsResponse:
    """
    Return the template's field universe in schema-declared order, i.e.
    the default layout before any customization.
    """
    entry = TEMPLATE_REGISTRY.get(template_id)
    if entry is None:
        raise HTTPException(
            status_code=404,
            detail=f"Template '{template_id}' not found.",
        )

    return TemplateFieldsResponse(
        id=entry.id,
        title=entry.title,
        steps=list(STEPS),
        fields=field_universe(template_id),
    )
