"""
Field schema.

Defines the static metadata describing every input a user can fill.
Field definitions are loaded once from the template registry and are
immutable for the lifetime of the process.
"""

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class FieldKind(str, Enum):
    """
    Input kind of a field.

    READONLY_AUTO fields are derived by the engine (e.g. reference codes)
    and are not typed by the user.
    """

    TEXT = "text"
    EMAIL = "email"
    SELECT = "select"
    TEXTAREA = "textarea"
    READONLY_AUTO = "readonly-auto"


class FieldCategory(str, Enum):
    """
    Section a field belongs to.

    Each category is rendered as one navigable step. Ordering is the
    step order and MUST remain stable.
    """

    RECIPIENT = "recipient"
    CONTENT = "content"
    SENDER = "sender"


# ---------------------------------------------------------------------------
# Field definition
# ---------------------------------------------------------------------------


class FieldDefinition(BaseModel):
    """
    Immutable description of a single form field.

    ``id`` is unique within a template's field universe.
    """

    id: str = Field(..., min_length=1)
    label: str
    kind: FieldKind = FieldKind.TEXT
    required: bool = False
    category: FieldCategory
    options: Optional[Tuple[str, ...]] = None
    default_value: Optional[str] = None
    placeholder: Optional[str] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="after")
    def select_requires_options(self) -> "FieldDefinition":
        if self.kind == FieldKind.SELECT and not self.options:
            raise ValueError(
                f"Field '{self.id}' is a select but declares no options."
            )
        if self.kind != FieldKind.SELECT and self.options:
            raise ValueError(
                f"Field '{self.id}' declares options but is not a select."
            )
        return self
