from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types (Finite)
# ----------------------------------------------------------------------
class FormEventType(str, Enum):
    """
    User-visible notices emitted by a form session.

    NOTE:
    Events are presentation signals (toasts). They never drive state.
    """

    # ------------------------------------------------------------------
    # Form lifecycle
    # ------------------------------------------------------------------
    TEMPLATE_SELECTED = "template_selected"
    FORM_CLEARED = "form_cleared"
    STEP_BLOCKED = "step_blocked"
    LAYOUT_COMMITTED = "layout_committed"

    # ------------------------------------------------------------------
    # Gated actions
    # ------------------------------------------------------------------
    ACTION_BLOCKED = "action_blocked"

    # ------------------------------------------------------------------
    # Document Service round-trips
    # ------------------------------------------------------------------
    GENERATION_STARTED = "generation_started"
    GENERATION_COMPLETED = "generation_completed"
    GENERATION_FAILED = "generation_failed"
    GENERATION_DISCARDED = "generation_discarded"
    CACHE_HIT = "cache_hit"
    EMAIL_SENT = "email_sent"


class EventLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class FormEvent(BaseModel):
    """
    An immutable notice raised by a form session.

    Events are:
    - presentation only
    - transport-agnostic
    - never persisted
    """

    event_id: UUID = Field(default_factory=uuid4)
    session_id: str = Field(..., description="The owning form session")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: FormEventType
    level: EventLevel = EventLevel.INFO
    message: str = ""

    # Optional context (template_id, missing field ids, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
