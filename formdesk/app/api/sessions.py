"""
Form session endpoints.

A thin HTTP adapter over FormSession. Every JSON response carries the
session state (form view, values, layout flag) and the notices raised
while handling the request. Binary downloads return the artifact bytes;
their notices are delivered with the next JSON response.

Error mapping:

    FormValidationError    -> 422  (required fields missing, bad recipients)
    ActionInProgressError  -> 409  (same action already in flight)
    stale result           -> 409  (values changed during generation)
    UnknownTemplateError   -> 404
    UnknownSessionError    -> 404
    DocumentServiceError   -> 502
"""

import base64
import logging
from contextlib import contextmanager
from datetime import date
from typing import Dict, Iterator, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, Response
from pydantic import BaseModel, Field

from formdesk.app.coordinator.form_session import (
    ActionInProgressError,
    FormSession,
    FormValidationError,
    UnknownTemplateError,
    recipients_from_text,
)
from formdesk.app.coordinator.sessions import SessionRegistry, UnknownSessionError
from formdesk.app.events import FormEvent
from formdesk.app.presentation.form_view import FormView
from formdesk.app.schemas.generation import EmailReceipt
from formdesk.app.services.document_service import DocumentServiceError
from formdesk.app.services.local_preview import PreviewRenderError
from formdesk.app.state.customization import CustomizationMode, MoveDirection

logger = logging.getLogger(__name__)

router = APIRouter()

WORD_MEDIA_TYPE = (
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
)
STALE_RESULT_DETAIL = "Les données ont changé pendant la génération, veuillez relancer"


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class CreateSessionRequest(BaseModel):
    template_id: Optional[str] = None
    # Stable id of the browser; sessions of one client share layouts and
    # autosaved values.
    client_id: Optional[str] = Field(
        default=None, min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_-]+$"
    )


class SelectTemplateRequest(BaseModel):
    template_id: str


class UpdateValuesRequest(BaseModel):
    values: Dict[str, Optional[str]]


class AddFieldRequest(BaseModel):
    field_id: str


class MoveFieldRequest(BaseModel):
    index: int
    direction: MoveDirection


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class SendRequest(BaseModel):
    recipients: Union[List[str], str]
    custom_message: Optional[str] = None


class SessionState(BaseModel):
    session_id: str
    template_id: Optional[str]
    values: Dict[str, str]
    view: Optional[FormView] = None
    has_custom_layout: bool = False
    notices: List[FormEvent] = Field(default_factory=list)


class PreviewResponse(BaseModel):
    data_hash: str
    pdf_base64: str
    state: SessionState


class SendResponse(BaseModel):
    receipt: EmailReceipt
    state: SessionState


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def _session(registry: SessionRegistry, session_id: str) -> FormSession:
    try:
        return registry.get(session_id)
    except UnknownSessionError:
        raise HTTPException(
            status_code=404,
            detail=f"Session '{session_id}' not found.",
        ) from None


def _state(registry: SessionRegistry, session: FormSession) -> SessionState:
    return SessionState(
        session_id=session.session_id,
        template_id=session.template_id,
        values=session.values(),
        view=session.view() if session.template_id is not None else None,
        has_custom_layout=session.customizer.has_custom_layout(),
        notices=registry.drain_notices(session.session_id),
    )


@contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except FormValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": str(exc), "missing_fields": exc.missing_fields},
        ) from exc
    except ActionInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except UnknownTemplateError as exc:
        raise HTTPException(
            status_code=404,
            detail=f"Template {exc.args[0]!r} not found.",
        ) from exc
    except DocumentServiceError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except PreviewRenderError as exc:
        logger.error("local preview failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _artifact_filename(template_id: str, extension: str) -> str:
    return f"{template_id}_{date.today().isoformat()}.{extension}"


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


@router.post("", response_model=SessionState, status_code=201, summary="Open a form session")
def create_session(
    request: Request,
    body: Optional[CreateSessionRequest] = None,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    template_id = (body.template_id if body else None) or request.app.state.settings.default_template
    session = registry.create(client_id=body.client_id if body else None)
    with _http_errors():
        try:
            session.select_template(template_id)
        except UnknownTemplateError:
            registry.remove(session.session_id)
            raise
    return _state(registry, session)


@router.get("/{session_id}", response_model=SessionState, summary="Current session state")
def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    return _state(registry, _session(registry, session_id))


@router.delete("/{session_id}", status_code=204, summary="Close a form session")
def close_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    _session(registry, session_id)
    registry.remove(session_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Template and values
# ---------------------------------------------------------------------------


@router.put("/{session_id}/template", response_model=SessionState)
def select_template(
    session_id: str,
    body: SelectTemplateRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    with _http_errors():
        session.select_template(body.template_id)
    return _state(registry, session)


@router.patch("/{session_id}/values", response_model=SessionState)
def update_values(
    session_id: str,
    body: UpdateValuesRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    with _http_errors():
        for field_id, value in body.values.items():
            session.set_value(field_id, value)
    return _state(registry, session)


@router.delete("/{session_id}/values", response_model=SessionState)
def clear_values(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    with _http_errors():
        session.clear()
    return _state(registry, session)


# ---------------------------------------------------------------------------
# Step navigation
# ---------------------------------------------------------------------------


@router.post("/{session_id}/steps/next", response_model=SessionState)
def next_step(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    with _http_errors():
        session.next_step()
    return _state(registry, session)


@router.post("/{session_id}/steps/previous", response_model=SessionState)
def previous_step(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    with _http_errors():
        session.previous_step()
    return _state(registry, session)


@router.put("/{session_id}/steps/{index}", response_model=SessionState)
def go_to_step(
    session_id: str,
    index: int,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    with _http_errors():
        session.go_to_step(index)
    return _state(registry, session)


# ---------------------------------------------------------------------------
# Customization
# ---------------------------------------------------------------------------


@router.post("/{session_id}/customization/toggle", response_model=SessionState)
def toggle_customization(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    with _http_errors():
        session.toggle_customization()
    return _state(registry, session)


@router.post("/{session_id}/customization/fields", response_model=SessionState)
def add_field(
    session_id: str,
    body: AddFieldRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    session.customizer.add_field(body.field_id)
    return _state(registry, session)


@router.delete("/{session_id}/customization/fields/{index}", response_model=SessionState)
def remove_field(
    session_id: str,
    index: int,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    session.customizer.remove_field(index)
    return _state(registry, session)


@router.post("/{session_id}/customization/restore/{field_id}", response_model=SessionState)
def restore_field(
    session_id: str,
    field_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    session.customizer.restore_field_by_id(field_id)
    return _state(registry, session)


@router.post("/{session_id}/customization/move", response_model=SessionState)
def move_field(
    session_id: str,
    body: MoveFieldRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    session.customizer.move_field(body.index, body.direction)
    return _state(registry, session)


@router.post("/{session_id}/customization/reorder", response_model=SessionState)
def reorder_fields(
    session_id: str,
    body: ReorderRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    session.customizer.reorder(body.from_index, body.to_index)
    return _state(registry, session)


@router.post("/{session_id}/customization/commit", response_model=SessionState)
def commit_layout(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    if session.customizer.mode == CustomizationMode.CUSTOMIZING:
        session.commit_layout()
    return _state(registry, session)


@router.delete("/{session_id}/customization", response_model=SessionState)
def reset_layout(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> SessionState:
    session = _session(registry, session_id)
    session.customizer.reset_layout()
    return _state(registry, session)


# ---------------------------------------------------------------------------
# Gated actions
# ---------------------------------------------------------------------------


@router.post("/{session_id}/preview", response_model=PreviewResponse)
async def preview(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> PreviewResponse:
    session = _session(registry, session_id)
    with _http_errors():
        entry = await session.preview()
    if entry is None:
        raise HTTPException(status_code=409, detail=STALE_RESULT_DETAIL)
    return PreviewResponse(
        data_hash=entry.data_hash,
        pdf_base64=base64.b64encode(entry.pdf_artifact).decode("ascii"),
        state=_state(registry, session),
    )


@router.get("/{session_id}/preview/local", response_class=HTMLResponse)
def local_preview(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> HTMLResponse:
    session = _session(registry, session_id)
    with _http_errors():
        html = session.local_preview_html()
    return HTMLResponse(content=html)


@router.get("/{session_id}/documents/word")
async def download_word(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    session = _session(registry, session_id)
    with _http_errors():
        word = await session.download_word()
    if word is None:
        raise HTTPException(status_code=409, detail=STALE_RESULT_DETAIL)
    filename = _artifact_filename(session.template_id, "docx")
    return Response(
        content=word,
        media_type=WORD_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{session_id}/documents/pdf")
async def download_pdf(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    session = _session(registry, session_id)
    with _http_errors():
        pdf = await session.download_pdf()
    if pdf is None:
        raise HTTPException(status_code=409, detail=STALE_RESULT_DETAIL)
    filename = _artifact_filename(session.template_id, "pdf")
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{session_id}/send", response_model=SendResponse)
async def send(
    session_id: str,
    body: SendRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> SendResponse:
    session = _session(registry, session_id)
    recipients = (
        recipients_from_text(body.recipients)
        if isinstance(body.recipients, str)
        else body.recipients
    )
    with _http_errors():
        receipt = await session.send(recipients, body.custom_message)
    if receipt is None:
        raise HTTPException(status_code=409, detail=STALE_RESULT_DETAIL)
    return SendResponse(receipt=receipt, state=_state(registry, session))
