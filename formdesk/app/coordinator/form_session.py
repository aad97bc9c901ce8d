"""
Form session controller.

One FormSession owns the complete state of a user's form: the
per-template data store, the layout customizer, the generation cache and
the in-flight action registry. Renderer callbacks and HTTP handlers
receive the session by reference; nothing is held in module globals.

Control flow:
    select template -> data store loads/creates its values
                    -> customizer loads its layout
    edit values     -> cache invalidated, gate recomputed on next query
    gated action    -> gate check -> cache lookup -> Document Service
                    -> hash re-check -> cache put

The only suspend points are Document Service calls. While one is in
flight for a template, the same action cannot be re-triggered for that
template, and no other action may start a second generation of it.
Editing stays allowed: a result whose input hash no longer
matches the template's values on completion is discarded, never cached.
"""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from formdesk.app.events import (
    EventLevel,
    FormEvent,
    FormEventEmitter,
    FormEventType,
    NullEventEmitter,
)
from formdesk.app.presentation.form_view import FormView, build_form_view
from formdesk.app.registry.registry import STEPS, get_template
from formdesk.app.schemas.generation import EmailReceipt, GenerationCacheEntry
from formdesk.app.schemas.layout import FieldLayoutConfig
from formdesk.app.services.document_service import DocumentService, DocumentServiceError
from formdesk.app.services.local_preview import render_local_preview
from formdesk.app.state.customization import CustomizationMode, FieldCustomizer
from formdesk.app.state.data_store import FormValues, TemplateDataStore
from formdesk.app.state.generation_cache import GenerationCache
from formdesk.app.state.validation import (
    ValidationGate,
    is_valid_email,
    normalize_recipients,
)
from formdesk.app.storage.debounce import DebouncedWriter
from formdesk.app.utils.hashing import compute_values_hash

logger = logging.getLogger(__name__)

SIGNATORY_FIELD = "signatureExp"

# Shared by every action that calls the Document Service for a template.
GENERATE = "generate"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class UnknownTemplateError(KeyError):
    """Raised when selecting a template that is not registered."""


class FormValidationError(ValueError):
    """Raised when a gated action is attempted on an incomplete form."""

    def __init__(self, message: str, missing_fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.missing_fields = list(missing_fields)


class ActionInProgressError(RuntimeError):
    """Raised when an action is re-triggered while already in flight."""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def signatory_initials(full_name: str) -> str:
    """Initials of a name; hyphens separate words (Jean-Yves -> JY)."""
    words = full_name.replace("-", " ").split()
    return "".join(word[0].upper() for word in words)


class FormSession:
    """
    Controller for a single user's form.

    Construct with an injected Document Service and debounced writer;
    tests build as many independent sessions as they need. Sessions that
    share a writer keep their durable state apart through
    ``storage_namespace``.
    """

    def __init__(
        self,
        *,
        session_id: str,
        document_service: DocumentService,
        writer: DebouncedWriter,
        emitter: Optional[FormEventEmitter] = None,
        autosave: bool = False,
        storage_namespace: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session_id = session_id
        self._service = document_service
        self._writer = writer
        self._emitter = emitter if emitter is not None else NullEventEmitter()
        self._rng = rng if rng is not None else random.Random()

        self._cache = GenerationCache()
        self._store = TemplateDataStore(
            self._cache, writer=writer, autosave=autosave, namespace=storage_namespace
        )
        self._customizer = FieldCustomizer(writer, namespace=storage_namespace)

        self._current_step = 0
        self._in_flight: Set[Tuple[str, str]] = set()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def template_id(self) -> Optional[str]:
        return self._store.active_template_id

    @property
    def cache(self) -> GenerationCache:
        return self._cache

    @property
    def store(self) -> TemplateDataStore:
        return self._store

    @property
    def customizer(self) -> FieldCustomizer:
        return self._customizer

    @property
    def current_step(self) -> int:
        return self._current_step

    def values(self) -> FormValues:
        if self.template_id is None:
            return {}
        return self._store.get_values(self.template_id)

    def gate(self) -> ValidationGate:
        return ValidationGate(self._customizer.selected_definitions(), self.values())

    def view(self) -> FormView:
        template_id = self._require_template()
        return build_form_view(
            template_id=template_id,
            fields=self._customizer.selected_definitions(),
            values=self.values(),
            current_step=self._current_step,
            customizing=self._customizer.is_customizing,
            available=self._customizer.available_fields(),
            removed=[r.field.id for r in self._customizer.removed_fields],
        )

    # ------------------------------------------------------------------
    # Template selection and editing
    # ------------------------------------------------------------------

    def select_template(self, template_id: str) -> FormValues:
        if get_template(template_id) is None:
            raise UnknownTemplateError(template_id)

        if self._customizer.is_customizing:
            self.commit_layout()

        values = self._store.switch_to(template_id)
        self._customizer.load(template_id)
        self._current_step = 0

        self._notify(
            FormEventType.TEMPLATE_SELECTED,
            EventLevel.INFO,
            get_template(template_id).title,
            template_id=template_id,
        )
        return values

    def set_value(self, field_id: str, value: Optional[str]) -> None:
        template_id = self._require_template()
        self._store.set_value(template_id, field_id, value)

        if field_id == SIGNATORY_FIELD and value:
            self._apply_reference_codes(template_id, value)

    def clear(self) -> None:
        template_id = self._require_template()
        self._store.clear(template_id)
        self._notify(
            FormEventType.FORM_CLEARED,
            EventLevel.INFO,
            "Données effacées",
            template_id=template_id,
        )

    def _apply_reference_codes(self, template_id: str, signatory: str) -> None:
        initials = signatory_initials(signatory)
        if not initials:
            return
        code = f"{initials}-{date.today().year}-{self._rng.randrange(1000):03d}"
        self._store.set_value(template_id, "codeDocument", code)
        if template_id == "designation":
            self._store.set_value(template_id, "numeroCourrier", code)

    # ------------------------------------------------------------------
    # Step navigation
    # ------------------------------------------------------------------

    def go_to_step(self, index: int) -> bool:
        """
        Move to step ``index``.

        Advancing requires the current step to be valid, except while
        customizing. Going back is always allowed.
        """
        index = max(0, min(index, len(STEPS) - 1))

        if index > self._current_step and not self._customizer.is_customizing:
            step = STEPS[self._current_step].id
            gate = self.gate()
            if not gate.is_step_valid(step):
                self._notify(
                    FormEventType.STEP_BLOCKED,
                    EventLevel.WARNING,
                    "Veuillez remplir tous les champs obligatoires avant de continuer",
                    step=step.value,
                    missing_fields=gate.missing_required(step),
                )
                return False

        self._current_step = index
        return True

    def next_step(self) -> bool:
        return self.go_to_step(self._current_step + 1)

    def previous_step(self) -> bool:
        return self.go_to_step(self._current_step - 1)

    # ------------------------------------------------------------------
    # Customization
    # ------------------------------------------------------------------

    def toggle_customization(self) -> CustomizationMode:
        self._require_template()
        if self._customizer.is_customizing:
            self.commit_layout()
        else:
            self._customizer.enter()
        return self._customizer.mode

    def commit_layout(self) -> FieldLayoutConfig:
        layout = self._customizer.commit()

        if self._current_step > 0 and not self.gate().is_step_valid(
            STEPS[self._current_step].id
        ):
            self._current_step = 0

        self._notify(
            FormEventType.LAYOUT_COMMITTED,
            EventLevel.SUCCESS,
            "Configuration des champs enregistrée",
            template_id=layout.template_id,
            selected_fields=list(layout.selected_fields),
        )
        return layout

    # ------------------------------------------------------------------
    # Gated actions
    # ------------------------------------------------------------------

    async def preview(self) -> Optional[GenerationCacheEntry]:
        """Generate (or reuse) the Word and PDF artifacts for display."""
        template_id = self._require_template()
        self._require_valid_form("prévisualiser")
        with self._action("preview", template_id):
            return await self._obtain_document(template_id)

    async def download_pdf(self) -> Optional[bytes]:
        template_id = self._require_template()
        self._require_valid_form("télécharger le PDF")
        with self._action("download_pdf", template_id):
            entry = await self._obtain_document(template_id)
        return entry.pdf_artifact if entry is not None else None

    async def download_word(self) -> Optional[bytes]:
        """
        Word artifact of the current values.

        A valid cache entry is reused; otherwise only the Word document is
        generated. A Word-only result is not cached (an entry needs both
        artifacts).
        """
        template_id = self._require_template()
        self._require_valid_form("télécharger")
        with self._action("download_word", template_id):
            values = self._store.get_values(template_id)
            cached = self._cache.get(template_id, values)
            if cached is not None:
                self._notify_cache_hit(template_id)
                return cached.word_artifact

            with self._action(GENERATE, template_id):
                word = await self._call_service(
                    template_id, self._service.generate(template_id, values)
                )
            if not self._still_current(template_id, values):
                return None
            return word

    async def send(
        self,
        recipients: Sequence[str],
        custom_message: Optional[str] = None,
    ) -> Optional[EmailReceipt]:
        template_id = self._require_template()
        self._require_valid_form("partager")

        addresses = normalize_recipients(recipients)
        invalid = [a for a in addresses if not is_valid_email(a)]
        if not addresses or invalid:
            message = (
                f"Adresse(s) email invalide(s) : {', '.join(invalid)}"
                if invalid
                else "Veuillez saisir au moins une adresse email"
            )
            self._notify(
                FormEventType.ACTION_BLOCKED,
                EventLevel.WARNING,
                message,
                action="send",
                invalid_recipients=invalid,
            )
            raise FormValidationError(message)

        with self._action("send", template_id):
            values = self._store.get_values(template_id)
            entry = await self._obtain_document(template_id)
            if entry is None:
                return None

            receipt = await self._call_service(
                template_id,
                self._service.send_email(values, entry.pdf_artifact, addresses, custom_message),
                failure="Erreur lors de l'envoi de l'email",
            )

        logger.info(
            "session=%s sent template=%s to %d recipient(s)",
            self.session_id,
            template_id,
            len(addresses),
        )
        self._notify(
            FormEventType.EMAIL_SENT,
            EventLevel.SUCCESS,
            "Email envoyé avec succès !",
            template_id=template_id,
            recipients=addresses,
        )
        return receipt

    def local_preview_html(self, today: Optional[date] = None) -> str:
        """Approximate HTML rendition, without a Document Service call."""
        template_id = self._require_template()
        self._require_valid_form("prévisualiser")
        return render_local_preview(template_id, self.values(), today=today)

    def is_in_flight(self, action: str, template_id: Optional[str] = None) -> bool:
        return (template_id or self.template_id, action) in self._in_flight

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def flush(self) -> int:
        return self._writer.flush()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _obtain_document(self, template_id: str) -> Optional[GenerationCacheEntry]:
        values = self._store.get_values(template_id)
        cached = self._cache.get(template_id, values)
        if cached is not None:
            self._notify_cache_hit(template_id)
            return cached

        with self._action(GENERATE, template_id):
            self._notify(
                FormEventType.GENERATION_STARTED,
                EventLevel.INFO,
                "Génération en cours...",
                template_id=template_id,
            )
            word = await self._call_service(
                template_id, self._service.generate(template_id, values)
            )
            pdf = await self._call_service(
                template_id,
                self._service.convert_to_pdf(word, f"document_{template_id}"),
            )

        if not self._still_current(template_id, values):
            return None

        entry = self._cache.put(template_id, values, word, pdf)
        logger.info(
            "session=%s generated template=%s hash=%s",
            self.session_id,
            template_id,
            entry.data_hash[:19],
        )
        self._notify(
            FormEventType.GENERATION_COMPLETED,
            EventLevel.SUCCESS,
            "Document généré avec succès !",
            template_id=template_id,
        )
        return entry

    async def _call_service(
        self,
        template_id: str,
        call,
        failure: str = "Erreur lors de la génération du document",
    ):
        try:
            return await call
        except DocumentServiceError as exc:
            logger.exception(
                "session=%s Document Service call failed for template=%s",
                self.session_id,
                template_id,
            )
            self._notify(
                FormEventType.GENERATION_FAILED,
                EventLevel.ERROR,
                f"{failure} : {exc}",
                template_id=template_id,
            )
            raise

    def _still_current(self, template_id: str, values: FormValues) -> bool:
        """True when the template's values still hash like ``values``."""
        current = self._store.get_values(template_id)
        if compute_values_hash(current) == compute_values_hash(values):
            return True
        logger.warning(
            "session=%s discarded stale result for template=%s",
            self.session_id,
            template_id,
        )
        self._notify(
            FormEventType.GENERATION_DISCARDED,
            EventLevel.WARNING,
            "Les données ont changé pendant la génération, veuillez relancer",
            template_id=template_id,
        )
        return False

    def _require_template(self) -> str:
        template_id = self.template_id
        if template_id is None:
            raise UnknownTemplateError("no template selected")
        return template_id

    def _require_valid_form(self, action: str) -> None:
        gate = self.gate()
        if gate.is_form_valid():
            return
        missing = gate.missing_required()
        message = f"Veuillez remplir tous les champs obligatoires avant de {action}"
        self._notify(
            FormEventType.ACTION_BLOCKED,
            EventLevel.WARNING,
            message,
            missing_fields=missing,
        )
        raise FormValidationError(message, missing_fields=missing)

    @contextmanager
    def _action(self, action: str, template_id: str) -> Iterator[None]:
        key = (template_id, action)
        if key in self._in_flight:
            self._notify(
                FormEventType.ACTION_BLOCKED,
                EventLevel.WARNING,
                "Une opération est déjà en cours",
                action=action,
                template_id=template_id,
            )
            raise ActionInProgressError(f"{action} already in progress for {template_id}")
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)

    def _notify_cache_hit(self, template_id: str) -> None:
        logger.info("session=%s cache hit for template=%s", self.session_id, template_id)
        self._notify(
            FormEventType.CACHE_HIT,
            EventLevel.SUCCESS,
            "Document chargé depuis le cache !",
            template_id=template_id,
        )

    def _notify(
        self,
        event_type: FormEventType,
        level: EventLevel,
        message: str,
        **details: object,
    ) -> None:
        try:
            self._emitter.emit(
                FormEvent(
                    session_id=self.session_id,
                    event_type=event_type,
                    level=level,
                    message=message,
                    details=details or None,
                )
            )
        except Exception:
            # Notices must never break a form operation.
            logger.exception("session=%s failed to emit %s", self.session_id, event_type.value)


def recipients_from_text(raw: str) -> List[str]:
    """Split a comma/semicolon/whitespace separated recipient string."""
    return normalize_recipients(
        part for chunk in raw.replace(";", ",").split(",") for part in chunk.split()
    )
