"""
Centralized configuration management for the formdesk service.

Pydantic v2 settings management. Values are parsed from the environment
(prefix ``FORMDESK_``) once at startup, validated, and treated as
immutable for the lifetime of the process.

Environment variables (all optional with defaults):
    FORMDESK_DOCUMENT_SERVICE_URL     Document generation endpoint.
    FORMDESK_EMAIL_SERVICE_URL        E-mail sending endpoint.
    FORMDESK_PDF_CONVERT_URL          Word to PDF conversion endpoint.
    FORMDESK_REQUEST_TIMEOUT_SECONDS  Per-call Document Service timeout.
    FORMDESK_STORAGE_PATH             JSON file backing durable storage.
    FORMDESK_PERSISTENCE_DEBOUNCE_MS  Debounce window for durable writes.
    FORMDESK_AUTOSAVE_VALUES          Persist field values per template.
    FORMDESK_DEFAULT_TEMPLATE         Template selected on session start.
    FORMDESK_LOG_LEVEL                Root logging level.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from formdesk.app.registry.registry import TEMPLATE_REGISTRY


# -------------------------------------------------------------------------
# Reusable Type Aliases
# -------------------------------------------------------------------------

ServiceURL = Annotated[
    str,
    Field(min_length=1, description="HTTP(S) endpoint of the Document Service"),
]


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Application settings parsed from the environment.

    Fails fast at startup if a value is malformed.
    """

    # ---------------------------------------------------------------------
    # Document Service endpoints
    # ---------------------------------------------------------------------

    document_service_url: ServiceURL = "http://localhost:5678/webhook/generate"
    email_service_url: ServiceURL = "http://localhost:5678/webhook/send-email"
    pdf_convert_url: ServiceURL = "http://localhost:5678/api/convert-pdf"

    request_timeout_seconds: Annotated[
        float,
        Field(
            default=120.0,
            gt=0,
            description="Timeout applied to every Document Service call",
        ),
    ]

    # ---------------------------------------------------------------------
    # Durable storage
    # ---------------------------------------------------------------------

    storage_path: Annotated[
        Path,
        Field(
            default=Path("~/.formdesk/storage.json"),
            description="JSON file holding layouts and autosaved values",
        ),
    ]

    persistence_debounce_ms: Annotated[
        int,
        Field(
            default=500,
            ge=0,
            le=60_000,
            description="Bursts of writes inside this window collapse to one",
        ),
    ]

    autosave_values: Annotated[
        bool,
        Field(
            default=False,
            description="Persist field values under values:<templateId>",
        ),
    ]

    # ---------------------------------------------------------------------
    # Session defaults
    # ---------------------------------------------------------------------

    default_template: str = "designation"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="FORMDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # ---------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ---------------------------------------------------------------------

    @field_validator(
        "document_service_url",
        "email_service_url",
        "pdf_convert_url",
    )
    @classmethod
    def normalize_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Expected an http(s) URL, got '{v}'")
        return v

    @field_validator("storage_path")
    @classmethod
    def expand_storage_path(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("default_template")
    @classmethod
    def default_template_must_be_registered(cls, v: str) -> str:
        if v not in TEMPLATE_REGISTRY:
            raise ValueError(
                f"Unknown default_template '{v}'. "
                f"Registered templates: {sorted(TEMPLATE_REGISTRY)}"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(
                f"Unsupported log_level '{v}'. Allowed values: {sorted(allowed)}"
            )
        return v

    @property
    def persistence_debounce_seconds(self) -> float:
        return self.persistence_debounce_ms / 1000.0


# -------------------------------------------------------------------------
# Settings Dependency Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Dependency injection provider for application settings.

    Uses an explicit singleton pattern within the FastAPI lifecycle.
    """
    return Settings()
