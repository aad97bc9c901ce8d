"""
FastAPI entrypoint for the formdesk service.

Wires the process-wide collaborators once at startup:

- settings (environment, validated)
- durable key-value storage behind a debounced writer
- the Document Service client
- the in-process session registry

A background ticker drives the debounced writer; pending writes are
flushed on shutdown.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from formdesk.app.api.sessions import router as sessions_router
from formdesk.app.api.templates import router as templates_router
from formdesk.app.config import Settings, get_settings
from formdesk.app.coordinator.form_session import FormSession
from formdesk.app.coordinator.sessions import SessionRegistry
from formdesk.app.events import MemoryEventEmitter
from formdesk.app.services.document_service import DocumentService, HttpDocumentService
from formdesk.app.storage.debounce import DebouncedWriter
from formdesk.app.storage.kv import JsonFileKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

PERSISTENCE_TICK_SECONDS = 0.1


async def _persistence_ticker(writer: DebouncedWriter) -> None:
    while True:
        await asyncio.sleep(PERSISTENCE_TICK_SECONDS)
        try:
            writer.poll()
        except OSError:
            logger.exception("persistence: debounced write failed")


def create_app(
    settings: Optional[Settings] = None,
    document_service: Optional[DocumentService] = None,
    store: Optional[KeyValueStore] = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators left as None are built from the settings at startup.
    """
    app = FastAPI(
        title="formdesk",
        description="Guided form filling for templated correspondence",
        version="0.1.0",
    )

    app.include_router(templates_router, prefix="/templates")
    app.include_router(sessions_router, prefix="/sessions")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -----------------------------------------------------------------------
    # Startup / Shutdown
    # -----------------------------------------------------------------------

    @app.on_event("startup")
    async def startup_event() -> None:
        resolved = settings if settings is not None else get_settings()

        logging.basicConfig(
            level=resolved.log_level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )

        kv = store if store is not None else JsonFileKeyValueStore(resolved.storage_path)
        writer = DebouncedWriter(kv, window_seconds=resolved.persistence_debounce_seconds)

        owns_service = document_service is None
        service = document_service if document_service is not None else HttpDocumentService(resolved)

        def session_factory(
            session_id: str, notices: MemoryEventEmitter, namespace: str
        ) -> FormSession:
            return FormSession(
                session_id=session_id,
                document_service=service,
                writer=writer,
                emitter=notices,
                autosave=resolved.autosave_values,
                storage_namespace=namespace,
            )

        app.state.settings = resolved
        app.state.writer = writer
        app.state.document_service = service
        app.state.owns_document_service = owns_service
        app.state.sessions = SessionRegistry(session_factory)
        app.state.persistence_task = asyncio.create_task(_persistence_ticker(writer))

        logger.info(
            "formdesk started (document_service=%s, storage=%s, autosave=%s)",
            resolved.document_service_url,
            resolved.storage_path if store is None else type(kv).__name__,
            resolved.autosave_values,
        )

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        task = app.state.persistence_task
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

        written = app.state.writer.flush()
        logger.info("formdesk stopping, flushed %d pending write(s)", written)

        if app.state.owns_document_service:
            await app.state.document_service.aclose()

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------

    @app.get("/health", summary="Liveness probe")
    def health() -> dict:
        return {
            "status": "ok",
            "sessions": len(app.state.sessions),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("formdesk.app.main:app", host="127.0.0.1", port=8000)
