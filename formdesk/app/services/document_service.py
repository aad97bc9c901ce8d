"""
Document Service client.

The Document Service renders the Word document, converts it to PDF and
sends it by e-mail. It is an external HTTP dependency reached through
three JSON endpoints:

    generate       POST {templateType, templateName, ...values}
                   -> {data | wordBase64}
    convert        POST {wordBase64, filename}
                   -> {pdfBase64}
    send e-mail    POST {...values, pdfFile, emailEnvoi, customEmailMessage?}
                   -> any 2xx

Binary artifacts travel base64-encoded. Every failure (transport error,
non-success status, malformed body) is raised as DocumentServiceError
with a message suitable for the user; nothing is retried here.

A single httpx.AsyncClient may be shared across calls for connection
pooling; timeouts are set per request.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

import httpx

from formdesk.app.config import Settings
from formdesk.app.registry.registry import get_template
from formdesk.app.schemas.generation import EmailReceipt

logger = logging.getLogger(__name__)


class DocumentServiceError(RuntimeError):
    """Raised when a Document Service call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DocumentService(Protocol):
    async def generate(self, template_id: str, values: Mapping[str, str]) -> bytes:
        ...

    async def convert_to_pdf(self, word_artifact: bytes, filename: str) -> bytes:
        ...

    async def send_email(
        self,
        values: Mapping[str, str],
        pdf_artifact: bytes,
        recipients: Sequence[str],
        custom_message: Optional[str] = None,
    ) -> EmailReceipt:
        ...


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def clean_values(values: Mapping[str, Any]) -> Dict[str, str]:
    """Replace absent values with empty strings and stringify the rest."""
    return {
        key: "" if value is None or value == "" else str(value)
        for key, value in values.items()
    }


def build_generation_payload(template_id: str, values: Mapping[str, Any]) -> Dict[str, str]:
    template = get_template(template_id)
    payload = {
        "templateType": template_id,
        "templateName": template.title if template is not None else template_id,
    }
    payload.update(clean_values(values))
    return payload


def request_headers(url: str) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    # Tunnelled endpoints serve an HTML interstitial unless told otherwise.
    if "ngrok" in url:
        headers["ngrok-skip-browser-warning"] = "true"
    return headers


def _decode_artifact(encoded: Optional[str], what: str) -> bytes:
    if not encoded:
        raise DocumentServiceError(f"Document Service returned no {what}")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DocumentServiceError(
            f"Document Service returned a malformed {what}: {exc}"
        ) from exc


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class HttpDocumentService:
    """
    httpx implementation of the Document Service contract.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._settings = settings
        self._client = client if client is not None else httpx.AsyncClient()
        self._owns_client = client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post_json(self, operation: str, url: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self._client.post(
                url,
                json=payload,
                headers=request_headers(url),
                timeout=self._settings.request_timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "%s: HTTP %s body=%s",
                operation,
                exc.response.status_code,
                exc.response.text[:200],
            )
            detail = exc.response.text[:200].strip()
            message = f"Document Service returned {exc.response.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise DocumentServiceError(
                message, status_code=exc.response.status_code
            ) from exc
        except httpx.RequestError as exc:
            logger.error("%s: connection error: %s", operation, exc)
            raise DocumentServiceError(
                f"Document Service unreachable: {exc}"
            ) from exc
        return response

    @staticmethod
    def _json_body(operation: str, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            logger.error("%s: response is not JSON", operation)
            raise DocumentServiceError(
                "Document Service returned an empty or non-JSON response"
            ) from exc
        if not isinstance(body, dict):
            raise DocumentServiceError(
                "Document Service returned an unexpected response shape"
            )
        return body

    async def generate(self, template_id: str, values: Mapping[str, str]) -> bytes:
        logger.info("generate: template=%s", template_id)
        response = await self._post_json(
            "generate",
            self._settings.document_service_url,
            build_generation_payload(template_id, values),
        )
        body = self._json_body("generate", response)
        word = _decode_artifact(body.get("data") or body.get("wordBase64"), "Word document")
        logger.info("generate: template=%s received %d bytes", template_id, len(word))
        return word

    async def convert_to_pdf(self, word_artifact: bytes, filename: str) -> bytes:
        logger.info("convert_to_pdf: filename=%s", filename)
        response = await self._post_json(
            "convert_to_pdf",
            self._settings.pdf_convert_url,
            {
                "wordBase64": base64.b64encode(word_artifact).decode("ascii"),
                "filename": filename,
            },
        )
        body = self._json_body("convert_to_pdf", response)
        return _decode_artifact(body.get("pdfBase64"), "PDF")

    async def send_email(
        self,
        values: Mapping[str, str],
        pdf_artifact: bytes,
        recipients: Sequence[str],
        custom_message: Optional[str] = None,
    ) -> EmailReceipt:
        logger.info("send_email: %d recipient(s)", len(recipients))
        payload: Dict[str, Any] = clean_values(values)
        payload["pdfFile"] = base64.b64encode(pdf_artifact).decode("ascii")
        payload["emailEnvoi"] = ", ".join(recipients)
        if custom_message:
            payload["customEmailMessage"] = custom_message

        await self._post_json("send_email", self._settings.email_service_url, payload)
        return EmailReceipt(
            success=True,
            recipients=list(recipients),
            message="Email envoyé avec succès",
        )
