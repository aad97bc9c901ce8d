import base64
import json

import httpx
import pytest

from formdesk.app.config import Settings
from formdesk.app.services.document_service import (
    DocumentServiceError,
    HttpDocumentService,
    build_generation_payload,
    request_headers,
)

pytestmark = pytest.mark.anyio


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _service(handler, **settings):
    config = Settings(
        _env_file=None,
        document_service_url="http://docs.test/generate",
        pdf_convert_url="http://docs.test/convert",
        email_service_url="http://docs.test/send",
        **settings,
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpDocumentService(config, client=client)


# ------------------------------------------------------------------
# Payload helpers
# ------------------------------------------------------------------


def test_generation_payload_carries_template_and_values():
    payload = build_generation_payload("designation", {"entreprise": "ACME", "batiment": None})

    assert payload == {
        "templateType": "designation",
        "templateName": "Lettre de Désignation",
        "entreprise": "ACME",
        "batiment": "",
    }


def test_tunnel_header_only_for_tunnelled_urls():
    assert "ngrok-skip-browser-warning" in request_headers("https://abc.ngrok-free.app/x")
    assert "ngrok-skip-browser-warning" not in request_headers("http://docs.test/x")


# ------------------------------------------------------------------
# generate
# ------------------------------------------------------------------


async def test_generate_decodes_data_field():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": _b64(b"DOCX")})

    service = _service(handler)

    assert await service.generate("custom", {"objet": "A"}) == b"DOCX"
    assert seen["url"] == "http://docs.test/generate"
    assert seen["body"]["templateType"] == "custom"
    assert seen["body"]["objet"] == "A"


async def test_generate_accepts_word_base64_field():
    service = _service(lambda request: httpx.Response(200, json={"wordBase64": _b64(b"W")}))

    assert await service.generate("custom", {}) == b"W"


async def test_generate_http_error_is_reported_with_status():
    service = _service(lambda request: httpx.Response(500, text="template crashed"))

    with pytest.raises(DocumentServiceError) as exc_info:
        await service.generate("custom", {})

    assert exc_info.value.status_code == 500
    assert "500" in str(exc_info.value)
    assert "template crashed" in str(exc_info.value)


async def test_generate_non_json_response_is_rejected():
    service = _service(lambda request: httpx.Response(200, text=""))

    with pytest.raises(DocumentServiceError, match="non-JSON"):
        await service.generate("custom", {})


async def test_generate_missing_artifact_is_rejected():
    service = _service(lambda request: httpx.Response(200, json={"ok": True}))

    with pytest.raises(DocumentServiceError, match="no Word document"):
        await service.generate("custom", {})


async def test_generate_malformed_base64_is_rejected():
    service = _service(lambda request: httpx.Response(200, json={"data": "not base64!"}))

    with pytest.raises(DocumentServiceError, match="malformed"):
        await service.generate("custom", {})


async def test_transport_error_is_reported_as_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    service = _service(handler)

    with pytest.raises(DocumentServiceError, match="unreachable"):
        await service.generate("custom", {})


# ------------------------------------------------------------------
# convert / send
# ------------------------------------------------------------------


async def test_convert_sends_word_and_decodes_pdf():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"pdfBase64": _b64(b"%PDF-1.7")})

    service = _service(handler)

    assert await service.convert_to_pdf(b"DOCX", "document_custom") == b"%PDF-1.7"
    assert seen["body"] == {"wordBase64": _b64(b"DOCX"), "filename": "document_custom"}


async def test_send_email_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "sent"})

    service = _service(handler)

    receipt = await service.send_email(
        {"entreprise": "ACME"},
        b"%PDF",
        ["a@b.fr", "c@d.fr"],
        custom_message="Bonjour",
    )

    assert receipt.success is True
    assert receipt.recipients == ["a@b.fr", "c@d.fr"]
    assert seen["url"] == "http://docs.test/send"
    assert seen["body"] == {
        "entreprise": "ACME",
        "pdfFile": _b64(b"%PDF"),
        "emailEnvoi": "a@b.fr, c@d.fr",
        "customEmailMessage": "Bonjour",
    }


async def test_send_email_without_custom_message_omits_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(204)

    service = _service(handler)
    await service.send_email({}, b"%PDF", ["a@b.fr"])

    assert "customEmailMessage" not in seen["body"]


async def test_send_email_failure():
    service = _service(lambda request: httpx.Response(403, text="forbidden"))

    with pytest.raises(DocumentServiceError) as exc_info:
        await service.send_email({}, b"%PDF", ["a@b.fr"])

    assert exc_info.value.status_code == 403
