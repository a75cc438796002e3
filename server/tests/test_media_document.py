from __future__ import annotations

import asyncio

import httpx
import pytest

from server.features.media import document as document_module
from server.features.media.document import (
    DOCUMENT_EXTRACTION_FAILED,
    UNSUPPORTED_FORMAT_HINT,
    DocumentTextExtractor,
)
from server.features.media.errors import (
    ExtractionError,
    RecognitionServiceError,
    ServiceUnavailableError,
    UnsupportedDocumentFormatError,
)
from server.features.media.vision import VisionAnnotation, VisionClient


class _FakeVision:
    def __init__(self, result):
        self.result = result
        self.calls: list[dict] = []

    async def annotate(self, data, *, features, language_hints=None):
        self.calls.append({"data": data, "features": features, "language_hints": language_hints})
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def _annotation(text: str) -> VisionAnnotation:
    return VisionAnnotation(general_text="", document_text=text)


def _local_text(monkeypatch, text: str) -> None:
    monkeypatch.setattr(document_module, "extract_text_heuristically", lambda _data: text)


def test_long_local_text_skips_vision(monkeypatch):
    local = "Invoice number 4711 issued to Example GmbH for consulting services."
    _local_text(monkeypatch, local)
    vision = _FakeVision(_annotation("should not be used"))

    text = asyncio.run(DocumentTextExtractor(vision).extract(b"%PDF-1.4"))

    assert text == local
    assert vision.calls == []


def test_short_local_text_falls_back_to_vision_once(monkeypatch):
    _local_text(monkeypatch, "tiny")
    ocr = "Scanned contract between two parties, signed on the first of March."
    vision = _FakeVision(_annotation(ocr))

    text = asyncio.run(DocumentTextExtractor(vision, language_hints=["de", "en"]).extract(b"%PDF-scan"))

    assert text == ocr
    assert len(vision.calls) == 1
    call = vision.calls[0]
    assert call["data"] == b"%PDF-scan"
    assert call["features"] == [{"type": "DOCUMENT_TEXT_DETECTION", "maxResults": 1}]
    assert call["language_hints"] == ["de", "en"]


def test_exactly_fifty_local_characters_is_not_enough(monkeypatch):
    _local_text(monkeypatch, "x" * 50)
    ocr = "y" * 51
    vision = _FakeVision(_annotation(ocr))

    text = asyncio.run(DocumentTextExtractor(vision).extract(b"%PDF"))

    assert text == ocr
    assert len(vision.calls) == 1


def test_both_stages_short_raise_terminal_diagnostic(monkeypatch):
    _local_text(monkeypatch, "")
    vision = _FakeVision(_annotation("z" * 50))

    with pytest.raises(ExtractionError) as exc_info:
        asyncio.run(DocumentTextExtractor(vision).extract(b"%PDF"))

    assert str(exc_info.value) == DOCUMENT_EXTRACTION_FAILED
    assert not isinstance(exc_info.value, UnsupportedDocumentFormatError)


def test_vision_error_ends_in_terminal_diagnostic(monkeypatch):
    _local_text(monkeypatch, "")
    vision = _FakeVision(RecognitionServiceError("API request failed with status 500: boom", status_code=500))

    with pytest.raises(ExtractionError) as exc_info:
        asyncio.run(DocumentTextExtractor(vision).extract(b"%PDF"))

    assert str(exc_info.value) == DOCUMENT_EXTRACTION_FAILED


def test_missing_vision_key_ends_in_terminal_diagnostic(monkeypatch):
    _local_text(monkeypatch, "")
    vision = _FakeVision(ServiceUnavailableError("Google Vision API key not configured"))

    with pytest.raises(ExtractionError) as exc_info:
        asyncio.run(DocumentTextExtractor(vision).extract(b"%PDF"))

    assert str(exc_info.value) == DOCUMENT_EXTRACTION_FAILED


def test_rejected_document_format_is_reported_with_hint(monkeypatch):
    _local_text(monkeypatch, "")
    vision = _FakeVision(
        RecognitionServiceError(
            "Google Vision API error: Bad image data. (status: INVALID_ARGUMENT)",
            status_code=400,
            api_message="Invalid image data: the file could not be decoded.",
        )
    )

    with pytest.raises(UnsupportedDocumentFormatError) as exc_info:
        asyncio.run(DocumentTextExtractor(vision).extract(b"%PDF"))

    message = str(exc_info.value)
    assert message.startswith(UNSUPPORTED_FORMAT_HINT)
    assert message.endswith(DOCUMENT_EXTRACTION_FAILED)
    assert len(vision.calls) == 1


def test_real_pdf_bytes_take_the_local_path():
    content = (
        b"BT\n/F1 12 Tf\n(Hello) Tj\n"
        b"(this page was written by a very small generator) Tj\nET"
    )
    data = b"%PDF-1.4\n4 0 obj << >>\nstream\n" + content + b"\nendstream\nendobj\n%%EOF\n"
    vision = _FakeVision(_annotation("unused"))

    text = asyncio.run(DocumentTextExtractor(vision).extract(data))

    assert "Hello" in text
    assert vision.calls == []


def test_undecodable_document_reported_inside_ok_response_gets_hint(monkeypatch):
    _local_text(monkeypatch, "")

    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"responses": [{"error": {"code": 3, "message": "Invalid image data: unsupported file type."}}]},
        )

    async def _scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            vision = VisionClient(client, api_key="vision-key", base_url="https://vision.test/v1")
            return await DocumentTextExtractor(vision).extract(b"%PDF")

    with pytest.raises(UnsupportedDocumentFormatError) as exc_info:
        asyncio.run(_scenario())

    assert str(exc_info.value).startswith(UNSUPPORTED_FORMAT_HINT)
