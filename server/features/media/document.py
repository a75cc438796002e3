from __future__ import annotations

import asyncio
import logging

from .errors import (
    ExtractionError,
    MediaDomainError,
    RecognitionServiceError,
    UnsupportedDocumentFormatError,
)
from .pdf_text import extract_text_heuristically
from .vision import DOCUMENT_TEXT_DETECTION, VisionClient

logger = logging.getLogger(__name__)

MIN_DOCUMENT_TEXT_LENGTH = 50
DOCUMENT_EXTRACTION_FAILED = (
    "Document text extraction failed. Convert the pages to images (PNG/JPG) and upload "
    "those instead, or copy the text into the note manually."
)
UNSUPPORTED_FORMAT_HINT = "The recognition service does not accept this document format directly."
_UNSUPPORTED_FORMAT_MARKERS = ("Invalid image data", "Invalid image format")


class DocumentTextExtractor:
    """Local structural scan first, Vision OCR of the whole document second."""

    def __init__(
        self,
        vision: VisionClient,
        *,
        language_hints: list[str] | None = None,
        min_text_length: int = MIN_DOCUMENT_TEXT_LENGTH,
    ):
        self._vision = vision
        self._language_hints = list(language_hints) if language_hints is not None else ["de", "en"]
        self._min_text_length = min_text_length

    async def extract(self, data: bytes) -> str:
        local_text = await asyncio.to_thread(extract_text_heuristically, data)
        if len(local_text) > self._min_text_length:
            logger.info("Document text extracted locally, length: %d.", len(local_text))
            return local_text
        logger.info("Local document extraction returned too little text: %d characters.", len(local_text))

        unsupported_format = False
        try:
            ocr_text = await self._extract_with_vision(data)
        except UnsupportedDocumentFormatError as exc:
            unsupported_format = True
            logger.warning("Vision API rejected document format: %s", exc)
        except MediaDomainError as exc:
            logger.warning("Vision API document extraction failed: %s", exc)
        else:
            if len(ocr_text) > self._min_text_length:
                logger.info("Document text extracted with Vision API, length: %d.", len(ocr_text))
                return ocr_text
            logger.info("Vision API returned too little document text: %d characters.", len(ocr_text))

        if unsupported_format:
            raise UnsupportedDocumentFormatError(f"{UNSUPPORTED_FORMAT_HINT} {DOCUMENT_EXTRACTION_FAILED}")
        raise ExtractionError(DOCUMENT_EXTRACTION_FAILED)

    async def _extract_with_vision(self, data: bytes) -> str:
        try:
            annotation = await self._vision.annotate(
                data,
                features=[{"type": DOCUMENT_TEXT_DETECTION, "maxResults": 1}],
                language_hints=self._language_hints,
            )
        except RecognitionServiceError as exc:
            api_message = exc.api_message or ""
            if any(marker in api_message for marker in _UNSUPPORTED_FORMAT_MARKERS):
                raise UnsupportedDocumentFormatError(
                    str(exc),
                    status_code=exc.status_code,
                    api_message=api_message,
                ) from exc
            raise

        text = annotation.preferred_text
        if not text:
            raise ExtractionError("no text detected in document")
        return text
