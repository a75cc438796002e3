from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .errors import ExtractionError, RecognitionServiceError, ServiceUnavailableError

logger = logging.getLogger(__name__)

TEXT_DETECTION = "TEXT_DETECTION"
DOCUMENT_TEXT_DETECTION = "DOCUMENT_TEXT_DETECTION"
_IMAGE_MAX_RESULTS = 10


@dataclass(frozen=True)
class VisionAnnotation:
    general_text: str
    document_text: str

    @property
    def preferred_text(self) -> str:
        # fullTextAnnotation keeps layout; textAnnotations[0] aggregates every detected token.
        if self.document_text:
            return self.document_text
        return self.general_text


def _error_from_response(response: httpx.Response) -> RecognitionServiceError:
    try:
        payload = response.json()
        error = payload["error"]
        message = str(error["message"])
        status = str(error.get("status", ""))
    except (ValueError, KeyError, TypeError):
        return RecognitionServiceError(
            f"API request failed with status {response.status_code}: {response.text}",
            status_code=response.status_code,
        )
    return RecognitionServiceError(
        f"Google Vision API error: {message} (status: {status})",
        status_code=response.status_code,
        api_message=message,
    )


def _parse_annotation(payload: Any) -> VisionAnnotation:
    responses = payload.get("responses") if isinstance(payload, dict) else None
    if not responses:
        raise ExtractionError("no response from Google Vision API")

    first = responses[0] or {}
    error = first.get("error")
    if isinstance(error, dict) and error.get("message"):
        # Per-image failures (e.g. undecodable data) arrive inside a 200 response.
        message = str(error["message"])
        code = error.get("code")
        raise RecognitionServiceError(
            f"Google Vision API error: {message} (code: {code})",
            api_message=message,
        )

    text_annotations = first.get("textAnnotations") or []
    general_text = ""
    if text_annotations:
        general_text = str(text_annotations[0].get("description") or "")
    document_text = str((first.get("fullTextAnnotation") or {}).get("text") or "")
    return VisionAnnotation(general_text=general_text, document_text=document_text)


class VisionClient:
    """Thin wrapper around the Google Cloud Vision ``images:annotate`` endpoint."""

    def __init__(self, http_client: httpx.AsyncClient, *, api_key: str, base_url: str):
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        if not api_key:
            logger.warning("GOOGLE_VISION_API_KEY is not set; image and document OCR are disabled.")

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    async def annotate(
        self,
        data: bytes,
        *,
        features: list[dict[str, Any]],
        language_hints: list[str] | None = None,
    ) -> VisionAnnotation:
        if not self.available:
            raise ServiceUnavailableError("Google Vision API key not configured")

        request: dict[str, Any] = {
            "image": {"content": base64.b64encode(data).decode("ascii")},
            "features": features,
        }
        if language_hints:
            request["imageContext"] = {"languageHints": language_hints}

        try:
            response = await self._http.post(
                f"{self._base_url}/images:annotate",
                params={"key": self._api_key},
                json={"requests": [request]},
            )
        except httpx.HTTPError as exc:
            raise RecognitionServiceError(f"Request to Google Vision API failed: {exc}") from exc

        if not response.is_success:
            raise _error_from_response(response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise RecognitionServiceError("Google Vision API returned an unreadable response.") from exc
        return _parse_annotation(payload)


class ImageTextExtractor:
    def __init__(self, vision: VisionClient):
        self._vision = vision

    async def extract(self, data: bytes, mime_type: str = "") -> str:
        annotation = await self._vision.annotate(
            data,
            features=[
                {"type": TEXT_DETECTION, "maxResults": _IMAGE_MAX_RESULTS},
                {"type": DOCUMENT_TEXT_DETECTION, "maxResults": _IMAGE_MAX_RESULTS},
            ],
        )
        text = annotation.preferred_text
        if not text:
            raise ExtractionError("no text detected in image")
        logger.debug("Vision API detected %d characters in %s image.", len(text), mime_type or "unknown")
        return text
