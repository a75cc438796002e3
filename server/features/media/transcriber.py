from __future__ import annotations

import logging

import httpx

from .errors import RecognitionServiceError, ServiceUnavailableError

logger = logging.getLogger(__name__)


def _error_from_response(response: httpx.Response) -> RecognitionServiceError:
    try:
        error = response.json()["error"]
        message = str(error["message"])
        error_type = str(error.get("type", ""))
    except (ValueError, KeyError, TypeError):
        return RecognitionServiceError(
            f"API request failed with status {response.status_code}: {response.text}",
            status_code=response.status_code,
        )
    return RecognitionServiceError(
        f"OpenAI API error: {message} (type: {error_type})",
        status_code=response.status_code,
        api_message=message,
    )


class AudioTranscriber:
    """Speech-to-text through an OpenAI-compatible ``audio/transcriptions`` endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        api_key: str,
        base_url: str,
        model: str = "whisper-1",
        language: str = "de",
    ):
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._language = language
        if not api_key:
            logger.warning("OPENAI_API_KEY is not set; audio transcription is disabled.")

    @property
    def available(self) -> bool:
        return bool(self._api_key)

    async def transcribe(self, data: bytes, file_name: str) -> str:
        if not self.available:
            raise ServiceUnavailableError("OpenAI API key not configured")

        try:
            response = await self._http.post(
                f"{self._base_url}/audio/transcriptions",
                headers={"Authorization": f"Bearer {self._api_key}"},
                data={"model": self._model, "language": self._language},
                files={"file": (file_name or "audio", data)},
            )
        except httpx.HTTPError as exc:
            raise RecognitionServiceError(f"Request to transcription API failed: {exc}") from exc

        if not response.is_success:
            raise _error_from_response(response)

        try:
            payload = response.json()
            return str(payload["text"])
        except (ValueError, KeyError, TypeError) as exc:
            raise RecognitionServiceError("Transcription API returned an unreadable response.") from exc
