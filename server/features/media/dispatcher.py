from __future__ import annotations

from typing import Awaitable, Callable

import httpx

from server.core.config import Settings

from .document import DocumentTextExtractor
from .errors import MediaValidationError
from .transcriber import AudioTranscriber
from .types import MediaKind
from .vision import ImageTextExtractor, VisionClient

_Converter = Callable[[bytes, str, str], Awaitable[str]]


class ConversionDispatcher:
    def __init__(
        self,
        *,
        transcriber: AudioTranscriber,
        image_extractor: ImageTextExtractor,
        document_extractor: DocumentTextExtractor,
    ):
        self._converters: dict[MediaKind, _Converter] = {
            MediaKind.AUDIO: lambda data, file_name, _mime: transcriber.transcribe(data, file_name),
            MediaKind.IMAGE: lambda data, _name, mime_type: image_extractor.extract(data, mime_type),
            MediaKind.DOCUMENT: lambda data, _name, _mime: document_extractor.extract(data),
        }

    async def dispatch(
        self,
        kind: MediaKind | str,
        data: bytes,
        file_name: str,
        mime_type: str,
    ) -> str:
        try:
            converter = self._converters[MediaKind(kind)]
        except ValueError as exc:
            raise MediaValidationError(f"Unsupported file type: {kind}") from exc
        return await converter(data, file_name, mime_type)


def build_dispatcher(settings: Settings, http_client: httpx.AsyncClient) -> ConversionDispatcher:
    vision = VisionClient(
        http_client,
        api_key=settings.google_vision_api_key,
        base_url=settings.google_vision_base_url,
    )
    return ConversionDispatcher(
        transcriber=AudioTranscriber(
            http_client,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_transcription_model,
            language=settings.transcription_language,
        ),
        image_extractor=ImageTextExtractor(vision),
        document_extractor=DocumentTextExtractor(
            vision,
            language_hints=settings.document_language_hint_list,
        ),
    )
