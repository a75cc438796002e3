from __future__ import annotations

from .dispatcher import ConversionDispatcher, build_dispatcher
from .document import DocumentTextExtractor
from .errors import (
    ExtractionError,
    MediaDomainError,
    MediaNotFoundError,
    MediaStorageError,
    MediaValidationError,
    RecognitionServiceError,
    ServiceUnavailableError,
    UnsupportedDocumentFormatError,
)
from .pdf_text import extract_text_heuristically
from .recorder import StatusRecorder
from .service import (
    build_media_context,
    delete_media,
    delete_media_for_parent,
    fail_stale_attachments,
    get_media,
    ingest_media,
    list_media_for_parent,
    resolve_media_kind,
)
from .transcriber import AudioTranscriber
from .types import (
    AttachmentDescriptor,
    ConversionStatus,
    ExtractionJob,
    MediaAttachmentDetail,
    MediaContext,
    MediaKind,
)
from .vision import ImageTextExtractor, VisionClient
from .worker import ExtractionWorkerPool, get_extraction_pool, set_extraction_pool

__all__ = [
    "AttachmentDescriptor",
    "AudioTranscriber",
    "ConversionDispatcher",
    "ConversionStatus",
    "DocumentTextExtractor",
    "ExtractionError",
    "ExtractionJob",
    "ExtractionWorkerPool",
    "ImageTextExtractor",
    "MediaAttachmentDetail",
    "MediaContext",
    "MediaDomainError",
    "MediaKind",
    "MediaNotFoundError",
    "MediaStorageError",
    "MediaValidationError",
    "RecognitionServiceError",
    "ServiceUnavailableError",
    "StatusRecorder",
    "UnsupportedDocumentFormatError",
    "VisionClient",
    "build_dispatcher",
    "build_media_context",
    "delete_media",
    "delete_media_for_parent",
    "extract_text_heuristically",
    "fail_stale_attachments",
    "get_extraction_pool",
    "get_media",
    "ingest_media",
    "list_media_for_parent",
    "resolve_media_kind",
    "set_extraction_pool",
]
