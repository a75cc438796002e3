from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel

FAILURE_PREFIX = "Conversion failed: "


class MediaKind(str, Enum):
    AUDIO = "audio"
    IMAGE = "image"
    DOCUMENT = "document"


class ConversionStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ExtractionJob:
    attachment_id: str
    kind: MediaKind
    data: bytes
    file_name: str
    mime_type: str


@dataclass(frozen=True)
class ExtractionOutcome:
    status: ConversionStatus
    text: str


class AttachmentDescriptor(BaseModel):
    id: str
    parent_id: str
    file_name: str
    kind: MediaKind
    mime_type: str
    size_bytes: int
    status: ConversionStatus
    created_at: datetime


class MediaAttachmentDetail(AttachmentDescriptor):
    extracted_text: str | None = None
    diagnostic: str | None = None
    updated_at: datetime


class UploadMediaResponse(BaseModel):
    message: str
    attachment: AttachmentDescriptor


class MediaContext(BaseModel):
    parent_id: str
    attachment_count: int
    context: str
