from __future__ import annotations

import logging
from collections.abc import Collection
from datetime import datetime, timedelta, timezone
from pathlib import Path
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import MediaAttachment
from server.features.shared.text_sanitize import log_sanitization_stats, sanitize_text

from . import repo, storage
from .errors import MediaStorageError, MediaValidationError
from .recorder import failure_outcome
from .types import (
    FAILURE_PREFIX,
    AttachmentDescriptor,
    ConversionStatus,
    ExtractionJob,
    MediaAttachmentDetail,
    MediaContext,
    MediaKind,
)
from .worker import ExtractionWorkerPool

logger = logging.getLogger(__name__)

_MAX_FILE_NAME_LENGTH = 512
_KIND_ALIASES = {
    "audio": MediaKind.AUDIO,
    "image": MediaKind.IMAGE,
    "document": MediaKind.DOCUMENT,
    "pdf": MediaKind.DOCUMENT,
}
STALE_PROCESSING_DIAGNOSTIC = f"{FAILURE_PREFIX}extraction did not finish; please upload the file again."


def resolve_media_kind(
    declared_kind: str | None,
    *,
    mime_type: str,
    file_name: str,
) -> MediaKind:
    if declared_kind is not None and declared_kind.strip():
        kind = _KIND_ALIASES.get(declared_kind.strip().lower())
        if kind is None:
            raise MediaValidationError("Invalid file type. Must be 'audio', 'document', or 'image'.")
        return kind

    normalized_mime = (mime_type or "").lower()
    if "audio" in normalized_mime:
        return MediaKind.AUDIO
    if "image" in normalized_mime:
        return MediaKind.IMAGE
    if "pdf" in normalized_mime or file_name.lower().endswith(".pdf"):
        return MediaKind.DOCUMENT
    raise MediaValidationError("Unsupported file type. Please provide audio, PDF, or image.")


def _clean_file_name(file_name: str) -> str:
    normalized, stats = sanitize_text(file_name or "", strip=True)
    log_sanitization_stats(logger, location="media.ingest.file_name", stats=stats)
    normalized = Path(normalized.replace("\\", "/")).name
    if not normalized:
        raise MediaValidationError("Uploaded file is missing a filename.")
    return normalized[:_MAX_FILE_NAME_LENGTH]


def _to_descriptor(row: MediaAttachment) -> AttachmentDescriptor:
    return AttachmentDescriptor(
        id=str(row.id),
        parent_id=str(row.parent_id),
        file_name=row.file_name,
        kind=MediaKind(row.kind),
        mime_type=row.mime_type,
        size_bytes=row.size_bytes,
        status=ConversionStatus(row.status),
        created_at=row.created_at,
    )


def _to_detail(row: MediaAttachment) -> MediaAttachmentDetail:
    status = ConversionStatus(row.status)
    return MediaAttachmentDetail(
        **_to_descriptor(row).model_dump(),
        extracted_text=row.extracted_text if status is ConversionStatus.COMPLETED else None,
        diagnostic=row.extracted_text if status is ConversionStatus.FAILED else None,
        updated_at=row.updated_at,
    )


async def ingest_media(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    parent_id: UUID | str,
    data: bytes,
    file_name: str,
    mime_type: str,
    declared_kind: str | None = None,
    pool: ExtractionWorkerPool,
) -> AttachmentDescriptor:
    owner_uuid = repo.to_uuid(owner_id, field_name="owner_id")
    parent_uuid = repo.to_uuid(parent_id, field_name="parent_id")
    clean_name = _clean_file_name(file_name)
    kind = resolve_media_kind(declared_kind, mime_type=mime_type, file_name=clean_name)
    if not data:
        raise MediaValidationError(f"File '{clean_name}' is empty.")

    path = storage.write_blob(owner_uuid, clean_name, data)
    try:
        row = await repo.create_attachment(
            session,
            owner_id=owner_uuid,
            parent_id=parent_uuid,
            file_name=clean_name,
            kind=kind.value,
            storage_path=str(path),
            size_bytes=len(data),
            mime_type=mime_type or "",
        )
    except SQLAlchemyError as exc:
        logger.error("Failed to create media attachment record for %s.", clean_name, exc_info=True)
        storage.delete_blob(str(path))
        raise MediaStorageError("Failed to create media attachment record.") from exc

    descriptor = _to_descriptor(row)
    job = ExtractionJob(
        attachment_id=descriptor.id,
        kind=kind,
        data=data,
        file_name=clean_name,
        mime_type=mime_type or "",
    )
    try:
        await pool.submit(job)
    except RuntimeError as exc:
        logger.error("Could not queue media conversion for attachment %s: %s", descriptor.id, exc)
        outcome = failure_outcome(exc)
        await repo.record_outcome(
            session,
            attachment_id=row.id,
            status=outcome.status,
            text=outcome.text,
        )
        descriptor.status = outcome.status
    return descriptor


async def get_media(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    attachment_id: UUID | str,
) -> MediaAttachmentDetail:
    row = await repo.get_attachment(session, owner_id=owner_id, attachment_id=attachment_id)
    return _to_detail(row)


async def list_media_for_parent(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    parent_id: UUID | str,
) -> list[MediaAttachmentDetail]:
    rows = await repo.list_attachments_for_parent(session, owner_id=owner_id, parent_id=parent_id)
    return [_to_detail(row) for row in rows]


async def delete_media(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    attachment_id: UUID | str,
) -> None:
    row = await repo.get_attachment(session, owner_id=owner_id, attachment_id=attachment_id)
    removal = storage.delete_blob(row.storage_path)
    if removal is storage.BlobRemoval.MISSING:
        logger.info("Media blob for attachment %s was already gone.", attachment_id)
    elif removal is storage.BlobRemoval.FAILED:
        logger.error(
            "Media blob %s for attachment %s could not be removed; deleting the record anyway.",
            row.storage_path,
            attachment_id,
        )
    await repo.delete_attachment(session, attachment=row)


async def delete_media_for_parent(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    parent_id: UUID | str,
) -> int:
    rows = await repo.list_attachments_for_parent(session, owner_id=owner_id, parent_id=parent_id)
    for row in rows:
        storage.delete_blob(row.storage_path)
    return await repo.delete_attachments(session, attachment_ids=[row.id for row in rows])


async def build_media_context(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    parent_id: UUID | str,
) -> MediaContext:
    """Collect completed extractions of a parent into one prompt-ready block."""
    rows = await repo.list_attachments_for_parent(
        session,
        owner_id=owner_id,
        parent_id=parent_id,
        status=ConversionStatus.COMPLETED,
    )
    sections = [
        f"[{row.file_name} ({row.kind})]: {row.extracted_text}"
        for row in rows
        if row.extracted_text and not row.extracted_text.startswith(FAILURE_PREFIX)
    ]
    logger.debug("Built media context for parent %s from %d attachments.", parent_id, len(sections))
    return MediaContext(
        parent_id=str(parent_id),
        attachment_count=len(sections),
        context="\n\n".join(sections),
    )


async def fail_stale_attachments(
    session: AsyncSession,
    *,
    max_age_seconds: int,
    exclude_ids: Collection[UUID | str] = (),
) -> int:
    """Fail old processing rows whose job no live worker pool still holds."""
    created_before = datetime.now(timezone.utc) - timedelta(seconds=max_age_seconds)
    count = await repo.fail_stale_processing(
        session,
        created_before=created_before,
        diagnostic=STALE_PROCESSING_DIAGNOSTIC,
        exclude_ids=exclude_ids,
    )
    if count:
        logger.warning("Marked %d stale media attachments as failed.", count)
    return count
