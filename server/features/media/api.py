from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from server.core.config import get_settings
from server.db.session import get_db_session
from server.features.shared.ids import get_current_owner_id, parse_uuid

from .errors import MediaNotFoundError, MediaStorageError, MediaValidationError
from .service import (
    build_media_context,
    delete_media,
    delete_media_for_parent,
    get_media,
    ingest_media,
    list_media_for_parent,
)
from .types import MediaAttachmentDetail, MediaContext, UploadMediaResponse
from .worker import ExtractionWorkerPool, get_extraction_pool

router = APIRouter(prefix="/api", tags=["media"])


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, MediaNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, MediaValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, MediaStorageError):
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    raise exc


async def _read_file_limited(upload: UploadFile, *, max_size: int) -> bytes:
    total = 0
    chunks: list[bytes] = []
    while True:
        chunk = await upload.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > max_size:
            raise HTTPException(
                status_code=413,
                detail=f"File '{upload.filename or 'upload'}' exceeds max size of {max_size} bytes.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/parents/{parent_id}/media", response_model=UploadMediaResponse)
async def upload_media(
    parent_id: str,
    file: UploadFile = File(...),
    file_type: str | None = Form(default=None),
    owner_id: UUID = Depends(get_current_owner_id),
    session: AsyncSession = Depends(get_db_session),
    pool: ExtractionWorkerPool = Depends(get_extraction_pool),
) -> UploadMediaResponse:
    parent_uuid = parse_uuid(parent_id, field_name="parent_id")
    data = await _read_file_limited(file, max_size=get_settings().media_max_upload_bytes)
    try:
        attachment = await ingest_media(
            session,
            owner_id=owner_id,
            parent_id=parent_uuid,
            data=data,
            file_name=file.filename or "",
            mime_type=(file.content_type or "").strip().lower(),
            declared_kind=file_type,
            pool=pool,
        )
    except Exception as exc:
        _raise_http_error(exc)
    return UploadMediaResponse(
        message="File uploaded successfully. Conversion in progress.",
        attachment=attachment,
    )


@router.get("/parents/{parent_id}/media", response_model=list[MediaAttachmentDetail])
async def get_parent_media(
    parent_id: str,
    owner_id: UUID = Depends(get_current_owner_id),
    session: AsyncSession = Depends(get_db_session),
) -> list[MediaAttachmentDetail]:
    parent_uuid = parse_uuid(parent_id, field_name="parent_id")
    return await list_media_for_parent(session, owner_id=owner_id, parent_id=parent_uuid)


@router.get("/parents/{parent_id}/media/context", response_model=MediaContext)
async def get_parent_media_context(
    parent_id: str,
    owner_id: UUID = Depends(get_current_owner_id),
    session: AsyncSession = Depends(get_db_session),
) -> MediaContext:
    parent_uuid = parse_uuid(parent_id, field_name="parent_id")
    return await build_media_context(session, owner_id=owner_id, parent_id=parent_uuid)


@router.delete("/parents/{parent_id}/media")
async def remove_parent_media(
    parent_id: str,
    owner_id: UUID = Depends(get_current_owner_id),
    session: AsyncSession = Depends(get_db_session),
) -> dict[str, int]:
    parent_uuid = parse_uuid(parent_id, field_name="parent_id")
    deleted = await delete_media_for_parent(session, owner_id=owner_id, parent_id=parent_uuid)
    return {"deleted": deleted}


@router.get("/media/{attachment_id}", response_model=MediaAttachmentDetail)
async def get_media_by_id(
    attachment_id: str,
    owner_id: UUID = Depends(get_current_owner_id),
    session: AsyncSession = Depends(get_db_session),
) -> MediaAttachmentDetail:
    attachment_uuid = parse_uuid(attachment_id, field_name="attachment_id")
    try:
        return await get_media(session, owner_id=owner_id, attachment_id=attachment_uuid)
    except Exception as exc:
        _raise_http_error(exc)


@router.delete("/media/{attachment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_media(
    attachment_id: str,
    owner_id: UUID = Depends(get_current_owner_id),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    attachment_uuid = parse_uuid(attachment_id, field_name="attachment_id")
    try:
        await delete_media(session, owner_id=owner_id, attachment_id=attachment_uuid)
    except Exception as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
