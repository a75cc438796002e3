from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.models import MediaAttachment

from .errors import MediaNotFoundError, MediaValidationError
from .types import ConversionStatus


def to_uuid(value: UUID | str, *, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(value)
    except ValueError as exc:
        raise MediaValidationError(f"Invalid {field_name}.") from exc


async def create_attachment(
    session: AsyncSession,
    *,
    owner_id: UUID,
    parent_id: UUID,
    file_name: str,
    kind: str,
    storage_path: str,
    size_bytes: int,
    mime_type: str,
) -> MediaAttachment:
    attachment = MediaAttachment(
        owner_id=owner_id,
        parent_id=parent_id,
        file_name=file_name,
        kind=kind,
        storage_path=storage_path,
        size_bytes=size_bytes,
        mime_type=mime_type,
        status=ConversionStatus.PROCESSING.value,
    )
    session.add(attachment)
    await session.commit()
    await session.refresh(attachment)
    return attachment


async def get_attachment(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    attachment_id: UUID | str,
) -> MediaAttachment:
    stmt = select(MediaAttachment).where(
        MediaAttachment.id == to_uuid(attachment_id, field_name="attachment_id"),
        MediaAttachment.owner_id == to_uuid(owner_id, field_name="owner_id"),
    )
    attachment = (await session.execute(stmt)).scalar_one_or_none()
    if attachment is None:
        raise MediaNotFoundError(f"Media attachment '{attachment_id}' was not found.")
    return attachment


async def get_status(
    session: AsyncSession,
    *,
    attachment_id: UUID | str,
) -> str | None:
    stmt = select(MediaAttachment.status).where(
        MediaAttachment.id == to_uuid(attachment_id, field_name="attachment_id")
    )
    return (await session.execute(stmt)).scalar_one_or_none()


async def list_attachments_for_parent(
    session: AsyncSession,
    *,
    owner_id: UUID | str,
    parent_id: UUID | str,
    status: ConversionStatus | None = None,
) -> list[MediaAttachment]:
    stmt = select(MediaAttachment).where(
        MediaAttachment.owner_id == to_uuid(owner_id, field_name="owner_id"),
        MediaAttachment.parent_id == to_uuid(parent_id, field_name="parent_id"),
    )
    if status is not None:
        stmt = stmt.where(MediaAttachment.status == status.value)
    stmt = stmt.order_by(MediaAttachment.created_at.desc(), MediaAttachment.id.desc())
    return list((await session.execute(stmt)).scalars().all())


async def delete_attachment(
    session: AsyncSession,
    *,
    attachment: MediaAttachment,
) -> None:
    await session.delete(attachment)
    await session.commit()


async def delete_attachments(
    session: AsyncSession,
    *,
    attachment_ids: list[UUID],
) -> int:
    if not attachment_ids:
        return 0
    result = await session.execute(
        delete(MediaAttachment).where(MediaAttachment.id.in_(attachment_ids))
    )
    await session.commit()
    return int(result.rowcount or 0)


async def record_outcome(
    session: AsyncSession,
    *,
    attachment_id: UUID | str,
    status: ConversionStatus,
    text: str,
) -> bool:
    """Write the terminal outcome once. Returns False if the row is gone or already terminal."""
    stmt = (
        update(MediaAttachment)
        .where(
            MediaAttachment.id == to_uuid(attachment_id, field_name="attachment_id"),
            MediaAttachment.status == ConversionStatus.PROCESSING.value,
        )
        .values(extracted_text=text, status=status.value, updated_at=func.now())
    )
    result = await session.execute(stmt)
    await session.commit()
    return result.rowcount == 1


async def fail_stale_processing(
    session: AsyncSession,
    *,
    created_before: datetime,
    diagnostic: str,
    exclude_ids: Collection[UUID | str] = (),
) -> int:
    conditions = [
        MediaAttachment.status == ConversionStatus.PROCESSING.value,
        MediaAttachment.created_at < created_before,
    ]
    if exclude_ids:
        excluded = [to_uuid(value, field_name="attachment_id") for value in exclude_ids]
        conditions.append(MediaAttachment.id.not_in(excluded))
    stmt = (
        update(MediaAttachment)
        .where(*conditions)
        .values(
            extracted_text=diagnostic,
            status=ConversionStatus.FAILED.value,
            updated_at=func.now(),
        )
    )
    result = await session.execute(stmt)
    await session.commit()
    return int(result.rowcount or 0)
