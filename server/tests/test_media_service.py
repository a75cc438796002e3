from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from server.features.media import repo as media_repo
from server.features.media import service as media_service
from server.features.media import storage as media_storage
from server.features.media.errors import MediaNotFoundError, MediaStorageError, MediaValidationError
from server.features.media.service import STALE_PROCESSING_DIAGNOSTIC, resolve_media_kind
from server.features.media.types import ConversionStatus, MediaKind


class _RecordingPool:
    def __init__(self):
        self.jobs = []

    async def submit(self, job):
        self.jobs.append(job)


def _ingest(pool, **overrides):
    kwargs = {
        "owner_id": uuid4(),
        "parent_id": uuid4(),
        "data": b"ID3 speech",
        "file_name": "speech.mp3",
        "mime_type": "audio/mpeg",
        "declared_kind": None,
        "pool": pool,
    }
    kwargs.update(overrides)
    return asyncio.run(media_service.ingest_media(object(), **kwargs))


@pytest.mark.parametrize(
    ("declared", "mime_type", "file_name", "expected"),
    [
        ("audio", "", "x.bin", MediaKind.AUDIO),
        (" Image ", "", "x.bin", MediaKind.IMAGE),
        ("pdf", "", "x.bin", MediaKind.DOCUMENT),
        (None, "audio/ogg", "voice.ogg", MediaKind.AUDIO),
        (None, "image/jpeg", "photo.jpg", MediaKind.IMAGE),
        (None, "application/pdf", "doc", MediaKind.DOCUMENT),
        (None, "application/octet-stream", "Report.PDF", MediaKind.DOCUMENT),
        ("", "image/png", "scan.png", MediaKind.IMAGE),
    ],
)
def test_resolve_media_kind(declared, mime_type, file_name, expected):
    assert resolve_media_kind(declared, mime_type=mime_type, file_name=file_name) is expected


def test_resolve_media_kind_rejects_unknown_declared_kind():
    with pytest.raises(MediaValidationError, match="Must be 'audio', 'document', or 'image'"):
        resolve_media_kind("video", mime_type="video/mp4", file_name="clip.mp4")


def test_resolve_media_kind_rejects_unsniffable_upload():
    with pytest.raises(MediaValidationError, match="Please provide audio, PDF, or image"):
        resolve_media_kind(None, mime_type="text/plain", file_name="notes.txt")


def test_ingest_stores_blob_row_and_queues_job(media_store, media_storage_dir):
    pool = _RecordingPool()
    parent_id = uuid4()

    descriptor = _ingest(pool, parent_id=parent_id, file_name="../secret/speech.mp3")

    assert descriptor.status is ConversionStatus.PROCESSING
    assert descriptor.kind is MediaKind.AUDIO
    assert descriptor.file_name == "speech.mp3"
    assert descriptor.parent_id == str(parent_id)
    assert descriptor.size_bytes == len(b"ID3 speech")
    row = media_store.rows[next(iter(media_store.rows))]
    assert row.storage_path.startswith(str(media_storage_dir))
    assert (media_storage_dir / row.storage_path.split("/")[-1]).read_bytes() == b"ID3 speech"
    assert len(pool.jobs) == 1
    job = pool.jobs[0]
    assert job.attachment_id == descriptor.id
    assert job.kind is MediaKind.AUDIO
    assert job.data == b"ID3 speech"


def test_invalid_upload_creates_nothing(media_store, media_storage_dir):
    pool = _RecordingPool()

    with pytest.raises(MediaValidationError):
        _ingest(pool, file_name="notes.txt", mime_type="text/plain")
    with pytest.raises(MediaValidationError, match="is empty"):
        _ingest(pool, data=b"")
    with pytest.raises(MediaValidationError, match="missing a filename"):
        _ingest(pool, file_name="")
    with pytest.raises(MediaValidationError, match="Invalid parent_id"):
        _ingest(pool, parent_id="nope")

    assert media_store.rows == {}
    assert pool.jobs == []
    assert not media_storage_dir.exists()


def test_storage_failure_creates_no_row(media_store, media_storage_dir, monkeypatch):
    def _fail_write(_owner_id, _filename, _data):
        raise MediaStorageError("Failed to save uploaded file.")

    monkeypatch.setattr(media_storage, "write_blob", _fail_write)
    pool = _RecordingPool()

    with pytest.raises(MediaStorageError):
        _ingest(pool)

    assert media_store.rows == {}
    assert pool.jobs == []


def test_row_creation_failure_removes_blob(media_storage_dir, monkeypatch):
    async def _fail_create(_session, **_kwargs):
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(media_repo, "create_attachment", _fail_create)
    pool = _RecordingPool()

    with pytest.raises(MediaStorageError, match="Failed to create media attachment record."):
        _ingest(pool)

    assert list(media_storage_dir.iterdir()) == []
    assert pool.jobs == []


def test_get_and_list_split_text_from_diagnostic(media_store, media_storage_dir):
    pool = _RecordingPool()
    owner_id = uuid4()
    parent_id = uuid4()
    done = _ingest(pool, owner_id=owner_id, parent_id=parent_id, file_name="a.mp3")
    broken = _ingest(pool, owner_id=owner_id, parent_id=parent_id, file_name="b.mp3")
    pending = _ingest(pool, owner_id=owner_id, parent_id=parent_id, file_name="c.mp3")

    async def _scenario():
        await media_store.record_outcome(
            None, attachment_id=done.id, status=ConversionStatus.COMPLETED, text="Guten Morgen"
        )
        await media_store.record_outcome(
            None,
            attachment_id=broken.id,
            status=ConversionStatus.FAILED,
            text="Conversion failed: OpenAI API key not configured",
        )
        listed = await media_service.list_media_for_parent(object(), owner_id=owner_id, parent_id=parent_id)
        single = await media_service.get_media(object(), owner_id=owner_id, attachment_id=done.id)
        return listed, single

    listed, single = asyncio.run(_scenario())

    by_id = {item.id: item for item in listed}
    assert set(by_id) == {done.id, broken.id, pending.id}
    assert by_id[done.id].extracted_text == "Guten Morgen"
    assert by_id[done.id].diagnostic is None
    assert by_id[broken.id].extracted_text is None
    assert by_id[broken.id].diagnostic == "Conversion failed: OpenAI API key not configured"
    assert by_id[pending.id].status is ConversionStatus.PROCESSING
    assert by_id[pending.id].extracted_text is None
    assert single.status is ConversionStatus.COMPLETED


def test_list_is_scoped_to_owner(media_store, media_storage_dir):
    parent_id = uuid4()
    _ingest(_RecordingPool(), parent_id=parent_id)

    listed = asyncio.run(media_service.list_media_for_parent(object(), owner_id=uuid4(), parent_id=parent_id))

    assert listed == []


def test_delete_removes_blob_and_row(media_store, media_storage_dir):
    owner_id = uuid4()
    descriptor = _ingest(_RecordingPool(), owner_id=owner_id)

    async def _scenario():
        await media_service.delete_media(object(), owner_id=owner_id, attachment_id=descriptor.id)
        await media_service.get_media(object(), owner_id=owner_id, attachment_id=descriptor.id)

    with pytest.raises(MediaNotFoundError):
        asyncio.run(_scenario())
    assert list(media_storage_dir.iterdir()) == []


def test_delete_succeeds_when_blob_is_already_gone(media_store, media_storage_dir):
    owner_id = uuid4()
    descriptor = _ingest(_RecordingPool(), owner_id=owner_id)
    for path in media_storage_dir.iterdir():
        path.unlink()

    asyncio.run(media_service.delete_media(object(), owner_id=owner_id, attachment_id=descriptor.id))

    assert media_store.rows == {}


def test_delete_logs_a_blob_that_could_not_be_removed(monkeypatch, caplog, media_store, media_storage_dir):
    owner_id = uuid4()
    descriptor = _ingest(_RecordingPool(), owner_id=owner_id)
    monkeypatch.setattr(media_storage, "delete_blob", lambda _path: media_storage.BlobRemoval.FAILED)

    with caplog.at_level("INFO", logger="server.features.media.service"):
        asyncio.run(media_service.delete_media(object(), owner_id=owner_id, attachment_id=descriptor.id))

    assert media_store.rows == {}
    errors = [record for record in caplog.records if record.levelname == "ERROR"]
    assert len(errors) == 1
    assert "could not be removed" in errors[0].getMessage()
    assert "already gone" not in caplog.text
    assert len(list(media_storage_dir.iterdir())) == 1


def test_delete_of_other_owners_attachment_is_not_found(media_store, media_storage_dir):
    descriptor = _ingest(_RecordingPool())

    with pytest.raises(MediaNotFoundError):
        asyncio.run(media_service.delete_media(object(), owner_id=uuid4(), attachment_id=descriptor.id))

    assert len(media_store.rows) == 1


def test_delete_media_for_parent_removes_only_that_parent(media_store, media_storage_dir):
    owner_id = uuid4()
    parent_id = uuid4()
    _ingest(_RecordingPool(), owner_id=owner_id, parent_id=parent_id, file_name="a.mp3")
    _ingest(_RecordingPool(), owner_id=owner_id, parent_id=parent_id, file_name="b.mp3")
    keep = _ingest(_RecordingPool(), owner_id=owner_id, parent_id=uuid4(), file_name="c.mp3")

    deleted = asyncio.run(
        media_service.delete_media_for_parent(object(), owner_id=owner_id, parent_id=parent_id)
    )

    assert deleted == 2
    assert [str(row.id) for row in media_store.rows.values()] == [keep.id]
    assert len(list(media_storage_dir.iterdir())) == 1


def test_media_context_joins_completed_text(media_store, media_storage_dir):
    owner_id = uuid4()
    parent_id = uuid4()
    audio = _ingest(_RecordingPool(), owner_id=owner_id, parent_id=parent_id, file_name="memo.mp3")
    image = _ingest(
        _RecordingPool(),
        owner_id=owner_id,
        parent_id=parent_id,
        file_name="scan.png",
        mime_type="image/png",
    )
    _ingest(_RecordingPool(), owner_id=owner_id, parent_id=parent_id, file_name="pending.mp3")

    async def _scenario():
        await media_store.record_outcome(
            None, attachment_id=audio.id, status=ConversionStatus.COMPLETED, text="Guten Morgen"
        )
        await media_store.record_outcome(
            None,
            attachment_id=image.id,
            status=ConversionStatus.FAILED,
            text="Conversion failed: no text detected in image",
        )
        return await media_service.build_media_context(object(), owner_id=owner_id, parent_id=parent_id)

    context = asyncio.run(_scenario())

    assert context.parent_id == str(parent_id)
    assert context.attachment_count == 1
    assert context.context == "[memo.mp3 (audio)]: Guten Morgen"


def test_fail_stale_attachments_marks_old_processing_rows(media_store, media_storage_dir):
    old = _ingest(_RecordingPool(), file_name="old.mp3")
    fresh = _ingest(_RecordingPool(), file_name="fresh.mp3")
    rows = {str(row.id): row for row in media_store.rows.values()}
    rows[old.id].created_at = datetime.now(timezone.utc) - timedelta(hours=2)

    count = asyncio.run(media_service.fail_stale_attachments(object(), max_age_seconds=1800))

    assert count == 1
    assert rows[old.id].status == "failed"
    assert rows[old.id].extracted_text == STALE_PROCESSING_DIAGNOSTIC
    assert rows[fresh.id].status == "processing"
