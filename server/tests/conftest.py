from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest

from server.core.config import get_settings
from server.features.media import repo as media_repo
from server.features.media.errors import MediaNotFoundError


class _MediaStore:
    """In-memory stand-in for the media repo module."""

    def __init__(self):
        self.rows: dict[UUID, SimpleNamespace] = {}
        self.outcome_writes: list[tuple[str, str, str]] = []

    async def create_attachment(
        self,
        _session,
        *,
        owner_id,
        parent_id,
        file_name,
        kind,
        storage_path,
        size_bytes,
        mime_type,
    ):
        now = datetime.now(timezone.utc)
        row = SimpleNamespace(
            id=uuid4(),
            owner_id=owner_id,
            parent_id=parent_id,
            file_name=file_name,
            kind=kind,
            storage_path=storage_path,
            size_bytes=size_bytes,
            mime_type=mime_type,
            extracted_text=None,
            status="processing",
            created_at=now,
            updated_at=now,
        )
        self.rows[row.id] = row
        return row

    async def get_attachment(self, _session, *, owner_id, attachment_id):
        row = self.rows.get(UUID(str(attachment_id)))
        if row is None or str(row.owner_id) != str(owner_id):
            raise MediaNotFoundError(f"Media attachment '{attachment_id}' was not found.")
        return row

    async def list_attachments_for_parent(self, _session, *, owner_id, parent_id, status=None):
        rows = [
            row
            for row in self.rows.values()
            if str(row.owner_id) == str(owner_id) and str(row.parent_id) == str(parent_id)
        ]
        if status is not None:
            rows = [row for row in rows if row.status == status.value]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return rows

    async def delete_attachment(self, _session, *, attachment):
        self.rows.pop(attachment.id, None)

    async def delete_attachments(self, _session, *, attachment_ids):
        removed = 0
        for attachment_id in attachment_ids:
            if self.rows.pop(attachment_id, None) is not None:
                removed += 1
        return removed

    async def record_outcome(self, _session, *, attachment_id, status, text):
        self.outcome_writes.append((str(attachment_id), status.value, text))
        row = self.rows.get(UUID(str(attachment_id)))
        if row is None or row.status != "processing":
            return False
        row.status = status.value
        row.extracted_text = text
        row.updated_at = datetime.now(timezone.utc)
        return True

    async def get_status(self, _session, *, attachment_id):
        row = self.rows.get(UUID(str(attachment_id)))
        return None if row is None else row.status

    async def fail_stale_processing(self, _session, *, created_before, diagnostic, exclude_ids=()):
        excluded = {str(value) for value in exclude_ids}
        count = 0
        for row in self.rows.values():
            if str(row.id) in excluded:
                continue
            if row.status == "processing" and row.created_at < created_before:
                row.status = "failed"
                row.extracted_text = diagnostic
                count += 1
        return count


class _DummySession:
    pass


class _SessionFactory:
    def __call__(self):
        return self

    async def __aenter__(self):
        return _DummySession()

    async def __aexit__(self, _exc_type, _exc, _tb):
        return False


@pytest.fixture
def media_store(monkeypatch):
    store = _MediaStore()
    for name in (
        "create_attachment",
        "get_attachment",
        "get_status",
        "list_attachments_for_parent",
        "delete_attachment",
        "delete_attachments",
        "record_outcome",
        "fail_stale_processing",
    ):
        monkeypatch.setattr(media_repo, name, getattr(store, name))
    return store


@pytest.fixture
def session_factory():
    return _SessionFactory()


@pytest.fixture
def media_storage_dir(monkeypatch, tmp_path):
    storage_dir = tmp_path / "uploads"
    monkeypatch.setattr(get_settings(), "media_storage_path", str(storage_dir))
    return storage_dir
