from __future__ import annotations

import logging
import re
import time
from enum import Enum
from pathlib import Path
from uuid import UUID, uuid4

from server.core.config import get_settings

from .errors import MediaStorageError

logger = logging.getLogger(__name__)

_FILENAME_TOKEN_RE = re.compile(r"[^\w.\- ]+")


class BlobRemoval(str, Enum):
    REMOVED = "removed"
    MISSING = "missing"
    FAILED = "failed"


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def storage_root() -> Path:
    root = Path(get_settings().media_storage_path)
    if not root.is_absolute():
        root = _project_root() / root
    return root


def resolve_storage_path(storage_path: str) -> Path:
    path = Path(storage_path)
    if not path.is_absolute():
        path = _project_root() / path
    return path


def normalize_filename(filename: str) -> str:
    cleaned = _FILENAME_TOKEN_RE.sub("_", Path(filename).name).strip()
    return cleaned or "upload"


def build_storage_name(owner_id: UUID | str, filename: str) -> str:
    return f"{owner_id}_{time.time_ns()}_{uuid4().hex[:8]}_{normalize_filename(filename)}"


def write_blob(owner_id: UUID | str, filename: str, data: bytes) -> Path:
    root = storage_root()
    path = root / build_storage_name(owner_id, filename)
    try:
        root.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        logger.error("Failed to write media blob %s.", path, exc_info=True)
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Could not remove partial media blob %s.", path, exc_info=True)
        raise MediaStorageError("Failed to save uploaded file.") from exc
    return path


def delete_blob(storage_path: str) -> BlobRemoval:
    path = resolve_storage_path(storage_path)
    try:
        path.unlink()
    except FileNotFoundError:
        return BlobRemoval.MISSING
    except OSError:
        logger.warning("Failed to delete media blob %s.", path, exc_info=True)
        return BlobRemoval.FAILED
    return BlobRemoval.REMOVED
