from __future__ import annotations

from uuid import UUID

from fastapi import Header, HTTPException


def parse_uuid(value: str, *, field_name: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name}.") from exc


def get_current_owner_id(x_user_id: str | None = Header(default=None)) -> UUID:
    # Identity is resolved by the upstream auth layer and forwarded as a header.
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header.")
    return parse_uuid(x_user_id, field_name="X-User-Id")
