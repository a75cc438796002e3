#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import delete, select

from server.core.config import get_settings
from server.db.models import MediaAttachment
from server.db.session import AsyncSessionLocal, async_engine
from server.features.media.storage import BlobRemoval, delete_blob
from server.features.media.types import ConversionStatus


@dataclass
class CleanupStats:
    attachment_ids: list[UUID]
    storage_paths: list[str]
    status_counts: dict[str, int]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Remove media attachments and their stored files from the dev database.",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Execute deletion without interactive confirmation.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print what would be deleted.",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Allow running against non-dev environments.",
    )
    parser.add_argument(
        "--status",
        choices=[status.value for status in ConversionStatus],
        default=None,
        help="Only remove attachments with this conversion status.",
    )
    return parser.parse_args()


def ensure_dev_target(*, force: bool) -> None:
    settings = get_settings()
    environment = settings.environment.lower()
    db_name = settings.db_name.lower()

    looks_like_dev = environment in {"development", "dev", "local"} or "dev" in db_name
    if looks_like_dev or force:
        return

    raise SystemExit(
        "Refusing to run outside a dev-like database target. "
        "Set ENVIRONMENT=development / DB_NAME containing 'dev', or pass --force."
    )


async def collect_stats(status: str | None) -> CleanupStats:
    stmt = select(MediaAttachment.id, MediaAttachment.storage_path, MediaAttachment.status)
    if status is not None:
        stmt = stmt.where(MediaAttachment.status == status)
    async with AsyncSessionLocal() as session:
        rows = (await session.execute(stmt)).all()

    status_counts: dict[str, int] = {}
    for row in rows:
        status_counts[row.status] = status_counts.get(row.status, 0) + 1
    return CleanupStats(
        attachment_ids=[row.id for row in rows],
        storage_paths=[row.storage_path for row in rows],
        status_counts=status_counts,
    )


def remove_files(storage_paths: list[str]) -> dict[BlobRemoval, int]:
    counts = {removal: 0 for removal in BlobRemoval}
    for raw_path in storage_paths:
        counts[delete_blob(raw_path)] += 1
    return counts


async def execute_delete(stats: CleanupStats) -> None:
    if not stats.attachment_ids:
        return
    async with AsyncSessionLocal() as session:
        await session.execute(delete(MediaAttachment).where(MediaAttachment.id.in_(stats.attachment_ids)))
        await session.commit()


def print_plan(stats: CleanupStats) -> None:
    print("Cleanup plan")
    print(f"- media_attachments: {len(stats.attachment_ids)}")
    for status, count in sorted(stats.status_counts.items()):
        print(f"  - {status}: {count}")
    print(f"- files_to_remove: {len(stats.storage_paths)}")


async def main() -> int:
    args = parse_args()
    ensure_dev_target(force=args.force)

    stats = await collect_stats(args.status)
    print_plan(stats)

    if args.dry_run:
        print("Dry run complete. No data was deleted.")
        return 0

    if not args.yes:
        print("Aborted: pass --yes to execute deletion (or --dry-run to preview).")
        return 1

    await execute_delete(stats)
    removals = remove_files(stats.storage_paths)
    deleted_files = removals[BlobRemoval.REMOVED]
    missing_files = removals[BlobRemoval.MISSING]
    failed_files = removals[BlobRemoval.FAILED]

    print("Cleanup complete")
    print(f"- deleted media attachments: {len(stats.attachment_ids)}")
    print(f"- deleted files: {deleted_files}")
    print(f"- missing files: {missing_files}")
    if failed_files:
        print(f"- file delete errors: {failed_files} (see log output)")
        return 2

    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(asyncio.run(main()))
    finally:
        asyncio.run(async_engine.dispose())
