from __future__ import annotations

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from server.core.config import get_settings

_PSYCOPG_SCHEME = "postgresql+psycopg://"
_PLAIN_SCHEMES = ("postgresql+asyncpg://", "postgresql://", "postgres://")


def normalize_database_url(url: str) -> str:
    """Route every Postgres URL through the async psycopg driver."""
    if url.startswith(_PSYCOPG_SCHEME):
        return url
    for scheme in _PLAIN_SCHEMES:
        if url.startswith(scheme):
            return _PSYCOPG_SCHEME + url[len(scheme) :]
    return url


settings = get_settings()
DATABASE_URL = normalize_database_url(settings.database_dsn)

# Extraction workers record outcomes on their own sessions next to request traffic.
async_engine = create_async_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    pool_size=max(5, settings.media_extraction_workers + 2),
)
AsyncSessionLocal = async_sessionmaker(bind=async_engine, expire_on_commit=False)


async def get_db_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session
