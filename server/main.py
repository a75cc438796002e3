import asyncio
import logging
from contextlib import asynccontextmanager, suppress

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import api_router
from .core.config import get_settings
from .db.session import AsyncSessionLocal, async_engine
from .features.media import (
    ExtractionWorkerPool,
    StatusRecorder,
    build_dispatcher,
    fail_stale_attachments,
    set_extraction_pool,
)

settings = get_settings()
logger = logging.getLogger(__name__)


async def _stale_media_sweeper_loop(pool: ExtractionWorkerPool) -> None:
    while True:
        try:
            async with AsyncSessionLocal() as session:
                await fail_stale_attachments(
                    session,
                    max_age_seconds=settings.media_stale_processing_seconds,
                    exclude_ids=pool.owned_ids,
                )
        except Exception:
            logger.warning("Stale media sweep failed; retrying on the next interval.", exc_info=True)
        interval = max(1, settings.media_stale_sweep_interval_seconds)
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(_: FastAPI):
    http_client = httpx.AsyncClient(timeout=settings.media_http_timeout_seconds)
    pool = ExtractionWorkerPool(
        dispatcher=build_dispatcher(settings, http_client),
        recorder=StatusRecorder(AsyncSessionLocal),
        worker_count=settings.media_extraction_workers,
        queue_size=settings.media_extraction_queue_size,
    )
    pool.start()
    set_extraction_pool(pool)

    sweeper_task: asyncio.Task[None] | None = None
    if settings.media_stale_processing_seconds > 0 and settings.media_stale_sweep_interval_seconds > 0:
        sweeper_task = asyncio.create_task(_stale_media_sweeper_loop(pool))
    try:
        yield
    finally:
        if sweeper_task is not None:
            sweeper_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper_task
        set_extraction_pool(None)
        await pool.stop()
        await http_client.aclose()
        await async_engine.dispose()


app = FastAPI(title="MediaText API", docs_url="/api/docs", lifespan=lifespan)
app.include_router(api_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def read_root() -> dict:
    return {"status": "ok", "service": "mediatext"}


@app.get("/health")
async def health_check() -> dict:
    return {"healthy": True}
