from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from .dispatcher import ConversionDispatcher
from .errors import MediaDomainError
from .recorder import StatusRecorder, failure_outcome, success_outcome
from .types import ConversionStatus, ExtractionJob, ExtractionOutcome

logger = logging.getLogger(__name__)


class ExtractionWorkerPool:
    """Fixed set of asyncio workers draining a bounded job queue.

    ``submit`` returns as soon as the job is queued; it only waits when the
    queue is full, which is the backpressure towards the upload path.
    """

    def __init__(
        self,
        *,
        dispatcher: ConversionDispatcher,
        recorder: StatusRecorder,
        worker_count: int = 4,
        queue_size: int = 100,
    ):
        self._dispatcher = dispatcher
        self._recorder = recorder
        self._worker_count = max(1, worker_count)
        self._queue: asyncio.Queue[ExtractionJob] = asyncio.Queue(maxsize=max(1, queue_size))
        self._workers: list[asyncio.Task[None]] = []
        self._owned: set[str] = set()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def owned_ids(self) -> frozenset[str]:
        """Attachments queued or being converted by this pool."""
        return frozenset(self._owned)

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._run_worker(index), name=f"media-extraction-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("Started %d media extraction workers.", self._worker_count)

    async def stop(self) -> None:
        workers, self._workers = self._workers, []
        for task in workers:
            task.cancel()
        for task in workers:
            with suppress(asyncio.CancelledError):
                await task
        if self._queue.qsize():
            logger.warning(
                "Stopped media extraction with %d queued jobs; they stay in processing.",
                self._queue.qsize(),
            )

    async def submit(self, job: ExtractionJob) -> None:
        if not self._workers:
            raise RuntimeError("Media extraction workers are not running.")
        self._owned.add(job.attachment_id)
        try:
            await self._queue.put(job)
        except BaseException:
            self._owned.discard(job.attachment_id)
            raise
        logger.info(
            "Queued media conversion for attachment %s, type: %s, filename: %s.",
            job.attachment_id,
            job.kind.value,
            job.file_name,
        )

    async def join(self) -> None:
        await self._queue.join()

    async def process(self, job: ExtractionJob) -> ExtractionOutcome | None:
        if not await self._recorder.is_pending(job.attachment_id):
            logger.info(
                "Skipping media conversion for attachment %s; it was deleted or already finished.",
                job.attachment_id,
            )
            return None

        try:
            text = await self._dispatcher.dispatch(job.kind, job.data, job.file_name, job.mime_type)
        except MediaDomainError as exc:
            logger.warning("Failed to convert media for attachment %s: %s", job.attachment_id, exc)
            outcome = failure_outcome(exc)
        except Exception as exc:
            logger.error(
                "Unexpected error converting media for attachment %s.",
                job.attachment_id,
                exc_info=True,
            )
            outcome = failure_outcome(f"unexpected error ({type(exc).__name__})")
        else:
            outcome = success_outcome(text)
            if outcome.status is ConversionStatus.FAILED:
                logger.warning(
                    "Conversion succeeded but returned no usable text for attachment %s.",
                    job.attachment_id,
                )

        await self._recorder.record(job.attachment_id, outcome)
        return outcome

    async def _run_worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.process(job)
            except Exception:
                logger.error(
                    "Media extraction worker %d could not record attachment %s.",
                    index,
                    job.attachment_id,
                    exc_info=True,
                )
            finally:
                self._owned.discard(job.attachment_id)
                self._queue.task_done()


_pool: ExtractionWorkerPool | None = None


def set_extraction_pool(pool: ExtractionWorkerPool | None) -> None:
    global _pool
    _pool = pool


def get_extraction_pool() -> ExtractionWorkerPool:
    if _pool is None:
        raise RuntimeError("Media extraction pool is not configured.")
    return _pool
