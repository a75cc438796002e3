from __future__ import annotations

import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from server.features.shared.text_sanitize import log_sanitization_stats, sanitize_text

from . import repo
from .types import FAILURE_PREFIX, ConversionStatus, ExtractionOutcome

logger = logging.getLogger(__name__)

EMPTY_TEXT_DIAGNOSTIC = f"{FAILURE_PREFIX}extraction succeeded but no text was extracted."
AMBIGUOUS_TEXT_DIAGNOSTIC = (
    f"{FAILURE_PREFIX}extracted text begins with the failure marker and cannot be stored as a result."
)


def failure_outcome(reason: str | Exception) -> ExtractionOutcome:
    message = str(reason).strip() or type(reason).__name__
    return ExtractionOutcome(status=ConversionStatus.FAILED, text=f"{FAILURE_PREFIX}{message}")


def success_outcome(text: str) -> ExtractionOutcome:
    # An extractor that "succeeds" with nothing is still reported as a failure.
    if not text:
        return ExtractionOutcome(status=ConversionStatus.FAILED, text=EMPTY_TEXT_DIAGNOSTIC)
    # The marker is what tells a stored diagnostic apart from stored text.
    if text.startswith(FAILURE_PREFIX):
        return ExtractionOutcome(status=ConversionStatus.FAILED, text=AMBIGUOUS_TEXT_DIAGNOSTIC)
    return ExtractionOutcome(status=ConversionStatus.COMPLETED, text=text)


class StatusRecorder:
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def is_pending(self, attachment_id: str) -> bool:
        async with self._session_factory() as session:
            status = await repo.get_status(session, attachment_id=attachment_id)
        return status == ConversionStatus.PROCESSING.value

    async def record(self, attachment_id: str, outcome: ExtractionOutcome) -> bool:
        text, stats = sanitize_text(outcome.text, strip=False, drop_controls=True)
        log_sanitization_stats(logger, location="media.record_outcome.extracted_text", stats=stats)
        if outcome.status is ConversionStatus.COMPLETED:
            outcome = success_outcome(text)
            text = outcome.text

        async with self._session_factory() as session:
            updated = await repo.record_outcome(
                session,
                attachment_id=attachment_id,
                status=outcome.status,
                text=text,
            )

        if updated:
            logger.info(
                "Updated media attachment %s with status %s (%d characters).",
                attachment_id,
                outcome.status.value,
                len(text),
            )
        else:
            logger.warning(
                "Media attachment %s was deleted or already finished; outcome %s discarded.",
                attachment_id,
                outcome.status.value,
            )
        return updated
