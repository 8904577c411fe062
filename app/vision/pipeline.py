import asyncio
import logging
import time
from datetime import date

from app.config import PipelineSettings
from app.usage.base import UsageStore
from app.vision.aggregator import aggregate, detect_warnings
from app.vision.base import VisionExtractor
from app.vision.confidence import score
from app.vision.errors import ErrorCode, PipelineError
from app.vision.prompts import DEFAULT_MODES, document_type_for_step, resolve_event_type
from app.vision.router import PhotoFetcher, extract_photo
from app.vision.types import BatchOutcome, ExtractionResult, PhotoInput
from app.vision.validation import cross_validate

logger = logging.getLogger("vision")


async def process_batch(
    photos: list[PhotoInput],
    event_type: str,
    extractor: VisionExtractor,
    settings: PipelineSettings,
    fetcher: PhotoFetcher | None = None,
    usage: UsageStore | None = None,
    today: date | None = None,
) -> BatchOutcome:
    """Extract every photo of one event, then aggregate, validate and score.

    STRICT ORDER:
      1) Reject structurally invalid batches (no photos, unknown event type)
      2) Fan out one extraction per photo, bounded by max_concurrency
      3) Barrier: wait for every photo (each has its own timeout)
      4) Aggregate -> cross-validate -> score -> warnings

    Results keep submission order. Cancelling the caller cancels all
    in-flight photos; nothing is returned until the barrier is passed.
    """
    if not photos:
        raise PipelineError(ErrorCode.NO_FILE, "No photos provided")
    event = resolve_event_type(event_type)
    document_types = [document_type_for_step(event, photo.step_id) for photo in photos]

    start = time.time()
    semaphore = asyncio.Semaphore(settings.max_concurrency)

    async def run_one(photo: PhotoInput, index: int) -> ExtractionResult:
        document_type = document_types[index]
        async with semaphore:
            return await extract_photo(
                photo,
                document_type,
                DEFAULT_MODES[document_type],
                extractor,
                settings,
                fetcher=fetcher,
                usage=usage,
            )

    async with asyncio.TaskGroup() as group:
        tasks = [group.create_task(run_one(photo, i)) for i, photo in enumerate(photos)]
    results = [task.result() for task in tasks]

    record = aggregate(results, today=today)
    validations = cross_validate(record, results, tank_capacity=settings.tank_capacity_gallons)
    confidence = score(results, validations)
    warnings = detect_warnings(record, results, validations, event_type=event)

    logger.info(
        "Batch processed",
        extra={"extra_data": {
            "event_type": event.value,
            "photos": len(photos),
            "failed": sum(1 for r in results if not r.success),
            "confidence": confidence.overall,
            "duration_ms": round((time.time() - start) * 1000),
        }},
    )
    return BatchOutcome(
        record=record,
        confidence=confidence,
        validations=validations,
        warnings=warnings,
        results=results,
    )
