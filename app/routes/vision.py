import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse

from app.config import settings
from app.deps import get_photo_fetcher
from app.ratelimit import limiter
from app.schemas import BatchVisionIn
from app.serializers import serialize_batch, serialize_result
from app.usage.analytics import summarize
from app.usage.base import UsageStore
from app.usage.factory import get_usage_store
from app.vision.base import VisionExtractor
from app.vision.errors import ErrorCode, PipelineError, error_record
from app.vision.factory import get_vision_extractor
from app.vision.pipeline import process_batch
from app.vision.prompts import resolve_document_type, resolve_mode
from app.vision.router import PhotoFetcher, check_payload, extract_photo
from app.vision.types import PhotoInput

logger = logging.getLogger("vision")
router = APIRouter()

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp", "image/heic", "image/heif"}


@router.post("/vision/batch")
@limiter.limit("30/minute")
async def process_vision_batch(
    request: Request,
    data: BatchVisionIn,
    extractor: VisionExtractor = Depends(get_vision_extractor),
    fetcher: PhotoFetcher = Depends(get_photo_fetcher),
    usage: UsageStore = Depends(get_usage_store),
):
    photos = [PhotoInput(step_id=p.step_id, source_location=p.url) for p in data.photos]
    logger.info(
        "Batch vision request",
        extra={"extra_data": {"vehicle_id": data.vehicle_id, "event_type": data.event_type, "photos": len(photos)}},
    )
    outcome = await process_batch(
        photos,
        data.event_type,
        extractor,
        settings,
        fetcher=fetcher,
        usage=usage,
    )
    return serialize_batch(outcome)


@router.post("/vision/extract")
@limiter.limit("60/minute")
async def extract_single(
    request: Request,
    file: UploadFile | None = File(None),
    document_type: str = Form(...),
    mode: str | None = Form(None),
    extractor: VisionExtractor = Depends(get_vision_extractor),
    usage: UsageStore = Depends(get_usage_store),
):
    doc_type = resolve_document_type(document_type)
    extraction_mode = resolve_mode(doc_type, mode)

    if file is None:
        raise PipelineError(ErrorCode.NO_FILE, "No image file provided")
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise PipelineError(ErrorCode.VALIDATION_FAILED, f"Unsupported content type {file.content_type}")

    image_bytes = await file.read()
    check_payload(image_bytes, settings.max_image_bytes)

    photo = PhotoInput(step_id=doc_type.value, image_bytes=image_bytes, mime_type=file.content_type)
    result = await extract_photo(photo, doc_type, extraction_mode, extractor, settings, usage=usage)

    if not result.success:
        record = error_record(ErrorCode(result.error_code))
        return JSONResponse(status_code=record.http_status, content=record.to_response())

    body = serialize_result(result)
    body.pop("stepId")
    return body


@router.get("/vision/usage")
def usage_summary(usage: UsageStore = Depends(get_usage_store)):
    return {"counters": usage.counters(), **summarize(usage.records())}
