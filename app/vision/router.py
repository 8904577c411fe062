import asyncio
import logging
import time

import httpx

from app.config import PipelineSettings
from app.usage.base import UsageStore, build_usage_record
from app.vision.base import VisionExtractor
from app.vision.errors import ErrorCode, PipelineError, classify
from app.vision.parser import parse_reply
from app.vision.types import (
    DocumentType,
    ExtractionMode,
    ExtractionReply,
    ExtractionRequest,
    ExtractionResult,
    PhotoInput,
)

logger = logging.getLogger("vision")


class PhotoFetcher:
    """Downloads photo bytes from storage URLs."""

    def __init__(self, client: httpx.AsyncClient, max_bytes: int):
        self._client = client
        self._max_bytes = max_bytes

    async def fetch(self, url: str) -> tuple[bytes, str]:
        async with self._client.stream("GET", url) as response:
            if response.status_code == 404:
                raise PipelineError(ErrorCode.NO_FILE, f"Photo not found at {url}")
            response.raise_for_status()

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > self._max_bytes:
                raise PipelineError(ErrorCode.PAYLOAD_TOO_LARGE, f"Photo is {declared} bytes")

            # chunked responses carry no length; stop reading once over the cap
            chunks: list[bytes] = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > self._max_bytes:
                    raise PipelineError(ErrorCode.PAYLOAD_TOO_LARGE, f"Photo exceeds {self._max_bytes} bytes")
                chunks.append(chunk)

            mime_type = response.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        return b"".join(chunks), mime_type


def _default_model(mode: ExtractionMode, settings: PipelineSettings) -> str:
    return settings.ocr_model if mode == ExtractionMode.OCR else settings.document_model


async def load_photo(photo: PhotoInput, fetcher: PhotoFetcher | None) -> tuple[bytes, str]:
    if photo.image_bytes is not None:
        return photo.image_bytes, photo.mime_type or "image/jpeg"
    if not photo.source_location:
        raise PipelineError(ErrorCode.NO_FILE, "Photo has no bytes and no location")
    if fetcher is None:
        raise PipelineError(ErrorCode.NO_FILE, "No fetcher available for photo location")
    return await fetcher.fetch(photo.source_location)


def check_payload(image_bytes: bytes, max_bytes: int) -> None:
    if not image_bytes:
        raise PipelineError(ErrorCode.NO_FILE, "Empty image")
    if len(image_bytes) > max_bytes:
        raise PipelineError(ErrorCode.PAYLOAD_TOO_LARGE, f"Image is {len(image_bytes)} bytes")


async def extract_photo(
    photo: PhotoInput,
    document_type: DocumentType,
    mode: ExtractionMode,
    extractor: VisionExtractor,
    settings: PipelineSettings,
    fetcher: PhotoFetcher | None = None,
    usage: UsageStore | None = None,
    context: str | None = None,
    attempt: int = 1,
) -> ExtractionResult:
    """Run one photo through the extraction service and the parser.

    Exactly one extraction call is made, and only if the payload passes the
    size checks. Failures come back as ``success=False`` results; nothing
    but cancellation propagates.
    """
    start = time.time()
    reply: ExtractionReply | None = None
    error_code: ErrorCode | None = None
    parsed = None
    called = False

    try:
        async with asyncio.timeout(settings.photo_timeout_s):
            image_bytes, mime_type = await load_photo(photo, fetcher)
            check_payload(image_bytes, settings.max_image_bytes)
            request = ExtractionRequest(
                image_bytes=image_bytes,
                mime_type=mime_type,
                document_type=document_type,
                mode=mode,
                context=context,
            )
            called = True
            reply = await extractor.extract(request)
        parsed = parse_reply(document_type, reply)
        if not parsed.success:
            error_code = parsed.error_code or ErrorCode.PARSE_FAILED
    except Exception as e:
        error_code = classify(e).code
        logger.warning(
            f"Extraction failed for {photo.step_id}: {error_code.value}",
            extra={"extra_data": {"step_id": photo.step_id, "document_type": document_type.value, "error_code": error_code.value}},
        )

    duration_ms = round((time.time() - start) * 1000)
    success = error_code is None

    if usage is not None and called:
        entry = build_usage_record(
            document_type=document_type.value,
            model=reply.model if reply else _default_model(mode, settings),
            input_tokens=reply.input_tokens if reply else 0,
            output_tokens=reply.output_tokens if reply else 0,
            processing_time_ms=duration_ms,
            success=success,
            attempt=attempt,
            error_code=error_code.value if error_code else None,
        )
        try:
            usage.record(entry)
        except Exception:
            # accounting must never change the extraction outcome
            logger.exception(
                f"Usage recording failed for {photo.step_id}",
                extra={"extra_data": {"step_id": photo.step_id, "document_type": document_type.value}},
            )

    if not success:
        return ExtractionResult(
            step_id=photo.step_id,
            document_type=document_type,
            confidence=0.0,
            success=False,
            error_code=error_code.value,
            processing_time_ms=duration_ms,
        )

    logger.info(
        f"Extracted {photo.step_id}",
        extra={"extra_data": {"step_id": photo.step_id, "document_type": document_type.value, "confidence": parsed.confidence, "duration_ms": duration_ms}},
    )
    return ExtractionResult(
        step_id=photo.step_id,
        document_type=document_type,
        fields=parsed.fields,
        confidence=parsed.confidence,
        success=True,
        quality=parsed.quality,
        processing_time_ms=duration_ms,
    )
