from app.vision.errors import ErrorCode, error_record
from app.vision.types import BatchOutcome, ExtractionResult


def serialize_result(result: ExtractionResult) -> dict:
    data = {
        "stepId": result.step_id,
        "documentType": result.document_type.value if result.document_type else None,
        "data": result.fields or None,
        "confidence": result.confidence,
        "success": result.success,
        "processingTimeMs": result.processing_time_ms,
    }
    if result.quality:
        data["quality"] = result.quality
    if not result.success:
        code = ErrorCode(result.error_code or ErrorCode.PROCESSING_ERROR.value)
        record = error_record(code)
        data["errorCode"] = code.value
        data["error"] = record.user_message
        data["retryable"] = record.retryable
    return data


def serialize_batch(outcome: BatchOutcome) -> dict:
    record = outcome.record
    data = record.model_dump(exclude={"products", "extra_metadata"})
    data["products"] = [p.model_dump() for p in record.products]
    data["receipt_metadata"] = record.extra_metadata

    return {
        "success": True,
        "data": data,
        "confidence": {"overall": outcome.confidence.overall, **outcome.confidence.per_step},
        "validations": [
            {"check": v.name, "passed": v.passed, "message": v.message, "severity": v.severity}
            for v in outcome.validations
        ],
        "warnings": outcome.warnings,
        "individualResults": [serialize_result(r) for r in outcome.results],
    }
