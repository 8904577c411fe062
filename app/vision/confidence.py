from app.vision.types import STEP_IDS, ConfidenceReport, ExtractionResult, ValidationCheck

VALIDATION_PENALTY = 0.10


def score(results: list[ExtractionResult], validations: list[ValidationCheck]) -> ConfidenceReport:
    per_step: dict[str, int] = {}
    for step_id in STEP_IDS:
        confidences = [r.confidence for r in results if r.step_id == step_id and r.success]
        # several photos of one step (e.g. additives) share the average
        per_step[step_id] = round(sum(confidences) / len(confidences) * 100) if confidences else 0

    successful = [r.confidence for r in results if r.success]
    if not successful:
        return ConfidenceReport(overall=0.0, per_step=per_step)

    average = sum(successful) / len(successful)
    failed = sum(1 for v in validations if not v.passed and v.severity != "info")
    overall = max(0.0, min(1.0, average - failed * VALIDATION_PENALTY))
    return ConfidenceReport(overall=round(overall, 4), per_step=per_step)
