from collections import Counter, defaultdict

from app.vision.prompts import DEFAULT_MODES
from app.vision.types import DocumentType, ExtractionMode, UsageRecord

LOW_SUCCESS_RATE = 0.8
SLOW_PROCESSING_MS = 10_000
MIN_SAMPLES = 5  # don't recommend anything off a handful of calls


def _percentile(values: list[int], fraction: float) -> int:
    if not values:
        return 0
    ordered = sorted(values)
    index = min(len(ordered) - 1, int(len(ordered) * fraction))
    return ordered[index]


def _group(records: list[UsageRecord], key: str) -> dict[str, dict]:
    buckets: dict[str, list[UsageRecord]] = defaultdict(list)
    for record in records:
        buckets[getattr(record, key)].append(record)

    summary = {}
    for name, items in sorted(buckets.items()):
        successes = sum(1 for r in items if r.success)
        cost = sum(r.cost for r in items)
        summary[name] = {
            "requests": len(items),
            "success_rate": round(successes / len(items), 3),
            "total_cost": round(cost, 6),
            "avg_cost": round(cost / len(items), 6),
            "avg_processing_time_ms": round(sum(r.processing_time_ms for r in items) / len(items)),
        }
    return summary


def _is_ocr_document(document_type: str) -> bool:
    try:
        return DEFAULT_MODES[DocumentType(document_type)] == ExtractionMode.OCR
    except (ValueError, KeyError):
        return False


def recommendations(records: list[UsageRecord]) -> list[str]:
    tips: list[str] = []
    by_type = _group(records, "document_type")
    for document_type, stats in by_type.items():
        if stats["requests"] >= MIN_SAMPLES and stats["success_rate"] < LOW_SUCCESS_RATE:
            tips.append(
                f"{document_type}: success rate is {round(stats['success_rate'] * 100)}%. "
                "Review the prompt or ask users for clearer photos."
            )

    expensive_ocr = Counter(
        r.document_type for r in records if r.model == "gpt-4o" and _is_ocr_document(r.document_type)
    )
    for document_type, count in sorted(expensive_ocr.items()):
        tips.append(
            f"{document_type}: {count} call(s) used gpt-4o for a plain text read. "
            "gpt-4o-mini is usually enough and costs far less."
        )

    times = [r.processing_time_ms for r in records]
    if len(times) >= MIN_SAMPLES and sum(times) / len(times) > SLOW_PROCESSING_MS:
        tips.append("Average processing time is above 10s. Consider compressing photos before upload.")
    return tips


def summarize(records: list[UsageRecord]) -> dict:
    """Read-only analytics over the retained usage records."""
    total = len(records)
    successes = sum(1 for r in records if r.success)
    cost = sum(r.cost for r in records)
    times = [r.processing_time_ms for r in records]
    return {
        "total_requests": total,
        "success_rate": round(successes / total, 3) if total else 0.0,
        "total_cost": round(cost, 6),
        "avg_cost": round(cost / total, 6) if total else 0.0,
        "total_tokens": sum(r.tokens for r in records),
        "avg_processing_time_ms": round(sum(times) / total) if total else 0,
        "p95_processing_time_ms": _percentile(times, 0.95),
        "error_counts": dict(Counter(r.error_code for r in records if r.error_code)),
        "by_model": _group(records, "model"),
        "by_document_type": _group(records, "document_type"),
        "recommendations": recommendations(records),
    }
