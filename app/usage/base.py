from typing import Protocol

from app.vision.types import UsageRecord

# USD per 1M tokens: (input, output)
MODEL_PRICING: dict[str, tuple[float, float]] = {
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
}


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    input_price, output_price = MODEL_PRICING.get(model, (0.0, 0.0))
    return round((input_tokens * input_price + output_tokens * output_price) / 1_000_000, 6)


def build_usage_record(
    document_type: str,
    model: str,
    input_tokens: int,
    output_tokens: int,
    processing_time_ms: int,
    success: bool,
    attempt: int = 1,
    error_code: str | None = None,
) -> UsageRecord:
    return UsageRecord(
        document_type=document_type,
        model=model,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        tokens=input_tokens + output_tokens,
        cost=estimate_cost(model, input_tokens, output_tokens),
        processing_time_ms=processing_time_ms,
        success=success,
        attempt=attempt,
        error_code=error_code,
    )


class UsageStore(Protocol):
    """Append-only, bounded log of extraction attempts."""

    def record(self, entry: UsageRecord) -> None: ...

    def records(self) -> list[UsageRecord]: ...

    def counters(self) -> dict[str, float]: ...
