from app.vision.types import AggregatedRecord, ExtractionResult, ValidationCheck

DEFAULT_TANK_CAPACITY_GALLONS = 15.0
GAUGE_TOLERANCE_GALLONS = 5.0
MIN_PRICE_PER_GALLON = 1.50
MAX_PRICE_PER_GALLON = 10.00
CONFIDENCE_FLOOR = 0.7


def check_gallons_match_gauge(record: AggregatedRecord, tank_capacity: float) -> ValidationCheck | None:
    if record.gallons is None or record.fuel_level is None:
        return None
    expected = (record.fuel_level / 100) * tank_capacity
    diff = abs(record.gallons - expected)
    passed = diff < GAUGE_TOLERANCE_GALLONS
    return ValidationCheck(
        name="gallons_matches_gauge",
        passed=passed,
        message=(
            f"Gallons ({record.gallons:g}) matches gauge reading ({record.fuel_level:g}%)"
            if passed
            else f"Gallons ({record.gallons:g}) doesn't match gauge ({record.fuel_level:g}%). Difference: {diff:.1f}gal"
        ),
        severity="info" if passed else "warning",
    )


def check_price_per_gallon(record: AggregatedRecord) -> ValidationCheck | None:
    if record.price_per_gallon is None:
        return None
    price = record.price_per_gallon
    passed = MIN_PRICE_PER_GALLON <= price < MAX_PRICE_PER_GALLON
    return ValidationCheck(
        name="price_per_gallon_reasonable",
        passed=passed,
        message=(
            f"Price per gallon (${price:.2f}) is within normal range"
            if passed
            else f"Price per gallon (${price:.2f}) seems unusual"
        ),
        severity="info" if passed else "warning",
    )


def check_confidence(results: list[ExtractionResult]) -> ValidationCheck | None:
    confidences = [r.confidence for r in results if r.success]
    if not confidences:
        return None
    average = sum(confidences) / len(confidences)
    passed = average > CONFIDENCE_FLOOR
    return ValidationCheck(
        name="confidence_score",
        passed=passed,
        message=(
            f"Overall OCR confidence is good ({round(average * 100)}%)"
            if passed
            else f"Low OCR confidence ({round(average * 100)}%). Please verify extracted data."
        ),
        severity="info" if passed else "warning",
    )


def cross_validate(
    record: AggregatedRecord,
    results: list[ExtractionResult],
    tank_capacity: float = DEFAULT_TANK_CAPACITY_GALLONS,
) -> list[ValidationCheck]:
    """Run the consistency checks in a fixed order; skipped checks are omitted."""
    checks = [
        check_gallons_match_gauge(record, tank_capacity),
        check_price_per_gallon(record),
        check_confidence(results),
    ]
    return [check for check in checks if check is not None]
