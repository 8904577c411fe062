"""Fan-in of per-photo extraction results into one record."""
import logging
from datetime import date
from typing import Any

from app.vision.errors import ErrorCode, error_record
from app.vision.fields import GAUGE_SYNONYMS, ODOMETER_SYNONYMS, RECEIPT_METADATA_FIELDS, pick, to_number
from app.vision.parser import normalize_fuel_level, normalize_receipt, product_entries
from app.vision.types import (
    AggregatedRecord,
    EventType,
    ExtractionResult,
    ProductInfo,
    ValidationCheck,
)

logger = logging.getLogger("vision")

# record attribute -> label used in "Missing ..." warnings
CRITICAL_FIELDS: dict[EventType, list[tuple[str, str]]] = {
    EventType.FUEL: [
        ("total_amount", "total cost"),
        ("gallons", "gallons"),
        ("miles", "odometer reading"),
    ],
    EventType.SERVICE: [
        ("total_amount", "total cost"),
        ("miles", "odometer reading"),
    ],
}

_METADATA_KEYS = [canonical for canonical, _ in RECEIPT_METADATA_FIELDS]


def _set_if_unset(record: AggregatedRecord, name: str, value: Any) -> None:
    if value is not None and getattr(record, name) is None:
        setattr(record, name, value)


def _apply_receipt(record: AggregatedRecord, data: dict[str, Any]) -> dict[str, Any]:
    fields = normalize_receipt(data)
    for name, value in fields.items():
        if name in _METADATA_KEYS:
            record.extra_metadata.setdefault(name, value)
        elif name in AggregatedRecord.model_fields:
            _set_if_unset(record, name, value)
    return fields


def _apply_odometer(record: AggregatedRecord, data: dict[str, Any]) -> None:
    miles = to_number(pick(data, ODOMETER_SYNONYMS))
    if miles is not None:
        _set_if_unset(record, "miles", int(miles))


def _apply_gauge(record: AggregatedRecord, data: dict[str, Any]) -> None:
    level = normalize_fuel_level(pick(data, GAUGE_SYNONYMS))
    _set_if_unset(record, "fuel_level", level)


def dedupe_products(products: list[ProductInfo]) -> list[ProductInfo]:
    unique: dict[str, ProductInfo] = {}
    for product in products:
        key = product.dedup_key()
        if key in unique:
            logger.info(f"Duplicate product removed: {product.brand} {product.product_name}")
            continue
        unique[key] = product
    return list(unique.values())


def aggregate(results: list[ExtractionResult], today: date | None = None) -> AggregatedRecord:
    """Merge results in submission order; the first successful write wins.

    Mileage printed on an invoice only fills in when no odometer photo
    was read.
    """
    record = AggregatedRecord()
    invoice_miles: int | None = None

    for result in results:
        if not result.success or not result.fields:
            continue
        data = result.fields
        if result.step_id == "receipt":
            fields = _apply_receipt(record, data)
            if invoice_miles is None:
                invoice_miles = fields.get("odometer_reading")
        elif result.step_id == "odometer":
            _apply_odometer(record, data)
        elif result.step_id == "gauge":
            _apply_gauge(record, data)
        elif result.step_id == "additive":
            record.products.extend(ProductInfo(**entry) for entry in product_entries(data))

    _set_if_unset(record, "miles", invoice_miles)
    record.products = dedupe_products(record.products)

    if record.price_per_gallon is None and record.total_amount and record.gallons:
        record.price_per_gallon = round(record.total_amount / record.gallons, 3)

    if record.date is None:
        record.date = (today or date.today()).isoformat()

    return record


def detect_warnings(
    record: AggregatedRecord,
    results: list[ExtractionResult],
    validations: list[ValidationCheck],
    event_type: EventType = EventType.FUEL,
) -> list[str]:
    warnings: list[str] = []

    for name, label in CRITICAL_FIELDS[event_type]:
        if getattr(record, name) is None:
            warnings.append(f"Missing {label} - please enter manually")

    for result in results:
        if not result.success:
            code = ErrorCode(result.error_code or ErrorCode.PROCESSING_ERROR.value)
            message = error_record(code).user_message
            warnings.append(f"Could not read {result.step_id} photo: {message}")

    for check in validations:
        if not check.passed and check.severity == "warning":
            warnings.append(check.message)

    return warnings
