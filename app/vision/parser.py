"""Turn one extraction service reply into typed, confidence-scored fields.

Extraction output has no guaranteed schema: answers may be bare text, JSON,
or JSON wrapped in markdown fences. Every parse function here is defensive
and reports failure as a value (``ParsedFields.success``) instead of raising.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any

from app.vision.errors import ErrorCode
from app.vision.fields import (
    GAUGE_SYNONYMS,
    NOT_FOUND,
    ODOMETER_SYNONYMS,
    PRODUCT_FIELDS,
    PRODUCT_LIST_SYNONYMS,
    RECEIPT_FIELDS,
    RECEIPT_METADATA_FIELDS,
    RECEIPT_NUMERIC,
    is_absent,
    pick,
    to_number,
    to_positive_number,
    to_text,
)
from app.vision.prompts import PLATE_DELIMITER
from app.vision.types import DocumentType, ExtractionReply

BASELINE_CONFIDENCE = 0.85
MAX_CONFIDENCE = 0.99
VIN_EXACT_CONFIDENCE = 0.95
VIN_NEAR_CONFIDENCE = 0.6
UNKNOWN_STATE = "UNKNOWN"
KM_PER_MILE = 1.609

# 0-9, A-H, J-N, P, R-Z: I, O and Q are never used in a VIN
VIN_EXACT_RE = re.compile(r"[A-HJ-NPR-Z0-9]{17}")
VIN_NEAR_RE = re.compile(r"[A-HJ-NPR-Z0-9]{15,19}")
_ODOMETER_RE = re.compile(r"\d{1,3}(?:[,.\s]\d{3})+(?!\d)|\d+")
_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

_QUARTER_MARKS = {"E": 0.0, "1/4": 25.0, "1/2": 50.0, "3/4": 75.0, "F": 100.0}


@dataclass
class ParsedFields:
    fields: dict[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    success: bool = True
    error_code: ErrorCode | None = None
    quality: str | None = None


def clamp_confidence(value: float) -> float:
    return max(0.0, min(MAX_CONFIDENCE, value))


def _failure() -> ParsedFields:
    return ParsedFields(success=False, error_code=ErrorCode.PARSE_FAILED)


def extract_json(text: str) -> Any:
    """Return the first JSON object/array in text, or None."""
    if not text:
        return None
    cleaned = _FENCE_RE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        pass
    for open_char, close_char in (("{", "}"), ("[", "]")):
        start = cleaned.find(open_char)
        end = cleaned.rfind(close_char)
        if start == -1 or end <= start:
            continue
        try:
            return json.loads(cleaned[start : end + 1])
        except ValueError:
            continue
    return None


def _reported_confidence(reply: ExtractionReply, data: Any = None) -> float:
    if reply.confidence is not None:
        return clamp_confidence(reply.confidence)
    if isinstance(data, dict):
        value = to_number(data.get("confidence"))
        if value is not None:
            # some models answer in percent
            return clamp_confidence(value / 100 if value > 1 else value)
    return BASELINE_CONFIDENCE


# --- VIN ---

def _vin_candidates(text: str) -> list[str]:
    upper = text.upper()
    # tokens first so labels like "VIN:" don't get glued onto the number
    tokens = [t.replace("-", "") for t in re.split(r"[^A-Z0-9\-]+", upper) if t]
    compact = re.sub(r"[\s\-]", "", upper)
    joined = [t for t in re.split(r"[^A-Z0-9]+", compact) if t]
    return tokens + [t for t in joined if t not in tokens]


def parse_vin(reply: ExtractionReply) -> ParsedFields:
    text = (reply.text or "").strip()
    if not text or text.upper() == NOT_FOUND:
        return _failure()

    candidates = _vin_candidates(text)
    for candidate in candidates:
        if VIN_EXACT_RE.fullmatch(candidate):
            return ParsedFields(
                fields={"vin": candidate, "quality": "good"},
                confidence=VIN_EXACT_CONFIDENCE,
                quality="good",
            )
    for candidate in candidates:
        if VIN_NEAR_RE.fullmatch(candidate):
            vin = candidate[:17].ljust(17, "0")
            return ParsedFields(
                fields={"vin": vin, "quality": "fair"},
                confidence=VIN_NEAR_CONFIDENCE,
                quality="fair",
            )
    return _failure()


# --- License plate ---

def parse_license_plate(reply: ExtractionReply) -> ParsedFields:
    text = (reply.text or "").strip()
    if not text or text.upper() == NOT_FOUND:
        return _failure()

    data = extract_json(text)
    if isinstance(data, dict):
        plate = to_text(pick(data, ("plate", "license_plate", "plate_number")))
        state = to_text(pick(data, ("state", "region")))
    else:
        plate_part, _, state_part = text.partition(PLATE_DELIMITER)
        plate = to_text(plate_part)
        state = to_text(state_part)

    if not plate:
        return _failure()
    plate = re.sub(r"\s+", "", plate).upper()
    return ParsedFields(
        fields={"plate": plate, "state": state.upper() if state else UNKNOWN_STATE},
        confidence=_reported_confidence(reply, data),
    )


# --- Odometer ---

def _miles_from_value(value: Any) -> int | None:
    if isinstance(value, dict):
        raw = to_number(value.get("value"))
        if raw is None:
            return None
        if str(value.get("unit", "mi")).lower() == "km":
            raw = raw / KM_PER_MILE
        return int(round(raw))
    if isinstance(value, str):
        match = _ODOMETER_RE.search(value)
        if not match:
            return None
        return int(re.sub(r"[,.\s]", "", match.group()))
    number = to_number(value)
    return int(number) if number is not None else None


def parse_odometer(reply: ExtractionReply) -> ParsedFields:
    text = (reply.text or "").strip()
    if not text or text.upper() == NOT_FOUND:
        return _failure()

    data = extract_json(text)
    if isinstance(data, dict):
        value = pick(data, ODOMETER_SYNONYMS + ("odometer_raw",))
        miles = _miles_from_value(value)
    else:
        miles = _miles_from_value(text)

    if miles is None:
        return _failure()
    return ParsedFields(fields={"miles": miles}, confidence=_reported_confidence(reply, data))


# --- Gauge ---

def normalize_fuel_level(value: Any) -> float | None:
    """Express any gauge reading as a 0-100 percentage."""
    if isinstance(value, dict):
        scale = str(value.get("type", "percent")).lower()
        inner = value.get("value")
        if scale in ("quarters", "eighths") and isinstance(inner, (int, float)) and not isinstance(inner, bool):
            parts = 4 if scale == "quarters" else 8
            return max(0.0, min(100.0, inner / parts * 100))
        return normalize_fuel_level(inner)
    if isinstance(value, str):
        text = value.strip().upper()
        if text in _QUARTER_MARKS:
            return _QUARTER_MARKS[text]
        fraction = re.fullmatch(r"(\d+)\s*/\s*(\d+)", text)
        if fraction and int(fraction.group(2)) > 0:
            return min(100.0, int(fraction.group(1)) / int(fraction.group(2)) * 100)
    number = to_number(value)
    if number is None:
        return None
    if 0 < number <= 1 and not (isinstance(value, str) and "%" in value):
        number *= 100
    return max(0.0, min(100.0, number))


def parse_gauge(reply: ExtractionReply) -> ParsedFields:
    data = extract_json(reply.text or "")
    if isinstance(data, dict):
        level = normalize_fuel_level(pick(data, GAUGE_SYNONYMS))
    else:
        level = normalize_fuel_level(reply.text)
    if level is None:
        return _failure()
    return ParsedFields(
        fields={"fuel_level": round(level, 1)},
        confidence=_reported_confidence(reply, data),
    )


# --- Receipts / invoices ---

def normalize_receipt(data: dict[str, Any]) -> dict[str, Any]:
    """Map a raw receipt/invoice answer onto canonical field names.

    Idempotent: already-canonical data maps onto itself.
    """
    fields: dict[str, Any] = {}
    for canonical, synonyms in RECEIPT_FIELDS:
        value = pick(data, synonyms)
        if canonical in RECEIPT_NUMERIC:
            value = to_positive_number(value)
        else:
            value = to_text(value)
        if value is not None:
            fields[canonical] = value
    for canonical, synonyms in RECEIPT_METADATA_FIELDS:
        value = to_text(pick(data, synonyms))
        if value is not None:
            fields[canonical] = value
    # invoice-only details
    description = to_text(data.get("service_description"))
    if description is not None:
        fields["service_description"] = description
    miles = _miles_from_value(data.get("odometer_reading"))
    if miles is not None and miles > 0:
        fields["odometer_reading"] = miles
    return fields


def parse_receipt(reply: ExtractionReply) -> ParsedFields:
    data = extract_json(reply.text or "")
    if not isinstance(data, dict):
        return _failure()
    fields = normalize_receipt(data)
    if not fields:
        return _failure()
    return ParsedFields(fields=fields, confidence=_reported_confidence(reply, data))


# --- Product labels ---

def normalize_product(data: dict[str, Any]) -> dict[str, Any]:
    return {canonical: to_text(pick(data, synonyms)) for canonical, synonyms in PRODUCT_FIELDS}


def product_entries(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Accept both the single-product and the product-list shapes."""
    if not is_absent(data.get("brand")) or not is_absent(data.get("product_name")):
        return [normalize_product(data)]
    items = pick(data, PRODUCT_LIST_SYNONYMS)
    if not isinstance(items, list):
        return []
    return [normalize_product(item) for item in items if isinstance(item, dict)]


def parse_product_label(reply: ExtractionReply) -> ParsedFields:
    data = extract_json(reply.text or "")
    if isinstance(data, list):
        data = {"products": data}
    if not isinstance(data, dict):
        return _failure()
    products = product_entries(data)
    if not products:
        return _failure()
    return ParsedFields(fields={"products": products}, confidence=_reported_confidence(reply, data))


PARSERS = {
    DocumentType.VIN: parse_vin,
    DocumentType.LICENSE_PLATE: parse_license_plate,
    DocumentType.ODOMETER: parse_odometer,
    DocumentType.FUEL_RECEIPT: parse_receipt,
    DocumentType.SERVICE_INVOICE: parse_receipt,
    DocumentType.FUEL_GAUGE: parse_gauge,
    DocumentType.PRODUCT_LABEL: parse_product_label,
}


def parse_reply(document_type: DocumentType, reply: ExtractionReply) -> ParsedFields:
    parsed = PARSERS[document_type](reply)
    parsed.confidence = clamp_confidence(parsed.confidence) if parsed.success else 0.0
    return parsed
