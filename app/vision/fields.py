"""Synonym tables mapping raw extraction keys to canonical field names.

Each table is ordered: the first synonym present with a usable value wins.
The canonical name is always listed first so that already-normalized data
maps onto itself.
"""
import re
from typing import Any, Iterable

NOT_FOUND = "NOT_FOUND"

# Phrases models return instead of leaving a field empty
ABSENT_PHRASES = (
    "not visible", "not found", "unclear", "unknown", "n/a", "null",
    "cannot determine", "not specified", "not available", "not shown",
)

RECEIPT_FIELDS: list[tuple[str, tuple[str, ...]]] = [
    ("gallons", ("gallons", "volume")),
    ("total_amount", ("total_amount", "price_total", "total")),
    ("price_per_gallon", ("price_per_gallon", "unit_price", "ppg")),
    ("station_name", ("station_name", "station", "vendor", "vendor_name")),
    ("date", ("date", "transaction_date")),
    ("fuel_grade", ("fuel_grade", "grade", "fuel_type", "octane")),
    ("transaction_time", ("transaction_time", "time")),
    ("station_address", ("station_address", "address", "location")),
    ("pump_number", ("pump_number", "pump")),
    ("payment_method", ("payment_method", "payment", "card")),
    ("transaction_id", ("transaction_id", "tran_number", "tran_id")),
    ("auth_code", ("auth_code", "auth", "authorization")),
    ("invoice_number", ("invoice_number", "invoice", "receipt_number")),
]

RECEIPT_NUMERIC = frozenset({"gallons", "total_amount", "price_per_gallon"})

RECEIPT_METADATA_FIELDS: list[tuple[str, tuple[str, ...]]] = [
    ("site_id", ("site_id", "site")),
    ("trace_id", ("trace_id", "trace")),
    ("merchant_id", ("merchant_id", "merchant")),
    ("entry_method", ("entry_method",)),
    ("card_last_four", ("card_last_four",)),
    ("aid", ("aid",)),
    ("tvr", ("tvr",)),
    ("iad", ("iad",)),
    ("tsi", ("tsi",)),
    ("arc", ("arc",)),
]

ODOMETER_SYNONYMS = ("miles", "odometer_reading", "odometer_miles", "mileage", "reading")

GAUGE_SYNONYMS = ("fuel_level", "percentage", "level")

PRODUCT_FIELDS: list[tuple[str, tuple[str, ...]]] = [
    ("brand", ("brand", "manufacturer")),
    ("product_name", ("product_name", "name", "title")),
    ("type", ("type", "product_type", "category")),
    ("size", ("size", "volume", "quantity")),
    ("purpose", ("purpose", "description")),
]

PRODUCT_LIST_SYNONYMS = ("products", "items")

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")


def is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        text = value.strip()
        if not text or text.upper() == NOT_FOUND:
            return True
        lowered = text.lower()
        return any(phrase in lowered for phrase in ABSENT_PHRASES)
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def pick(data: dict[str, Any], synonyms: Iterable[str]) -> Any:
    """Return the value of the first synonym present in data, or None."""
    for key in synonyms:
        value = data.get(key)
        if not is_absent(value):
            return value
    return None


def to_number(value: Any) -> float | None:
    """Coerce "$1,234.50"-style values to float; None when not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None
    match = _NUMBER_RE.search(value.replace(",", ""))
    if not match:
        return None
    return float(match.group())


def to_text(value: Any) -> str | None:
    if is_absent(value):
        return None
    return str(value).strip()


def to_positive_number(value: Any) -> float | None:
    """Like ``to_number`` but zero and negative amounts count as absent."""
    number = to_number(value)
    if number is None or number <= 0:
        return None
    return number
