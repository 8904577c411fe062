from datetime import date

from app.vision.aggregator import aggregate, dedupe_products, detect_warnings
from app.vision.types import (
    AggregatedRecord,
    EventType,
    ExtractionResult,
    ProductInfo,
    ValidationCheck,
)


def _ok(step_id: str, fields: dict, confidence: float = 0.9) -> ExtractionResult:
    return ExtractionResult(step_id=step_id, fields=fields, confidence=confidence, success=True)


def _failed(step_id: str, code: str = "UPSTREAM_TIMEOUT") -> ExtractionResult:
    return ExtractionResult(step_id=step_id, success=False, error_code=code)


def test_price_per_gallon_is_derived_when_missing():
    record = aggregate([_ok("receipt", {"total_amount": 45.67, "gallons": 12.5})])
    assert record.price_per_gallon == 3.654


def test_extracted_price_per_gallon_is_kept():
    record = aggregate([_ok("receipt", {"total_amount": 45.67, "gallons": 12.5, "price_per_gallon": 3.599})])
    assert record.price_per_gallon == 3.599


def test_no_derivation_without_gallons():
    record = aggregate([_ok("receipt", {"total_amount": 45.67})])
    assert record.price_per_gallon is None


def test_first_successful_writer_wins():
    record = aggregate([
        _failed("odometer"),
        _ok("odometer", {"miles": 52205}),
        _ok("odometer", {"miles": 99999}),
    ])
    assert record.miles == 52205


def test_receipt_synonyms_and_metadata_are_applied():
    record = aggregate([_ok("receipt", {"station": "Costco", "volume": "9.1", "site_id": "77"})])
    assert record.station_name == "Costco"
    assert record.gallons == 9.1
    assert record.extra_metadata == {"site_id": "77"}


def test_gauge_fraction_is_stored_as_percentage():
    record = aggregate([_ok("gauge", {"fuel_level": "1/2"})])
    assert record.fuel_level == 50.0


def test_duplicate_products_collapse_case_insensitively():
    record = aggregate([
        _ok("additive", {"brand": "STP", "product_name": "Octane Booster", "size": "12oz"}),
        _ok("additive", {"brand": "stp", "product_name": "octane booster", "size": "12OZ"}),
        _ok("additive", {"products": [{"brand": "Lucas", "product_name": "Fuel Treatment"}]}),
    ])
    assert [p.brand for p in record.products] == ["STP", "Lucas"]


def test_dedupe_keeps_first_occurrence():
    products = [ProductInfo(brand="A", product_name="X"), ProductInfo(brand="a", product_name="x", purpose="later")]
    assert dedupe_products(products)[0].purpose is None


def test_date_defaults_to_today():
    record = aggregate([_ok("receipt", {"total_amount": 10})], today=date(2026, 10, 19))
    assert record.date == "2026-10-19"

    dated = aggregate([_ok("receipt", {"date": "2026-09-30"})], today=date(2026, 10, 19))
    assert dated.date == "2026-09-30"


def test_all_failures_still_produce_a_record():
    record = aggregate([_failed("receipt"), _failed("odometer")], today=date(2026, 10, 19))
    assert record.total_amount is None
    assert record.miles is None
    assert record.products == []
    assert record.date == "2026-10-19"


def test_warnings_list_missing_fields_then_failures_then_checks():
    record = AggregatedRecord(total_amount=30.0)
    results = [_ok("receipt", {"total_amount": 30.0}), _failed("odometer")]
    validations = [
        ValidationCheck(name="price_per_gallon_reasonable", passed=False, message="Price looks odd", severity="warning"),
        ValidationCheck(name="confidence_score", passed=True, message="fine", severity="info"),
    ]

    warnings = detect_warnings(record, results, validations)

    assert warnings == [
        "Missing gallons - please enter manually",
        "Missing odometer reading - please enter manually",
        "Could not read odometer photo: Reading the photo took too long.",
        "Price looks odd",
    ]


def test_service_events_do_not_require_gallons():
    record = AggregatedRecord(total_amount=120.0, miles=40000)
    assert detect_warnings(record, [], [], event_type=EventType.SERVICE) == []


def test_invoice_mileage_fills_in_without_odometer_photo():
    record = aggregate([_ok("receipt", {"total_amount": 120.0, "odometer_reading": "48,310 mi"})])
    assert record.miles == 48310
    assert detect_warnings(record, [], [], event_type=EventType.SERVICE) == []


def test_odometer_photo_beats_invoice_mileage():
    record = aggregate([
        _ok("receipt", {"total_amount": 120.0, "odometer_reading": 48000}),
        _ok("odometer", {"miles": 48310}),
    ])
    assert record.miles == 48310


def test_zero_gallons_counts_as_missing():
    record = aggregate([_ok("receipt", {"total_amount": 30.0, "gallons": 0})])
    assert record.gallons is None
    assert record.price_per_gallon is None
    assert "Missing gallons - please enter manually" in detect_warnings(record, [], [])
