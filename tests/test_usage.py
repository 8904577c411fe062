from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.orm import sessionmaker

from app.database import Base, make_engine
from app.usage.analytics import recommendations, summarize
from app.usage.base import build_usage_record, estimate_cost
from app.usage.memory import MemoryUsageStore
from app.usage.sql import SqlUsageStore


def _entry(document_type="fuel_receipt", model="gpt-4o", success=True, ms=1200, error_code=None):
    return build_usage_record(
        document_type=document_type,
        model=model,
        input_tokens=1000,
        output_tokens=200,
        processing_time_ms=ms,
        success=success,
        error_code=error_code,
    )


@pytest.fixture
def sql_store():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield SqlUsageStore(sessionmaker(bind=engine), retention=3)
    engine.dispose()


def test_cost_uses_model_pricing():
    assert estimate_cost("gpt-4o", 1000, 200) == pytest.approx(0.0045)
    assert estimate_cost("gpt-4o-mini", 1000, 200) == pytest.approx(0.00027)
    assert estimate_cost("some-local-model", 1000, 200) == 0.0


def test_memory_store_evicts_oldest():
    store = MemoryUsageStore(retention=3)
    for ms in (100, 200, 300, 400, 500):
        store.record(_entry(ms=ms))

    assert [r.processing_time_ms for r in store.records()] == [300, 400, 500]
    # counters outlive eviction
    assert store.counters()["requests"] == 5


def test_memory_store_counters():
    store = MemoryUsageStore()
    store.record(_entry())
    store.record(_entry(success=False, error_code="PARSE_FAILED"))

    counters = store.counters()
    assert counters["successes"] == 1
    assert counters["failures"] == 1
    assert counters["tokens"] == 2400
    assert counters["cost"] == pytest.approx(0.009)


def test_sql_store_round_trip_and_eviction(sql_store):
    for ms in (100, 200, 300, 400):
        sql_store.record(_entry(ms=ms, success=ms != 200))

    records = sql_store.records()
    assert [r.processing_time_ms for r in records] == [200, 300, 400]
    assert records[0].success is False

    counters = sql_store.counters()
    assert counters["requests"] == 3
    assert counters["successes"] == 2
    assert counters["failures"] == 1
    assert counters["tokens"] == 3600


def test_summary_over_empty_log():
    summary = summarize([])
    assert summary["total_requests"] == 0
    assert summary["success_rate"] == 0.0
    assert summary["p95_processing_time_ms"] == 0
    assert summary["recommendations"] == []


def test_summary_groups_and_percentiles():
    records = [_entry(ms=ms) for ms in range(100, 2100, 100)]  # 20 records
    records.append(_entry(document_type="odometer", model="gpt-4o-mini", success=False, error_code="PARSE_FAILED", ms=50))

    summary = summarize(records)
    assert summary["total_requests"] == 21
    assert summary["success_rate"] == pytest.approx(0.952)
    assert summary["total_tokens"] == 21 * 1200
    assert summary["p95_processing_time_ms"] == 1900
    assert summary["error_counts"] == {"PARSE_FAILED": 1}
    assert set(summary["by_model"]) == {"gpt-4o", "gpt-4o-mini"}
    assert summary["by_document_type"]["odometer"]["success_rate"] == 0.0


def test_recommends_prompt_review_for_failing_document_type():
    records = [_entry(document_type="fuel_receipt", success=i < 2) for i in range(6)]
    tips = recommendations(records)
    assert any(tip.startswith("fuel_receipt: success rate is 33%") for tip in tips)


def test_no_success_rate_tip_for_small_samples():
    records = [_entry(success=False) for _ in range(4)]
    assert recommendations(records) == []


def test_recommends_cheaper_model_for_text_reads():
    tips = recommendations([_entry(document_type="vin", model="gpt-4o")])
    assert tips == [
        "vin: 1 call(s) used gpt-4o for a plain text read. gpt-4o-mini is usually enough and costs far less."
    ]


def test_recommends_compression_when_slow():
    tips = recommendations([_entry(ms=15_000) for _ in range(5)])
    assert tips == ["Average processing time is above 10s. Consider compressing photos before upload."]


def test_memory_store_counters_are_exact_under_threads():
    store = MemoryUsageStore(retention=100)

    def worker():
        for _ in range(250):
            store.record(_entry())

    with ThreadPoolExecutor(max_workers=8) as pool:
        for future in [pool.submit(worker) for _ in range(8)]:
            future.result()

    counters = store.counters()
    assert counters["requests"] == 2000
    assert counters["successes"] == 2000
    assert counters["tokens"] == 2000 * 1200
    assert len(store.records()) == 100
