import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("USAGE_STORE", "memory")

import pytest

from app.config import PipelineSettings
from app.usage.memory import MemoryUsageStore
from app.vision.types import DocumentType, ExtractionReply, ExtractionRequest, PhotoInput


def reply(text: str, confidence: float | None = None, model: str = "gpt-4o") -> ExtractionReply:
    return ExtractionReply(text=text, confidence=confidence, model=model, input_tokens=1000, output_tokens=200)


class FakeExtractor:
    """Stands in for the extraction service.

    ``responses`` maps a document type (or a photo's image bytes) to a reply,
    an exception to raise, or a number of seconds to hang for.
    """

    def __init__(self, responses: dict | None = None):
        self.responses = responses or {}
        self.calls: list[ExtractionRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract(self, request: ExtractionRequest) -> ExtractionReply:
        self.calls.append(request)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            response = self.responses.get(request.image_bytes, self.responses.get(request.document_type))
            await asyncio.sleep(0.01)
            if isinstance(response, (int, float)):
                await asyncio.sleep(response)
                return reply("NOT_FOUND")
            if isinstance(response, BaseException):
                raise response
            if response is None:
                return reply("NOT_FOUND")
            return response
        finally:
            self.in_flight -= 1


class FakeFetcher:
    """Serves photo URLs from memory; the URL bytes double as the photo content."""

    def __init__(self, missing: set[str] | None = None):
        self.missing = missing or set()

    async def fetch(self, url: str) -> tuple[bytes, str]:
        from app.vision.errors import ErrorCode, PipelineError

        if url in self.missing:
            raise PipelineError(ErrorCode.NO_FILE, url)
        return url.encode(), "image/jpeg"


def photo(step_id: str, url: str | None = None) -> PhotoInput:
    return PhotoInput(step_id=step_id, source_location=url or f"https://storage.test/{step_id}.jpg")


FUEL_RECEIPT = reply(
    '```json\n{"station_name": "Shell", "total_amount": 45.67, "gallons": 12.5, '
    '"date": "2026-10-01", "fuel_grade": "Regular", "tran_number": "000123", "auth": "A1B2"}\n```',
    confidence=0.9,
)
ODOMETER = reply("52,205", confidence=0.9, model="gpt-4o-mini")
GAUGE = reply('{"fuel_level": {"type": "quarters", "value": "3/4"}}', confidence=0.9)
ADDITIVE = reply('{"brand": "STP", "product_name": "Octane Booster", "size": "12oz"}', confidence=0.9)


@pytest.fixture
def settings() -> PipelineSettings:
    return PipelineSettings(max_concurrency=2, photo_timeout_s=0.5, max_image_bytes=1024)


@pytest.fixture
def usage() -> MemoryUsageStore:
    return MemoryUsageStore(retention=50)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor({
        DocumentType.FUEL_RECEIPT: FUEL_RECEIPT,
        DocumentType.ODOMETER: ODOMETER,
        DocumentType.FUEL_GAUGE: GAUGE,
        DocumentType.PRODUCT_LABEL: ADDITIVE,
    })


class BrokenUsageStore:
    """Usage store whose backing database is unavailable."""

    def record(self, entry) -> None:
        raise RuntimeError("usage db down")

    def records(self) -> list:
        return []

    def counters(self) -> dict:
        return {}
