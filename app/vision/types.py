from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

StepId = Literal["receipt", "odometer", "gauge", "additive"]
Severity = Literal["info", "warning", "error"]

STEP_IDS: tuple[str, ...] = ("receipt", "odometer", "gauge", "additive")


class DocumentType(str, Enum):
    VIN = "vin"
    LICENSE_PLATE = "license_plate"
    ODOMETER = "odometer"
    FUEL_RECEIPT = "fuel_receipt"
    SERVICE_INVOICE = "service_invoice"
    FUEL_GAUGE = "fuel_gauge"
    PRODUCT_LABEL = "product_label"


class ExtractionMode(str, Enum):
    OCR = "ocr"  # free-text answer
    DOCUMENT = "document"  # structured JSON answer


class EventType(str, Enum):
    FUEL = "fuel"
    SERVICE = "service"


class PhotoInput(BaseModel):
    step_id: str  # one of STEP_IDS inside a batch
    source_location: str | None = None
    image_bytes: bytes | None = None  # inline upload; skips fetching
    mime_type: str | None = None

    model_config = {"frozen": True}


class ExtractionRequest(BaseModel):
    image_bytes: bytes
    mime_type: str = "image/jpeg"
    document_type: DocumentType
    mode: ExtractionMode
    context: str | None = None


class ExtractionReply(BaseModel):
    """What the extraction service hands back for one image."""

    text: str
    confidence: float | None = None  # raw, as reported by the service
    model: str = "unknown"
    input_tokens: int = 0
    output_tokens: int = 0


class ExtractionResult(BaseModel):
    step_id: str
    document_type: DocumentType | None = None
    fields: dict[str, Any] = Field(default_factory=dict)
    confidence: float = 0.0
    success: bool = False
    error_code: str | None = None
    quality: str | None = None  # "good" / "fair" for format-matched types
    processing_time_ms: int = 0


class ProductInfo(BaseModel):
    brand: str | None = None
    product_name: str | None = None
    type: str | None = None
    size: str | None = None
    purpose: str | None = None

    def dedup_key(self) -> str:
        return f"{self.brand}|{self.product_name}|{self.size}".lower()


class AggregatedRecord(BaseModel):
    total_amount: float | None = None
    gallons: float | None = None
    price_per_gallon: float | None = None
    station_name: str | None = None
    date: str | None = None
    miles: int | None = None
    fuel_level: float | None = None
    fuel_grade: str | None = None
    products: list[ProductInfo] = Field(default_factory=list)
    # Extended receipt data
    transaction_time: str | None = None
    station_address: str | None = None
    pump_number: str | None = None
    payment_method: str | None = None
    transaction_id: str | None = None
    auth_code: str | None = None
    invoice_number: str | None = None
    extra_metadata: dict[str, Any] = Field(default_factory=dict)


class ValidationCheck(BaseModel):
    name: str
    passed: bool
    message: str
    severity: Severity

    model_config = {"frozen": True}


class ConfidenceReport(BaseModel):
    overall: float = 0.0
    per_step: dict[str, int] = Field(default_factory=dict)  # stepId -> percentage


class BatchOutcome(BaseModel):
    record: AggregatedRecord
    confidence: ConfidenceReport
    validations: list[ValidationCheck]
    warnings: list[str]
    results: list[ExtractionResult]


class UsageRecord(BaseModel):
    document_type: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    tokens: int = 0
    cost: float = 0.0
    processing_time_ms: int = 0
    success: bool
    attempt: int = 1
    error_code: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
