from app.vision.errors import ErrorCode, PipelineError
from app.vision.fields import NOT_FOUND
from app.vision.types import DocumentType, EventType, ExtractionMode

PLATE_DELIMITER = "|"

# Versioned prompts (keep changes explicit + centralized).
PROMPTS: dict[DocumentType, str] = {
    DocumentType.VIN: f"""\
Extract the 17-character VIN (Vehicle Identification Number) from this image.
VINs never contain the letters I, O or Q.
Return only the VIN. If no VIN is clearly readable, return {NOT_FOUND}.""",
    DocumentType.LICENSE_PLATE: f"""\
Extract the license plate number and the issuing state from this image.
Return exactly PLATE{PLATE_DELIMITER}STATE (e.g. 7ABC123{PLATE_DELIMITER}CA).
If the state is not visible, return only the plate.
If no plate is readable, return {NOT_FOUND}.""",
    DocumentType.ODOMETER: f"""\
Read the main odometer (total mileage) display in this image.
Trip meters ("Trip", "Trip A", "Trip B") are NOT the odometer.
Read every digit, including leading zeros. Return only the number.
If the odometer is not readable, return {NOT_FOUND}.""",
    DocumentType.FUEL_RECEIPT: """\
You are a fuel receipt parser. Return a JSON object with these fields:
{
  "station_name": string|null,
  "station_address": string|null,
  "total_amount": number|null,
  "gallons": number|null,
  "price_per_gallon": number|null,
  "fuel_grade": string|null,
  "date": "YYYY-MM-DD"|null,
  "transaction_time": "HH:MM"|null,
  "pump_number": string|null,
  "payment_method": string|null,
  "transaction_id": string|null,
  "auth_code": string|null,
  "invoice_number": string|null,
  "site_id": string|null,
  "trace_id": string|null,
  "merchant_id": string|null,
  "entry_method": string|null,
  "card_last_four": string|null,
  "confidence": number 0-1
}
Rules:
- Parse amounts as numbers (remove $ and commas)
- Convert dates from MM/DD/YYYY to YYYY-MM-DD
- Return null for fields not clearly visible""",
    DocumentType.SERVICE_INVOICE: """\
You are a vehicle service invoice parser. Return a JSON object with these fields:
{
  "vendor_name": string|null,
  "station_address": string|null,
  "total_amount": number|null,
  "date": "YYYY-MM-DD"|null,
  "invoice_number": string|null,
  "payment_method": string|null,
  "odometer_reading": number|null,
  "service_description": string|null,
  "confidence": number 0-1
}
Rules:
- Extract the shop name from the header or letterhead
- Parse amounts as numbers (remove $ and commas)
- Return null for fields not clearly visible""",
    DocumentType.FUEL_GAUGE: """\
Read the fuel gauge in this image and return JSON:
{
  "fuel_level": {"type": "percent"|"quarters"|"eighths", "value": number|string},
  "confidence": number 0-1
}
Rules:
- E is empty (0), F is completely full (100%) regardless of scale
- Count the gauge markings to decide between quarters and eighths
- Do not confuse the fuel gauge (E-F) with the temperature gauge (C-H)""",
    DocumentType.PRODUCT_LABEL: """\
Read the product label(s) in this image (fuel additives, oil, fluids).
For one product return:
{"brand": string, "product_name": string, "type": string|null, "size": string|null, "purpose": string|null}
For several products return {"products": [ ...same shape... ]}.
Only include what is clearly printed on the label.""",
}

DEFAULT_MODES: dict[DocumentType, ExtractionMode] = {
    DocumentType.VIN: ExtractionMode.OCR,
    DocumentType.LICENSE_PLATE: ExtractionMode.OCR,
    DocumentType.ODOMETER: ExtractionMode.OCR,
    DocumentType.FUEL_RECEIPT: ExtractionMode.DOCUMENT,
    DocumentType.SERVICE_INVOICE: ExtractionMode.DOCUMENT,
    DocumentType.FUEL_GAUGE: ExtractionMode.DOCUMENT,
    DocumentType.PRODUCT_LABEL: ExtractionMode.DOCUMENT,
}

STEP_DOCUMENT_TYPES: dict[EventType, dict[str, DocumentType]] = {
    EventType.FUEL: {
        "receipt": DocumentType.FUEL_RECEIPT,
        "odometer": DocumentType.ODOMETER,
        "gauge": DocumentType.FUEL_GAUGE,
        "additive": DocumentType.PRODUCT_LABEL,
    },
    EventType.SERVICE: {
        "receipt": DocumentType.SERVICE_INVOICE,
        "odometer": DocumentType.ODOMETER,
        "gauge": DocumentType.FUEL_GAUGE,
        "additive": DocumentType.PRODUCT_LABEL,
    },
}


def resolve_event_type(value: str) -> EventType:
    try:
        return EventType(value)
    except ValueError:
        raise PipelineError(ErrorCode.MODE_UNSUPPORTED, f"Unknown event type: {value}")


def resolve_document_type(value: str) -> DocumentType:
    try:
        return DocumentType(value)
    except ValueError:
        raise PipelineError(ErrorCode.MODE_UNSUPPORTED, f"Unknown document type: {value}")


def resolve_mode(document_type: DocumentType, mode: str | None = None) -> ExtractionMode:
    if not mode:
        return DEFAULT_MODES[document_type]
    try:
        return ExtractionMode(mode)
    except ValueError:
        raise PipelineError(ErrorCode.MODE_UNSUPPORTED, f"Unknown mode: {mode}")


def document_type_for_step(event_type: EventType, step_id: str) -> DocumentType:
    try:
        return STEP_DOCUMENT_TYPES[event_type][step_id]
    except KeyError:
        raise PipelineError(ErrorCode.MODE_UNSUPPORTED, f"No document type for step {step_id}")


def build_prompt(document_type: DocumentType, context: str | None = None) -> str:
    prompt = PROMPTS[document_type]
    if context:
        prompt = f"{prompt}\n\nContext: {context}"
    return prompt
