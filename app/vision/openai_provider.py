import base64

from agents import Agent, Runner

from app.config import settings
from app.vision.prompts import build_prompt
from app.vision.types import DocumentType, ExtractionMode, ExtractionReply, ExtractionRequest

INSTRUCTIONS = """\
You read photos of vehicle-related documents: fuel receipts, service invoices,
odometer displays, fuel gauges, VIN plates, license plates and product labels.

Rules:
- Only report what is clearly visible; never guess
- Follow the output format requested in the user message exactly
- Do NOT wrap JSON answers in explanations"""


def _model_for(mode: ExtractionMode) -> str:
    # cheaper model for plain text reads
    return settings.ocr_model if mode == ExtractionMode.OCR else settings.document_model


_agents: dict[tuple[DocumentType, str], Agent] = {}


def _agent_for(document_type: DocumentType, model: str) -> Agent:
    key = (document_type, model)
    if key not in _agents:
        _agents[key] = Agent(
            name=f"Vision {document_type.value} reader",
            instructions=INSTRUCTIONS,
            model=model,
        )
    return _agents[key]


class OpenAIVisionExtractor:
    """Document extraction using OpenAI Agents SDK with GPT-4o vision."""

    async def extract(self, request: ExtractionRequest) -> ExtractionReply:
        b64_image = base64.b64encode(request.image_bytes).decode("utf-8")
        media_type = request.mime_type or "image/jpeg"
        model = _model_for(request.mode)

        result = await Runner.run(
            _agent_for(request.document_type, model),
            input=[
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": build_prompt(request.document_type, request.context)},
                        {"type": "input_image", "image_url": f"data:{media_type};base64,{b64_image}"},
                    ],
                }
            ],
        )

        usage = result.context_wrapper.usage
        return ExtractionReply(
            text=str(result.final_output or ""),
            model=model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
