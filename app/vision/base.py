from typing import Protocol

from app.vision.types import ExtractionReply, ExtractionRequest


class VisionExtractor(Protocol):
    async def extract(self, request: ExtractionRequest) -> ExtractionReply: ...
