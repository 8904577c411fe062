import os

from app.vision.base import VisionExtractor
from app.vision.openai_provider import OpenAIVisionExtractor


def get_vision_extractor() -> VisionExtractor:
    """Return the configured extraction service provider."""
    provider = os.getenv("VISION_PROVIDER", "openai")
    if provider == "openai":
        return OpenAIVisionExtractor()
    raise ValueError(f"Unknown vision provider: {provider}")
