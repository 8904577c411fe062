import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

logger = logging.getLogger("vision")


def _env_number(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}; using {default}")
        return default


class PipelineSettings(BaseModel):
    document_model: str = "gpt-4o"
    ocr_model: str = "gpt-4o-mini"
    max_image_bytes: int = 10 * 1024 * 1024  # 10 MB
    max_concurrency: int = 4
    photo_timeout_s: float = 30.0
    tank_capacity_gallons: float = 15.0  # heuristic, not vehicle-specific
    usage_retention: int = 1000

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        defaults = cls()
        return cls(
            document_model=os.getenv("VISION_DOCUMENT_MODEL", defaults.document_model),
            ocr_model=os.getenv("VISION_OCR_MODEL", defaults.ocr_model),
            max_image_bytes=int(_env_number("VISION_MAX_IMAGE_BYTES", defaults.max_image_bytes)),
            max_concurrency=max(1, int(_env_number("VISION_MAX_CONCURRENCY", defaults.max_concurrency))),
            photo_timeout_s=_env_number("VISION_PHOTO_TIMEOUT_S", defaults.photo_timeout_s),
            tank_capacity_gallons=_env_number("VISION_TANK_CAPACITY_GALLONS", defaults.tank_capacity_gallons),
            usage_retention=max(1, int(_env_number("USAGE_RETENTION", defaults.usage_retention))),
        )


settings = PipelineSettings.from_env()
