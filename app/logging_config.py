import json
import logging
import os
from datetime import datetime

SERVICE_NAME = "vehicle-vision"


class JSONFormatter(logging.Formatter):
    """One JSON object per line; ``extra_data`` keys are merged in at top level."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, dict):
            # never let call sites clobber the envelope
            log_entry.update({k: v for k, v in extra.items() if k not in log_entry})
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: str | None = None) -> logging.Logger:
    vision_logger = logging.getLogger("vision")
    if vision_logger.handlers:
        return vision_logger

    handler = logging.StreamHandler()
    if os.getenv("LOG_FORMAT", "json") == "text":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(JSONFormatter())
    vision_logger.addHandler(handler)
    vision_logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())

    # Quiet noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return vision_logger
