from pydantic import BaseModel, Field

from app.vision.types import StepId


# --- Batch ---

class PhotoIn(BaseModel):
    step_id: StepId = Field(alias="stepId")
    url: str

    model_config = {"populate_by_name": True}


class BatchVisionIn(BaseModel):
    event_type: str = "fuel"
    vehicle_id: str | None = None
    photos: list[PhotoIn] = []
