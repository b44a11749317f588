from datetime import datetime
from typing import Optional, Union
from pydantic import BaseModel, Field, ConfigDict
from enum import Enum

PLACEHOLDER_VALUE = 0.0


class ReadingStatus(str, Enum):
    SUCCESS = "success"
    NEEDS_MANUAL_INPUT = "needsManualInput"
    TIMEOUT = "timeout"
    CORRECTED = "corrected"


class MeterReading(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    user_id: str
    building_id: str
    room_id: str
    image_url: str
    meter_value: float
    status: Optional[ReadingStatus] = None
    created_at: Optional[datetime] = None
    corrected_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, doc: dict) -> "MeterReading":
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return cls(**data)


class CorrectionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(alias="imageUrl")
    # the web client sends the raw text box content
    manual_value: Union[float, str] = Field(alias="manualValue")
