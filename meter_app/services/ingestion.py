"""
Meter photo ingestion: store -> recognize -> classify -> record.

The three external calls run strictly in that order. Only recognition has its
own deadline; once the image is stored, every outcome except a plain remote
failure ends in a committed row so the photo is never orphaned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from meter_app.core.exceptions import (
    IngestionValidationError,
    PersistenceError,
    RecognitionTransportFailure,
)
from meter_app.models.meter_reading import ReadingStatus
from meter_app.models.recognition import Recognized
from meter_app.services.image_store import ImageStore
from meter_app.services.outcome_classifier import classify
from meter_app.services.reading_recorder import ReadingRecorder
from meter_app.services.recognition_client import RecognitionClient

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "The image was saved but the reading could not be recorded."


@dataclass
class IngestionResult:
    image_url: str
    status: ReadingStatus
    value: float
    message: str
    raw_result: Optional[str] = None
    reading_id: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is ReadingStatus.SUCCESS

    @property
    def saved(self) -> bool:
        return self.reading_id is not None

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": self.success,
            "status": self.status.value,
            "imageUrl": self.image_url,
            "readingId": self.reading_id,
            "saved": self.saved,
        }
        if self.success:
            body["result"] = self.raw_result
            body["value"] = self.value
        if not self.success or not self.saved:
            body["message"] = self.message
        return body


class IngestionService:
    def __init__(
        self,
        store: ImageStore,
        recognizer: RecognitionClient,
        recorder: ReadingRecorder,
        enforce_location: bool = True,
    ):
        self.store = store
        self.recognizer = recognizer
        self.recorder = recorder
        self.enforce_location = enforce_location

    async def ingest(
        self,
        owner_id: str,
        building_id: Optional[str],
        room_id: Optional[str],
        image_bytes: Optional[bytes],
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> IngestionResult:
        if not image_bytes or not building_id or not room_id:
            raise IngestionValidationError("Missing required fields")

        if self.enforce_location:
            await self.recorder.verify_location(owner_id, building_id, room_id)

        # StorageWriteError propagates: nothing stored, nothing recorded
        image_url = await self.store.store(owner_id, image_bytes, filename, content_type)

        outcome = await self.recognizer.recognize(
            image_bytes,
            filename=filename or "meter.jpg",
            content_type=content_type or "application/octet-stream",
        )
        logger.info(f"Recognition outcome for {image_url}: {type(outcome).__name__}")

        try:
            decision = classify(outcome)
        except RecognitionTransportFailure as e:
            e.image_url = image_url
            raise

        result = IngestionResult(
            image_url=image_url,
            status=decision.status,
            value=decision.value,
            message=decision.message,
            raw_result=outcome.raw if isinstance(outcome, Recognized) else None,
        )

        try:
            result.reading_id = await self.recorder.record(
                owner_id, building_id, room_id, image_url, decision.value, decision.status
            )
        except PersistenceError as e:
            logger.error(f"Reading not saved for {image_url}: {e}")
            result.message = SAVE_FAILED_MESSAGE

        return result
