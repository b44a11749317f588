# meter_app/api/readings.py

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from typing import Optional
import logging

from meter_app.api.auth import get_current_user
from meter_app.core.config import settings
from meter_app.core.database import get_db
from meter_app.core.exceptions import InvalidInputError, MeterAppError
from meter_app.models.meter_reading import CorrectionIn
from meter_app.services.image_store import get_image_store
from meter_app.services.ingestion import IngestionService
from meter_app.services.reading_recorder import ReadingRecorder
from meter_app.services.recognition_client import get_recognition_client, parse_reading

router = APIRouter()
logger = logging.getLogger(__name__)


def get_recorder(db=Depends(get_db)) -> ReadingRecorder:
    return ReadingRecorder(db, require_placeholder=settings.CORRECTION_REQUIRE_PLACEHOLDER)


def get_ingestion_service(
    recorder: ReadingRecorder = Depends(get_recorder),
    store=Depends(get_image_store),
    recognizer=Depends(get_recognition_client),
) -> IngestionService:
    return IngestionService(
        store=store,
        recognizer=recognizer,
        recorder=recorder,
        enforce_location=settings.ENFORCE_LOCATION_CHECK,
    )


@router.post("/read-meter")
async def read_meter(
    file: Optional[UploadFile] = File(None),
    buildingId: Optional[str] = Form(None),
    roomId: Optional[str] = Form(None),
    building_id: Optional[str] = Form(None),
    room_id: Optional[str] = Form(None),
    user=Depends(get_current_user),
    service: IngestionService = Depends(get_ingestion_service),
):
    """
    Upload a meter photo for a room and get the recognized reading back.

    Any outcome that leaves a stored photo answers 200; ``status`` tells the
    client whether to show the value or ask for manual input.
    """
    image_bytes = await file.read() if file is not None else None

    result = await service.ingest(
        owner_id=user["id"],
        building_id=(buildingId or building_id or "").strip() or None,
        room_id=(roomId or room_id or "").strip() or None,
        image_bytes=image_bytes,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
    )
    return result.to_response()


@router.patch("/readings/correction")
async def correct_reading(
    body: CorrectionIn,
    user=Depends(get_current_user),
    recorder: ReadingRecorder = Depends(get_recorder),
):
    value = parse_reading(str(body.manual_value).strip())
    if value is None:
        logger.info(f"Rejected correction for {body.image_url}: {body.manual_value!r} is not a number")
        raise InvalidInputError("Invalid meter value")

    try:
        reading = await recorder.correct(user["id"], body.image_url, value)
    except MeterAppError as e:
        logger.warning(f"Correction of {body.image_url} by {user['id']} failed: {e.message}")
        raise
    return {"success": True, "reading": reading.model_dump(mode="json")}


@router.get("/readings")
async def list_readings(
    building_id: Optional[str] = Query(None, alias="buildingId"),
    room_id: Optional[str] = Query(None, alias="roomId"),
    limit: int = Query(100, ge=1, le=500),
    user=Depends(get_current_user),
    recorder: ReadingRecorder = Depends(get_recorder),
):
    readings = await recorder.list_readings(user["id"], building_id=building_id, room_id=room_id, limit=limit)
    return {
        "success": True,
        "count": len(readings),
        "readings": [r.model_dump(mode="json") for r in readings],
    }
