# meter_app/services/reading_recorder.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from meter_app.core.exceptions import (
    CorrectionNotFound,
    IngestionValidationError,
    PersistenceError,
)
from meter_app.models.meter_reading import (
    PLACEHOLDER_VALUE,
    MeterReading,
    ReadingStatus,
)

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def now_utc():
    return datetime.now(timezone.utc)


def _object_id(value: str, what: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise IngestionValidationError(f"Invalid {what} id")


class ReadingRecorder:
    """Reads and writes ``meter_readings`` rows for one database."""

    def __init__(self, db, require_placeholder: bool = False):
        self.db = db
        self.require_placeholder = require_placeholder

    @property
    def collection(self):
        return self.db.meter_readings

    async def verify_location(self, owner_id: str, building_id: str, room_id: str) -> None:
        """Room must exist, sit in the given building, and both must belong to the owner."""
        try:
            building = await self.db.buildings.find_one(
                {"_id": _object_id(building_id, "building"), "user_id": owner_id}
            )
            room = await self.db.rooms.find_one(
                {"_id": _object_id(room_id, "room"), "user_id": owner_id}
            )
        except PyMongoError as e:
            logger.error(f"Location lookup failed: {e}")
            raise PersistenceError("Failed to look up building/room") from e

        if not building:
            raise IngestionValidationError("Building not found")
        if not room:
            raise IngestionValidationError("Room not found")
        if str(room.get("building_id")) != building_id:
            raise IngestionValidationError("Room does not belong to the selected building")

    async def record(
        self,
        owner_id: str,
        building_id: str,
        room_id: str,
        image_url: str,
        value: float,
        status: ReadingStatus = ReadingStatus.SUCCESS,
    ) -> str:
        doc = {
            "user_id": owner_id,
            "building_id": building_id,
            "room_id": room_id,
            "image_url": image_url,
            "meter_value": float(value),
            "status": status.value,
            "created_at": now_utc(),
        }
        try:
            result = await self.collection.insert_one(doc)
        except PyMongoError as e:
            logger.error(f"Database insert error for {image_url}: {e}")
            raise PersistenceError("Failed to save reading") from e

        reading_id = str(result.inserted_id)
        logger.info(f"Recorded reading {reading_id} value={value} status={status.value}")
        return reading_id

    async def correct(self, owner_id: str, image_url: str, new_value: float) -> MeterReading:
        """
        Overwrite ``meter_value`` of the newest reading for ``(owner_id, image_url)``.

        No locking: concurrent corrections of the same image end with whichever
        write lands last. Repeating a correction with the same value is a no-op.
        """
        new_value = float(new_value)
        query = {"user_id": owner_id, "image_url": image_url}

        try:
            doc = await self.collection.find_one(query, sort=NEWEST_FIRST)
            if not doc:
                raise CorrectionNotFound("No reading found for this image")

            if doc.get("meter_value") == new_value and doc.get("status") == ReadingStatus.CORRECTED.value:
                return MeterReading.from_doc(doc)

            target = {"_id": doc["_id"]}
            if self.require_placeholder:
                target["meter_value"] = {"$in": [PLACEHOLDER_VALUE, new_value]}

            changes = {
                "meter_value": new_value,
                "status": ReadingStatus.CORRECTED.value,
                "corrected_at": now_utc(),
            }
            result = await self.collection.update_one(target, {"$set": changes})
        except PyMongoError as e:
            logger.error(f"Correction failed for {image_url}: {e}")
            raise PersistenceError("Failed to save reading") from e

        if result.matched_count == 0:
            raise CorrectionNotFound("Reading already has a value")

        doc.update(changes)
        logger.info(f"Corrected reading {doc['_id']} to {new_value}")
        return MeterReading.from_doc(doc)

    async def list_readings(
        self,
        owner_id: str,
        building_id: Optional[str] = None,
        room_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[MeterReading]:
        query = {"user_id": owner_id}
        if building_id:
            query["building_id"] = building_id
        if room_id:
            query["room_id"] = room_id

        try:
            cursor = self.collection.find(query).sort(NEWEST_FIRST).limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as e:
            logger.error(f"Failed to load readings: {e}")
            raise PersistenceError("Failed to load readings") from e

        return [MeterReading.from_doc(d) for d in docs]
