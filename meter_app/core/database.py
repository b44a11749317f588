# meter_app/core/database.py

import logging
from typing import Optional, Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from meter_app.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def _get_db_name_from_uri(uri: str) -> str:
    # A "/dbname" suffix on the URI wins over MONGODB_DB.
    after_slash = uri.split("://", 1)[-1]
    if "/" in after_slash:
        after_slash = after_slash.split("/", 1)[1].split("?", 1)[0].strip()
        if after_slash:
            return after_slash
    return settings.MONGODB_DB or "water_meter"


async def ensure_indexes(database: AsyncIOMotorDatabase) -> None:
    # correction lookup: newest row for (user_id, image_url)
    await database.meter_readings.create_index(
        [("user_id", ASCENDING), ("image_url", ASCENDING), ("created_at", DESCENDING)]
    )
    await database.meter_readings.create_index(
        [("user_id", ASCENDING), ("building_id", ASCENDING), ("room_id", ASCENDING), ("created_at", DESCENDING)]
    )
    await database.rooms.create_index([("user_id", ASCENDING), ("building_id", ASCENDING)])
    await database.users.create_index("username", unique=True)
    await database.users.create_index("email", unique=True)


async def connect_to_mongo() -> AsyncIOMotorDatabase:
    global _client, _db

    if _client is not None and _db is not None:
        return _db

    mongo_url = settings.get_mongo_uri()
    db_name = _get_db_name_from_uri(mongo_url)
    logger.info(f"Connecting to MongoDB (db={db_name})")

    client = AsyncIOMotorClient(mongo_url)
    database = client[db_name]

    # Cache only a fully prepared connection so a failed startup is retried on the next call.
    try:
        await database.command("ping")
        logger.info("MongoDB connection OK")
        await ensure_indexes(database)
    except Exception:
        client.close()
        raise

    _client, _db = client, database
    return _db


async def close_mongo_connection() -> None:
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
    logger.info("MongoDB connection closed")


async def get_db() -> AsyncIOMotorDatabase:
    """FastAPI dependency; tests override it with an in-memory fake."""
    return await connect_to_mongo()


class _DBProxy:
    """Lets code keep using: from meter_app.core.database import db; await db.command("ping")"""

    def __getattr__(self, item: str) -> Any:
        if _db is None:
            raise RuntimeError("Database not initialized. Call connect_to_mongo() at startup.")
        return getattr(_db, item)


db = _DBProxy()
