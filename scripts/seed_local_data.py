"""Seed a demo user, building and room into a local MongoDB for development.

Usage (recommended):
  # start a local mongo with docker (one-liner)
  docker run --name meter-mongo -p 27017:27017 -d mongo:6.0 --bind_ip_all

  export MONGODB_URL="mongodb://localhost:27017/water_meter"
  python scripts/seed_local_data.py

The script is idempotent (uses upsert by unique keys) and prints the ids the
upload form needs.
"""
from __future__ import annotations
import asyncio
from datetime import datetime, timezone
from motor.motor_asyncio import AsyncIOMotorClient

from meter_app.api.auth import hash_password
from meter_app.core.config import settings
from meter_app.core.database import _get_db_name_from_uri, ensure_indexes

DEMO_USERNAME = "demo"
DEMO_PASSWORD = "demo1234"


async def seed_user(db) -> str:
    now = datetime.now(timezone.utc)
    await db.users.update_one(
        {"username": DEMO_USERNAME},
        {
            "$set": {
                "email": "demo@local.test",
                "full_name": "Demo Caretaker",
                "hashed_password": hash_password(DEMO_PASSWORD),
                "is_active": True,
            },
            "$setOnInsert": {"created_at": now},
        },
        upsert=True,
    )
    user = await db.users.find_one({"username": DEMO_USERNAME})
    return str(user["_id"])


async def seed_location(db, user_id: str) -> tuple[str, str]:
    now = datetime.now(timezone.utc)
    await db.buildings.update_one(
        {"user_id": user_id, "name": "Building A"},
        {"$setOnInsert": {"created_at": now, "updated_at": now}},
        upsert=True,
    )
    building = await db.buildings.find_one({"user_id": user_id, "name": "Building A"})
    building_id = str(building["_id"])

    await db.rooms.update_one(
        {"user_id": user_id, "building_id": building_id, "name": "101"},
        {"$setOnInsert": {"created_at": now, "updated_at": now}},
        upsert=True,
    )
    room = await db.rooms.find_one({"user_id": user_id, "building_id": building_id, "name": "101"})
    return building_id, str(room["_id"])


async def main():
    uri = settings.get_mongo_uri()
    client = AsyncIOMotorClient(uri)
    db = client[_get_db_name_from_uri(uri)]
    try:
        await ensure_indexes(db)
        user_id = await seed_user(db)
        building_id, room_id = await seed_location(db, user_id)
    finally:
        client.close()

    print(f"user:     {DEMO_USERNAME} / {DEMO_PASSWORD} (id={user_id})")
    print(f"building: {building_id}")
    print(f"room:     {room_id}")


if __name__ == "__main__":
    asyncio.run(main())
