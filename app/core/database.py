# backend/app/core/database.py

import logging
from typing import Optional, Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from app.core.config import settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def _get_db_name_from_uri(uri: str) -> str:
    # If the URI carries /dbname use it, otherwise fall back to settings.MONGODB_DB.
    after_slash = uri.split("://", 1)[-1]
    if "/" in after_slash:
        name = after_slash.split("/", 1)[1].split("?", 1)[0].strip()
        if name:
            return name
    return settings.MONGODB_DB or "econest"


async def connect_to_mongo() -> AsyncIOMotorDatabase:
    global _client, _db

    if _client is not None and _db is not None:
        return _db

    mongo_url = settings.get_mongo_uri()
    db_name = _get_db_name_from_uri(mongo_url)
    logger.info(f"Connecting to MongoDB (db={db_name})")

    _client = AsyncIOMotorClient(mongo_url)
    _db = _client[db_name]

    await _db.command("ping")
    logger.info("MongoDB connection OK")

    await _ensure_indexes(_db)
    return _db


async def _ensure_indexes(database: AsyncIOMotorDatabase) -> None:
    # Natural key lookups and per-user listings
    await database.consumption_readings.create_index(
        [("user_id", 1), ("year", 1), ("month", 1), ("week_number", 1)]
    )
    await database.consumption_readings.create_index([("user_id", 1), ("reading_date", -1)])
    await database.predictions.create_index([("user_id", 1), ("prediction_date", -1)])
    await database.recommendations.create_index([("user_id", 1), ("created_at", -1)])
    await database.co2_insights.create_index([("user_id", 1), ("created_at", -1)])


async def close_mongo_connection() -> None:
    global _client, _db
    if _client:
        _client.close()
    _client = None
    _db = None
    logger.info("MongoDB connection closed")


async def get_db() -> AsyncIOMotorDatabase:
    return await connect_to_mongo()


class _DBProxy:
    """Lets you keep using: from app.core.database import db; await db.users.find_one(...)"""

    def __getattr__(self, item: str) -> Any:
        if _db is None:
            raise RuntimeError("Database not initialized. Call connect_to_mongo() at startup.")
        return getattr(_db, item)


db = _DBProxy()
