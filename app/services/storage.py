# backend/app/services/storage.py

from __future__ import annotations

import functools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from app.core.errors import PersistenceFailure
from app.models.advice import CO2Insight, CO2InsightDraft, Recommendation, RecommendationDraft
from app.models.consumption import (
    ConsumptionReading,
    ConsumptionReadingCreate,
    Prediction,
    ResourceType,
    from_mongo,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    # Mongo hands back naive UTC datetimes; keep everything we store the same way.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _persistence(fn):
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as e:
            logger.error(f"Storage operation {fn.__name__} failed: {e}")
            raise PersistenceFailure(f"{fn.__name__} failed: {e}") from e

    return wrapper


def _object_id(value: str) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if ObjectId.is_valid(str(value)):
        return ObjectId(str(value))
    return None


class ConsumptionStorage:
    """
    Per-user persistence for readings, predictions, recommendations and insights.

    Works against any Motor-compatible database handle (collections exposing
    find/find_one/insert_one/update_one/delete_many).
    """

    def __init__(self, database: Any):
        self.db = database

    # -------------------------
    # Users (read-only)
    # -------------------------
    @_persistence
    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        oid = _object_id(user_id)
        doc = await self.db.users.find_one({"_id": oid if oid is not None else user_id})
        return from_mongo(doc) if doc else None

    @_persistence
    async def list_users(self) -> List[Dict[str, Any]]:
        docs = await self.db.users.find({}).to_list(length=None)
        return [from_mongo(d) for d in docs]

    # -------------------------
    # Consumption readings
    # -------------------------
    @_persistence
    async def upsert_reading(self, user_id: str, data: ConsumptionReadingCreate) -> ConsumptionReading:
        """Insert, or update the row sharing (user, month, year, week_number)."""
        natural_key = {
            "user_id": user_id,
            "month": data.month,
            "year": data.year,
            "week_number": data.week_number,
        }
        fields = data.model_dump()
        fields["reading_date"] = naive_utc(fields["reading_date"])
        now = utcnow()

        existing = await self.db.consumption_readings.find_one(natural_key)
        if existing:
            await self.db.consumption_readings.update_one(
                {"_id": existing["_id"]},
                {"$set": {**fields, "updated_at": now}},
            )
            doc = await self.db.consumption_readings.find_one({"_id": existing["_id"]})
            logger.info(f"Updated reading {existing['_id']} for user={user_id} {data.year}-{data.month:02d}")
        else:
            doc = {**fields, "user_id": user_id, "created_at": now, "updated_at": now}
            res = await self.db.consumption_readings.insert_one(doc)
            doc["_id"] = res.inserted_id
            logger.info(f"Created reading {res.inserted_id} for user={user_id} {data.year}-{data.month:02d}")

        return ConsumptionReading(**from_mongo(doc))

    @_persistence
    async def get_user_readings(self, user_id: str, limit: Optional[int] = 50) -> List[ConsumptionReading]:
        """Newest first by (year, month, week_number). limit=None reads them all."""
        cursor = self.db.consumption_readings.find({"user_id": user_id}).sort(
            [("year", -1), ("month", -1), ("week_number", -1)]
        )
        if limit is not None:
            cursor = cursor.limit(limit)
        docs = await cursor.to_list(length=limit)
        return [ConsumptionReading(**from_mongo(d)) for d in docs]

    @_persistence
    async def get_readings_by_date_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> List[ConsumptionReading]:
        """Readings with start <= reading_date <= end, newest first."""
        query = {
            "user_id": user_id,
            "reading_date": {"$gte": naive_utc(start), "$lte": naive_utc(end)},
        }
        docs = await self.db.consumption_readings.find(query).sort("reading_date", -1).to_list(length=None)
        return [ConsumptionReading(**from_mongo(d)) for d in docs]

    # -------------------------
    # Predictions
    # -------------------------
    @_persistence
    async def create_prediction(
        self,
        user_id: str,
        resource_type: ResourceType,
        predicted_amount: float,
        confidence: float,
        prediction_date: datetime,
    ) -> Prediction:
        doc = {
            "user_id": user_id,
            "type": ResourceType(resource_type).value,
            "predicted_amount": predicted_amount,
            "confidence": confidence,
            "prediction_date": naive_utc(prediction_date),
            "actual_amount": None,
            "created_at": utcnow(),
        }
        res = await self.db.predictions.insert_one(doc)
        doc["_id"] = res.inserted_id
        return Prediction(**from_mongo(doc))

    @_persistence
    async def get_user_predictions(self, user_id: str, limit: int = 10) -> List[Prediction]:
        cursor = self.db.predictions.find({"user_id": user_id}).sort("prediction_date", -1).limit(limit)
        docs = await cursor.to_list(length=limit)
        return [Prediction(**from_mongo(d)) for d in docs]

    # -------------------------
    # Recommendations
    # -------------------------
    @_persistence
    async def create_recommendation(self, user_id: str, draft: RecommendationDraft) -> Recommendation:
        doc = {
            **draft.model_dump(mode="json"),
            "user_id": user_id,
            "is_read": False,
            "created_at": utcnow(),
        }
        res = await self.db.recommendations.insert_one(doc)
        doc["_id"] = res.inserted_id
        return Recommendation(**from_mongo(doc))

    @_persistence
    async def get_user_recommendations(self, user_id: str, unread_only: bool = False) -> List[Recommendation]:
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["is_read"] = False
        docs = await self.db.recommendations.find(query).sort("created_at", -1).to_list(length=None)
        return [Recommendation(**from_mongo(d)) for d in docs]

    @_persistence
    async def mark_recommendation_read(self, user_id: str, recommendation_id: str) -> bool:
        oid = _object_id(recommendation_id)
        if oid is None:
            return False
        res = await self.db.recommendations.update_one(
            {"_id": oid, "user_id": user_id},
            {"$set": {"is_read": True}},
        )
        return bool(res.matched_count)

    @_persistence
    async def clear_user_recommendations(self, user_id: str) -> int:
        res = await self.db.recommendations.delete_many({"user_id": user_id})
        return res.deleted_count

    # -------------------------
    # CO₂ insights
    # -------------------------
    @_persistence
    async def create_co2_insight(self, user_id: str, draft: CO2InsightDraft) -> CO2Insight:
        doc = {
            **draft.model_dump(mode="json"),
            "user_id": user_id,
            "is_read": False,
            "created_at": utcnow(),
        }
        res = await self.db.co2_insights.insert_one(doc)
        doc["_id"] = res.inserted_id
        return CO2Insight(**from_mongo(doc))

    @_persistence
    async def get_user_co2_insights(self, user_id: str, unread_only: bool = False) -> List[CO2Insight]:
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["is_read"] = False
        docs = await self.db.co2_insights.find(query).sort("created_at", -1).to_list(length=None)
        return [CO2Insight(**from_mongo(d)) for d in docs]

    @_persistence
    async def clear_user_co2_insights(self, user_id: str) -> int:
        res = await self.db.co2_insights.delete_many({"user_id": user_id})
        return res.deleted_count
