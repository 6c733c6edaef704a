# backend/app/api/consumption.py

import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.auth import get_current_user_id
from app.api.deps import get_recommendation_service, get_storage
from app.models.consumption import ConsumptionReading, ConsumptionReadingCreate, ResourceType
from app.services.prediction import generate_prediction
from app.services.recommendations import RecommendationService
from app.services.storage import ConsumptionStorage, naive_utc

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/consumption", response_model=ConsumptionReading)
async def submit_reading(
    payload: ConsumptionReadingCreate,
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
    recommender: RecommendationService = Depends(get_recommendation_service),
):
    """
    Save a reading (updating the row for the same period if present), then
    refresh predictions for every utility and regenerate recommendations.
    """
    reading = await storage.upsert_reading(user_id, payload)
    logger.info(f"Reading saved for user={user_id} {payload.year}-{payload.month:02d}, refreshing forecasts")

    for rtype in ResourceType:
        await generate_prediction(storage, user_id, rtype)
    await recommender.generate_recommendations(user_id)

    return reading


@router.get("/consumption", response_model=List[ConsumptionReading])
async def list_readings(
    limit: int = Query(50, ge=1, le=500),
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    return await storage.get_user_readings(user_id, limit=limit)


@router.get("/consumption/range", response_model=List[ConsumptionReading])
async def list_readings_in_range(
    start_date: datetime,
    end_date: datetime,
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    if naive_utc(start_date) > naive_utc(end_date):
        raise HTTPException(status_code=400, detail="start_date must not be after end_date")
    return await storage.get_readings_by_date_range(user_id, start_date, end_date)
