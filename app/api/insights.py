# backend/app/api/insights.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from app.api.auth import get_current_user_id
from app.api.deps import get_recommendation_service, get_storage
from app.models.advice import CO2Insight, Recommendation
from app.models.consumption import Prediction, PredictionRequest
from app.services.prediction import generate_prediction
from app.services.recommendations import RecommendationService
from app.services.storage import ConsumptionStorage

router = APIRouter()
logger = logging.getLogger(__name__)

# -------------------------------------------------------------------
# Predictions
# -------------------------------------------------------------------


@router.get("/predictions", response_model=List[Prediction])
async def list_predictions(
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    return await storage.get_user_predictions(user_id)


@router.post("/predictions", response_model=Optional[Prediction])
async def create_prediction(
    payload: PredictionRequest,
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    """null when there are fewer than three readings."""
    return await generate_prediction(storage, user_id, payload.type)


# -------------------------------------------------------------------
# Recommendations
# -------------------------------------------------------------------


@router.get("/recommendations", response_model=List[Recommendation])
async def list_recommendations(
    unread_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    return await storage.get_user_recommendations(user_id, unread_only=unread_only)


@router.post("/recommendations/generate", response_model=List[Recommendation])
async def generate_recommendations(
    user_id: str = Depends(get_current_user_id),
    recommender: RecommendationService = Depends(get_recommendation_service),
):
    return await recommender.generate_recommendations(user_id)


@router.delete("/recommendations/clear")
async def clear_recommendations(
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    deleted = await storage.clear_user_recommendations(user_id)
    logger.info(f"Cleared {deleted} recommendations for user={user_id}")
    return {"success": True, "deleted": deleted}


@router.patch("/recommendations/{recommendation_id}/read")
async def mark_recommendation_read(
    recommendation_id: str,
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    if not await storage.mark_recommendation_read(user_id, recommendation_id):
        raise HTTPException(status_code=404, detail="Recommendation not found")
    return {"success": True}


# -------------------------------------------------------------------
# CO₂ insights
# -------------------------------------------------------------------


@router.get("/co2-insights", response_model=List[CO2Insight])
async def list_co2_insights(
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    return await storage.get_user_co2_insights(user_id)


@router.post("/co2-insights/generate", response_model=List[CO2Insight])
async def generate_co2_insights(
    user_id: str = Depends(get_current_user_id),
    recommender: RecommendationService = Depends(get_recommendation_service),
):
    return await recommender.generate_co2_insights(user_id)


@router.delete("/co2-insights/clear")
async def clear_co2_insights(
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    deleted = await storage.clear_user_co2_insights(user_id)
    return {"success": True, "deleted": deleted}
