# backend/app/api/deps.py

from fastapi import Depends

from app.core.database import get_db
from app.services.leaderboard import LeaderboardService
from app.services.recommendations import RecommendationService
from app.services.storage import ConsumptionStorage
from app.services.text_generation import get_text_generator
from app.services.weather import get_weather_provider


def get_storage(db=Depends(get_db)) -> ConsumptionStorage:
    return ConsumptionStorage(db)


def get_recommendation_service(
    storage: ConsumptionStorage = Depends(get_storage),
    text_generator=Depends(get_text_generator),
    weather=Depends(get_weather_provider),
) -> RecommendationService:
    return RecommendationService(storage, text_generator, weather)


def get_leaderboard_service(storage: ConsumptionStorage = Depends(get_storage)) -> LeaderboardService:
    return LeaderboardService(storage)
