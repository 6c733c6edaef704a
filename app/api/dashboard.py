# backend/app/api/dashboard.py

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException

from app.api.auth import get_current_user_id
from app.api.deps import get_storage
from app.core.config import settings
from app.services.analytics import analytics_window_start, group_for_chart, period_changes
from app.services.emissions import calculate_footprint, get_factor_set, sum_consumption
from app.services.storage import ConsumptionStorage, utcnow

router = APIRouter()
logger = logging.getLogger(__name__)

DASHBOARD_HISTORY = 30


def _previous_month(month: int, year: int):
    return (12, year - 1) if month == 1 else (month - 1, year)


@router.get("/dashboard")
async def get_dashboard(
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    user = await storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    readings = await storage.get_user_readings(user_id, limit=DASHBOARD_HISTORY)

    now = utcnow()
    prev_month, prev_year = _previous_month(now.month, now.year)
    this_month = [r for r in readings if r.month == now.month and r.year == now.year]
    last_month = [r for r in readings if r.month == prev_month and r.year == prev_year]

    consumption = sum_consumption(this_month)
    footprint = calculate_footprint(consumption, get_factor_set(settings.FOOTPRINT_FACTOR_SET))

    return {
        "user": {
            "id": user["id"],
            "first_name": user.get("first_name"),
            "last_name": user.get("last_name"),
            "email": user.get("email"),
            "role": user.get("role"),
            "region": user.get("region"),
        },
        "consumption": consumption,
        "co2_footprint": footprint.total,
        "changes": period_changes(consumption, sum_consumption(last_month) if last_month else None),
        "consumption_readings": readings,
        "predictions": await storage.get_user_predictions(user_id, limit=5),
        "recommendations": await storage.get_user_recommendations(user_id, unread_only=True),
    }


@router.get("/footprint")
async def get_footprint(
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    """Footprint over the most recent readings, in tonnes."""
    readings = await storage.get_user_readings(user_id, limit=DASHBOARD_HISTORY)
    footprint = calculate_footprint(sum_consumption(readings), get_factor_set(settings.FOOTPRINT_FACTOR_SET))
    return {"carbon_footprint": footprint}


@router.get("/analytics")
async def get_analytics(
    period: Literal["week", "month", "year"] = "month",
    user_id: str = Depends(get_current_user_id),
    storage: ConsumptionStorage = Depends(get_storage),
):
    now = utcnow()
    readings = await storage.get_readings_by_date_range(user_id, analytics_window_start(period, now), now)
    return {
        "period": period,
        "readings": readings,
        "chart": group_for_chart(readings, period),
    }
