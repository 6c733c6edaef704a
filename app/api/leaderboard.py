# backend/app/api/leaderboard.py

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.auth import get_current_user_id
from app.api.deps import get_leaderboard_service
from app.models.reports import AllTimeRegion, ProgressEntry, RankedRegion, RankedUser
from app.services.leaderboard import LeaderboardService
from app.services.storage import utcnow

router = APIRouter()


def _selected_month(month: Optional[int], year: Optional[int]):
    now = utcnow()
    return month or now.month, year or now.year


@router.get("/users", response_model=List[RankedUser])
async def users_leaderboard(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    _user_id: str = Depends(get_current_user_id),
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    return await leaderboard.rank_users(*_selected_month(month, year))


@router.get("/regions-monthly", response_model=List[RankedRegion])
async def regions_leaderboard(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1970, le=9999),
    _user_id: str = Depends(get_current_user_id),
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    return await leaderboard.rank_regions(*_selected_month(month, year))


@router.get("/co2-emissions", response_model=List[RankedUser])
async def co2_emissions_leaderboard(
    _user_id: str = Depends(get_current_user_id),
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    return await leaderboard.rank_users_all_time()


@router.get("/regions", response_model=List[AllTimeRegion])
async def regions_all_time_leaderboard(
    _user_id: str = Depends(get_current_user_id),
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    return await leaderboard.rank_regions_all_time()


@router.get("/monthly-progress", response_model=List[ProgressEntry])
async def monthly_progress(
    _user_id: str = Depends(get_current_user_id),
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    return await leaderboard.monthly_progress()
