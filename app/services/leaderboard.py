# backend/app/services/leaderboard.py

import logging
from datetime import MAXYEAR, MINYEAR, datetime, timedelta
from typing import Any, Dict, List, Tuple

from app.core.errors import ValidationFailure
from app.models.reports import AllTimeRegion, ProgressEntry, RankedRegion, RankedUser
from app.services.emissions import STANDARD_FACTORS, reading_co2_kg
from app.services.storage import ConsumptionStorage

logger = logging.getLogger(__name__)

MIN_MEANINGFUL_CHANGE = 0.1  # percent


def month_bounds(month: int, year: int) -> Tuple[datetime, datetime]:
    """First instant of the month through the last microsecond before the next one."""
    if not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationFailure(f"month must be in 1..12, got {month!r}")
    if not isinstance(year, int) or not MINYEAR <= year <= MAXYEAR:
        raise ValidationFailure(f"year must be in {MINYEAR}..{MAXYEAR}, got {year!r}")
    if month == 12 and year == MAXYEAR:
        raise ValidationFailure(f"no month follows {year}-12")
    start = datetime(year, month, 1)
    nxt = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, nxt - timedelta(microseconds=1)


def display_name(user: Dict[str, Any]) -> str:
    return f"{user.get('first_name') or 'User'} {user.get('last_name') or ''}".strip()


class LeaderboardService:
    """
    Rankings computed on read from every user's readings.
    Lower CO₂ ranks first; ties keep user order.
    """

    def __init__(self, storage: ConsumptionStorage):
        self.storage = storage
        self.factors = STANDARD_FACTORS

    async def _month_co2(self, user_id: str, start: datetime, end: datetime) -> Tuple[float, int]:
        readings = await self.storage.get_readings_by_date_range(user_id, start, end)
        return sum(reading_co2_kg(r, self.factors) for r in readings), len(readings)

    async def rank_users(self, month: int, year: int) -> List[RankedUser]:
        start, end = month_bounds(month, year)
        rows = []
        for user in await self.storage.list_users():
            total, count = await self._month_co2(user["id"], start, end)
            if total > 0:
                rows.append(
                    RankedUser(
                        id=user["id"],
                        name=display_name(user),
                        role=user.get("role"),
                        total_co2=round(total, 2),
                        readings_count=count,
                    )
                )
        rows.sort(key=lambda r: r.total_co2)
        logger.info(f"Ranked {len(rows)} users for {year}-{month:02d}")
        return rows

    async def rank_regions(self, month: int, year: int) -> List[RankedRegion]:
        start, end = month_bounds(month, year)
        regions: Dict[str, Dict[str, float]] = {}
        for user in await self.storage.list_users():
            region = user.get("region")
            if not region:
                continue
            total, count = await self._month_co2(user["id"], start, end)
            agg = regions.setdefault(region, {"total_co2": 0.0, "user_count": 0, "users_with_data": 0})
            agg["total_co2"] += total
            agg["user_count"] += 1
            if count > 0:
                agg["users_with_data"] += 1

        rows = [
            RankedRegion(
                region=region,
                total_co2=round(agg["total_co2"], 2),
                average_co2=round(agg["total_co2"] / agg["users_with_data"], 2) if agg["users_with_data"] else 0.0,
                user_count=agg["user_count"],
                users_with_data=agg["users_with_data"],
            )
            for region, agg in regions.items()
        ]
        rows.sort(key=lambda r: r.total_co2)
        return rows

    async def _all_time_co2(self, user_id: str) -> Tuple[float, int]:
        readings = await self.storage.get_user_readings(user_id, limit=None)
        return sum(reading_co2_kg(r, self.factors) for r in readings), len(readings)

    async def rank_users_all_time(self) -> List[RankedUser]:
        rows = []
        for user in await self.storage.list_users():
            total, count = await self._all_time_co2(user["id"])
            if total > 0:
                rows.append(
                    RankedUser(
                        id=user["id"],
                        name=display_name(user),
                        role=user.get("role"),
                        total_co2=round(total, 2),
                        readings_count=count,
                    )
                )
        rows.sort(key=lambda r: r.total_co2)
        return rows

    async def rank_regions_all_time(self) -> List[AllTimeRegion]:
        """Only users with emissions count towards a region, and the average is over them."""
        regions: Dict[str, Dict[str, Any]] = {}
        for user in await self.storage.list_users():
            region = user.get("region")
            if not region:
                continue
            total, _ = await self._all_time_co2(user["id"])
            if total <= 0:
                continue
            agg = regions.setdefault(region, {"total_co2": 0.0, "users": []})
            agg["total_co2"] += total
            agg["users"].append(display_name(user))

        rows = [
            AllTimeRegion(
                region=region,
                total_co2=round(agg["total_co2"], 2),
                average_co2=round(agg["total_co2"] / len(agg["users"]), 2),
                user_count=len(agg["users"]),
                users=agg["users"],
            )
            for region, agg in regions.items()
        ]
        rows.sort(key=lambda r: r.total_co2)
        return rows

    async def monthly_progress(self) -> List[ProgressEntry]:
        """Earliest vs latest tracked month per user; biggest reduction first."""
        rows = []
        for user in await self.storage.list_users():
            readings = await self.storage.get_user_readings(user["id"], limit=None)
            if len(readings) < 2:
                continue

            monthly: Dict[str, float] = {}
            for r in readings:
                key = f"{r.year}-{r.month:02d}"
                monthly[key] = monthly.get(key, 0.0) + reading_co2_kg(r, self.factors)

            months = sorted(monthly)
            if len(months) < 2:
                continue

            first, last = monthly[months[0]], monthly[months[-1]]
            reduction = (first - last) / first * 100 if first > 0 else 0.0
            if abs(reduction) <= MIN_MEANINGFUL_CHANGE:
                continue

            rows.append(
                ProgressEntry(
                    id=user["id"],
                    name=display_name(user),
                    role=user.get("role"),
                    reduction_percent=round(reduction, 2),
                    first_month_co2=round(first, 2),
                    last_month_co2=round(last, 2),
                    months_tracked=len(months),
                )
            )

        rows.sort(key=lambda r: r.reduction_percent, reverse=True)
        return rows
