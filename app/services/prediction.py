# backend/app/services/prediction.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Sequence

from app.core.errors import ValidationFailure
from app.models.consumption import Prediction, ResourceType
from app.services.emissions import to_quantity
from app.services.storage import ConsumptionStorage, utcnow

logger = logging.getLogger(__name__)

MIN_HISTORY = 3
MAX_HISTORY = 12
RECENT_WINDOW = 3
OLDER_WINDOW = 3
TREND_WEIGHT = 0.5
CONFIDENCE_FLOOR = 0.3
CONFIDENCE_CEILING = 0.95
PREDICTION_HORIZON = timedelta(days=30)


class Season(str, Enum):
    WINTER = "winter"
    SUMMER = "summer"
    SHOULDER = "shoulder"


WINTER_MONTHS = frozenset({12, 1, 2, 3})
SUMMER_MONTHS = frozenset({6, 7, 8, 9})

SEASONAL_FACTORS = {
    (ResourceType.ELECTRICITY, Season.WINTER): 1.2,  # heating
    (ResourceType.ELECTRICITY, Season.SUMMER): 1.1,  # cooling
    (ResourceType.ELECTRICITY, Season.SHOULDER): 1.0,
    (ResourceType.GAS, Season.WINTER): 1.4,
    (ResourceType.GAS, Season.SUMMER): 0.8,
    (ResourceType.GAS, Season.SHOULDER): 0.8,
    (ResourceType.WATER, Season.WINTER): 1.0,
    (ResourceType.WATER, Season.SUMMER): 1.1,
    (ResourceType.WATER, Season.SHOULDER): 1.0,
}


@dataclass(frozen=True)
class PredictionEstimate:
    predicted_amount: float
    confidence: float


def season_for_month(month: int) -> Season:
    """Calendar month 1-12."""
    if not isinstance(month, int) or isinstance(month, bool) or not 1 <= month <= 12:
        raise ValidationFailure(f"month must be an integer in 1..12, got {month!r}")
    if month in WINTER_MONTHS:
        return Season.WINTER
    if month in SUMMER_MONTHS:
        return Season.SUMMER
    return Season.SHOULDER


def seasonal_multiplier(resource_type: ResourceType | str, month: int) -> float:
    try:
        rtype = ResourceType(resource_type)
    except ValueError:
        raise ValidationFailure(f"Unknown resource type '{resource_type}'") from None
    return SEASONAL_FACTORS[(rtype, season_for_month(month))]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def predict(amounts: Sequence, resource_type: ResourceType | str, month: int) -> Optional[PredictionEstimate]:
    """
    Next-period forecast from a most-recent-first series.

    Returns None when there are fewer than three points. Confidence is a
    data-consistency heuristic (population variance relative to the mean),
    clamped to [0.3, 0.95].
    """
    multiplier = seasonal_multiplier(resource_type, month)
    values = [to_quantity(a, "amount") for a in list(amounts)[:MAX_HISTORY]]
    if len(values) < MIN_HISTORY:
        return None

    average = _mean(values)
    recent_avg = _mean(values[:RECENT_WINDOW])
    older = values[RECENT_WINDOW:RECENT_WINDOW + OLDER_WINDOW]
    older_avg = _mean(older) if older else recent_avg
    trend = recent_avg - older_avg

    predicted = (average + trend * TREND_WEIGHT) * multiplier

    variance = sum((v - average) ** 2 for v in values) / len(values)
    if average == 0:
        confidence = CONFIDENCE_FLOOR
    else:
        confidence = max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, 1 - (variance / average * 2)))

    return PredictionEstimate(predicted_amount=round(predicted, 2), confidence=round(confidence, 4))


async def generate_prediction(
    storage: ConsumptionStorage,
    user_id: str,
    resource_type: ResourceType | str,
    now: Optional[datetime] = None,
) -> Optional[Prediction]:
    """Forecast next month for one utility and append it to the user's prediction history."""
    try:
        rtype = ResourceType(resource_type)
    except ValueError:
        raise ValidationFailure(f"Unknown resource type '{resource_type}'") from None

    now = now or utcnow()
    readings = await storage.get_user_readings(user_id, limit=MAX_HISTORY)
    estimate = predict([r.amount(rtype) for r in readings], rtype, now.month)
    if estimate is None:
        logger.info(f"Not enough history for {rtype.value} prediction (user={user_id}, points={len(readings)})")
        return None

    return await storage.create_prediction(
        user_id,
        rtype,
        predicted_amount=estimate.predicted_amount,
        confidence=estimate.confidence,
        prediction_date=now + PREDICTION_HORIZON,
    )
