# backend/app/services/analytics.py

from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from dateutil.relativedelta import relativedelta

from app.core.errors import ValidationFailure
from app.models.consumption import ConsumptionReading
from app.models.reports import ChartDataset, ChartSeries, PeriodChanges
from app.services.emissions import STANDARD_FACTORS, reading_co2_kg

PERIODS = ("week", "month", "year")
UTILITY_LABELS = (("water", "Water"), ("electricity", "Electricity"), ("gas", "Gas"))
PERIOD_LABELS = {
    "week": ("Current week", "Previous week"),
    "month": ("Current month", "Previous month"),
}


def _check_period(period: str) -> str:
    if period not in PERIODS:
        raise ValidationFailure(f"period must be one of {', '.join(PERIODS)}, got {period!r}")
    return period


def _created_key(reading: ConsumptionReading) -> datetime:
    return reading.created_at or reading.reading_date


def group_for_chart(readings: Sequence[ConsumptionReading], period: str) -> Optional[ChartSeries]:
    """
    Reshape readings into chart series.

    year: one line per utility over "YYYY-MM" buckets (chronological).
    week/month: bars comparing the newest reading against the one before it.
    Returns None when there is nothing to chart.
    """
    _check_period(period)
    if not readings:
        return None

    if period == "year":
        buckets: Dict[str, Dict[str, float]] = {}
        for r in readings:
            key = f"{r.year}-{r.month:02d}"
            bucket = buckets.setdefault(key, {field: 0.0 for field, _ in UTILITY_LABELS})
            for field, _ in UTILITY_LABELS:
                bucket[field] += getattr(r, field) or 0.0

        keys = sorted(buckets)
        return ChartSeries(
            period="year",
            chart_type="line",
            labels=keys,
            datasets=[
                ChartDataset(label=label, data=[buckets[k][field] for k in keys])
                for field, label in UTILITY_LABELS
            ],
        )

    ordered = sorted(readings, key=_created_key, reverse=True)
    current = ordered[0]
    previous = ordered[1] if len(ordered) > 1 else None
    current_label, previous_label = PERIOD_LABELS[period]

    return ChartSeries(
        period=period,
        chart_type="bar",
        labels=[label for _, label in UTILITY_LABELS],
        datasets=[
            ChartDataset(label=current_label, data=[getattr(current, f) or 0.0 for f, _ in UTILITY_LABELS]),
            ChartDataset(
                label=previous_label,
                data=[(getattr(previous, f) or 0.0) if previous else 0.0 for f, _ in UTILITY_LABELS],
            ),
        ],
    )


def analytics_window_start(period: str, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    if period == "year":
        return now - relativedelta(years=1)
    return now - relativedelta(months=1)


def _value(source: Any, field: str) -> float:
    if isinstance(source, Mapping):
        return float(source.get(field) or 0.0)
    return float(getattr(source, field, None) or 0.0)


def _percent_change(current: float, previous: float) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def period_changes(current: Optional[Any], previous: Optional[Any]) -> PeriodChanges:
    """Percent change per utility and CO₂ from `previous` to `current` (readings or totals dicts)."""
    if current is None or previous is None:
        return PeriodChanges()

    values: List[float] = []
    for field, _ in UTILITY_LABELS:
        values.append(_percent_change(_value(current, field), _value(previous, field)))
    water, electricity, gas = values
    return PeriodChanges(
        water=water,
        electricity=electricity,
        gas=gas,
        co2=_percent_change(
            reading_co2_kg(current, STANDARD_FACTORS),
            reading_co2_kg(previous, STANDARD_FACTORS),
        ),
    )
