from typing import List, Literal, Optional
from pydantic import BaseModel


class FootprintBreakdown(BaseModel):
    electricity: float
    gas: float
    water: float


class FootprintResult(BaseModel):
    """CO₂ footprint in tonnes."""

    total: float
    breakdown: FootprintBreakdown


class InsightEmissions(BaseModel):
    """CO₂ per utility in kg, water included."""

    electricity: float
    gas: float
    water: float
    total: float


class RankedUser(BaseModel):
    id: str
    name: str
    role: Optional[str] = None
    total_co2: float
    readings_count: int


class RankedRegion(BaseModel):
    region: str
    total_co2: float
    average_co2: float
    user_count: int
    users_with_data: int


class AllTimeRegion(BaseModel):
    region: str
    total_co2: float
    average_co2: float
    user_count: int
    users: List[str]


class ProgressEntry(BaseModel):
    id: str
    name: str
    role: Optional[str] = None
    reduction_percent: float
    first_month_co2: float
    last_month_co2: float
    months_tracked: int


class ChartDataset(BaseModel):
    label: str
    data: List[float]


class ChartSeries(BaseModel):
    period: Literal["week", "month", "year"]
    chart_type: Literal["line", "bar"]
    labels: List[str]
    datasets: List[ChartDataset]


class PeriodChanges(BaseModel):
    """Percent change from the previous reading."""

    water: float = 0.0
    electricity: float = 0.0
    gas: float = 0.0
    co2: float = 0.0
