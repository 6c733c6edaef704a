from datetime import datetime
from typing import Optional
from pydantic import BaseModel
from enum import Enum


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RecommendationCategory(str, Enum):
    ELECTRICITY = "electricity"
    WATER = "water"
    GAS = "gas"
    GENERAL = "general"


class InsightCategory(str, Enum):
    ELECTRICITY = "electricity"
    GAS = "gas"
    WATER = "water"
    ENVIRONMENTAL = "environmental"


class RecommendationDraft(BaseModel):
    title: str
    description: str
    category: RecommendationCategory = RecommendationCategory.GENERAL
    priority: Priority = Priority.MEDIUM
    potential_savings: Optional[float] = None


class Recommendation(RecommendationDraft):
    id: str
    user_id: str
    is_read: bool = False
    created_at: Optional[datetime] = None


class CO2InsightDraft(BaseModel):
    title: str = "Environmental Insight"
    description: str = "Analysis of your environmental impact."
    category: InsightCategory = InsightCategory.ENVIRONMENTAL
    priority: Priority = Priority.MEDIUM
    potential_savings: Optional[str] = None


class CO2Insight(CO2InsightDraft):
    id: str
    user_id: str
    is_read: bool = False
    created_at: Optional[datetime] = None
