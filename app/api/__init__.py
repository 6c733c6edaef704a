# backend/app/api/__init__.py

from app.api import consumption
from app.api import dashboard
from app.api import insights
from app.api import leaderboard
from app.api import weather

__all__ = [
    "consumption",
    "dashboard",
    "insights",
    "leaderboard",
    "weather",
]
