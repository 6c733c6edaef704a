# backend/app/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
import json
from typing import Optional
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[2]  # backend/
ENV_PATH = BASE_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        extra="ignore",
    )

    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    # Bearer tokens (issued by the auth service, only decoded here)
    SECRET_KEY: str = Field(default="change-me")
    JWT_ALGORITHM: str = Field(default="HS256")

    # Frontend / CORS
    FRONTEND_URL: Optional[str] = None
    CORS_ORIGINS: Optional[str] = None

    def get_cors_origins(self) -> list[str]:
        if not self.CORS_ORIGINS:
            return []
        raw = (self.CORS_ORIGINS or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                items = json.loads(raw)
                return [str(x).strip().rstrip("/") for x in items if str(x).strip()]
            except json.JSONDecodeError:
                return []
        return [x.strip().rstrip("/") for x in raw.split(",") if x.strip()]

    # Mongo (support the historic key names)
    MONGODB_URL: Optional[str] = None
    MONGO_URI: Optional[str] = None
    MONGODB_URI: Optional[str] = None
    MONGODB_DB: str = Field(default="econest")

    def get_mongo_uri(self) -> str:
        uri = (self.MONGODB_URL or self.MONGO_URI or self.MONGODB_URI or "").strip()
        if not uri:
            raise RuntimeError("Mongo URI is not set (set MONGODB_URL or MONGO_URI or MONGODB_URI)")
        return uri

    # Gemini text generation
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = Field(default="gemini-1.5-flash")
    AI_TEMPERATURE: float = Field(default=0.7)
    AI_TIMEOUT_SECONDS: float = Field(default=30.0)

    # OpenWeather
    OPENWEATHER_API_KEY: Optional[str] = None
    OPENWEATHER_BASE_URL: str = Field(default="https://api.openweathermap.org/data/2.5")
    WEATHER_TIMEOUT_SECONDS: float = Field(default=10.0)
    DEFAULT_WEATHER_REGION: str = Field(default="Almaty")

    # Emission factor sets (see app/services/emissions.py)
    FOOTPRINT_FACTOR_SET: str = Field(default="standard")
    INSIGHTS_FACTOR_SET: str = Field(default="insights")


settings = Settings()
