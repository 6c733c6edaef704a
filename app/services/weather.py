# backend/app/services/weather.py

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import BaseModel

from app.core.config import settings

logger = logging.getLogger("weather.client")


class WeatherSnapshot(BaseModel):
    temperature: float
    description: str
    humidity: Optional[float] = None
    wind_speed: Optional[float] = None
    location: str
    impact: str


class ForecastPoint(BaseModel):
    date: datetime
    temperature: float
    description: Optional[str] = None
    humidity: Optional[float] = None


class WeatherProvider(Protocol):
    async def current(self, region: str) -> Optional[WeatherSnapshot]:
        ...

    async def current_by_location(self, location: str) -> Optional[WeatherSnapshot]:
        ...

    async def forecast(self, region: str, days: int = 5) -> List[ForecastPoint]:
        ...


REGION_CITIES = {
    "almaty": "Almaty,KZ",
    "astana": "Nur-Sultan,KZ",
    "shymkent": "Shymkent,KZ",
    "aktobe": "Aktobe,KZ",
    "taraz": "Taraz,KZ",
    "pavlodar": "Pavlodar,KZ",
    "ust-kamenogorsk": "Ust-Kamenogorsk,KZ",
    "semey": "Semey,KZ",
}

# Typical July conditions, served when the API is unavailable.
STATIC_SNAPSHOTS = {
    "almaty": (28, "Sunny", 45, 2.1, "Almaty",
               "Hot weather increases electricity consumption for air conditioning by 20%. Use energy-saving modes."),
    "astana": (25, "Clear", 52, 3.2, "Astana",
               "Comfortable summer temperature. Energy consumption is normal. Ventilation recommended during cool hours."),
    "shymkent": (32, "Hot", 38, 1.8, "Shymkent",
                 "Very hot weather. Electricity consumption for cooling increased by 35%. Avoid peak hours."),
    "aktobe": (26, "Clear", 48, 3.5, "Aktobe",
               "Warm summer weather. Moderate energy consumption for cooling. Ventilation recommended."),
    "taraz": (30, "Sunny", 42, 2.8, "Taraz",
              "Hot weather increases electricity consumption for air conditioning by 25%."),
    "pavlodar": (24, "Partly cloudy", 55, 3.2, "Pavlodar",
                 "Comfortable summer temperature. Energy consumption is normal."),
    "ust-kamenogorsk": (22, "Cloudy", 62, 1.5, "Ust-Kamenogorsk",
                        "Cool summer weather. Minimal energy consumption for cooling."),
    "semey": (27, "Sunny", 46, 2.8, "Semey",
              "Warm sunny weather. Moderate electricity consumption for cooling."),
}


def weather_impact(temperature: float) -> str:
    if temperature < 0:
        return "Very cold weather increases heating costs by 20-30%. Consider additional insulation."
    if temperature < 10:
        return "Cold weather increases heating demand. Expected 15% increase in energy usage."
    if temperature > 30:
        return "Hot weather increases cooling costs. Consider using fans and closing blinds during peak hours."
    if temperature > 25:
        return "Warm weather may increase cooling usage. Monitor air conditioning usage."
    return "Moderate weather conditions. Good opportunity to reduce heating/cooling costs."


def static_snapshot(region: str) -> WeatherSnapshot:
    key = (region or "").strip().lower()
    if key in STATIC_SNAPSHOTS:
        temp, desc, humidity, wind, location, impact = STATIC_SNAPSHOTS[key]
        return WeatherSnapshot(
            temperature=temp, description=desc, humidity=humidity,
            wind_speed=wind, location=location, impact=impact,
        )
    return WeatherSnapshot(
        temperature=25,
        description="Sunny",
        humidity=50,
        wind_speed=3.0,
        location=region,
        impact="Comfortable summer weather. Energy consumption is normal.",
    )


def _snapshot_from_payload(data: Dict[str, Any]) -> WeatherSnapshot:
    temp = float(data["main"]["temp"])
    return WeatherSnapshot(
        temperature=round(temp),
        description=data["weather"][0]["description"],
        humidity=data["main"].get("humidity"),
        wind_speed=(data.get("wind") or {}).get("speed"),
        location=data.get("name") or "",
        impact=weather_impact(temp),
    )


class OpenWeatherProvider:
    """
    OpenWeather client. Best effort: current() falls back to a static snapshot
    and forecast() to an empty list, so callers never block on weather.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = (api_key if api_key is not None else settings.OPENWEATHER_API_KEY or "").strip()
        self.base_url = (base_url or settings.OPENWEATHER_BASE_URL).rstrip("/")
        self.timeout = float(timeout if timeout is not None else settings.WEATHER_TIMEOUT_SECONDS)
        if not self.api_key:
            logger.warning("OPENWEATHER_API_KEY missing – serving static regional weather")

    async def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, headers={"Accept": "application/json"}) as client:
            r = await client.get(
                f"{self.base_url}/{endpoint.lstrip('/')}",
                params={**params, "appid": self.api_key, "units": "metric"},
            )
            r.raise_for_status()
            return r.json()

    async def current_by_location(self, location: str) -> Optional[WeatherSnapshot]:
        if not self.api_key:
            return None
        try:
            return _snapshot_from_payload(await self._get("weather", {"q": location}))
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Error fetching weather for {location}: {e}")
            return None

    async def current(self, region: str) -> Optional[WeatherSnapshot]:
        city = REGION_CITIES.get((region or "").strip().lower())
        if not city or not self.api_key:
            return static_snapshot(region)

        snapshot = await self.current_by_location(city)
        if snapshot is None:
            logger.warning(f"Weather API unavailable for region={region}, using static snapshot")
            return static_snapshot(region)
        return snapshot

    async def forecast(self, region: str, days: int = 5) -> List[ForecastPoint]:
        if not self.api_key:
            return []
        location = REGION_CITIES.get((region or "").strip().lower(), region)
        try:
            data = await self._get("forecast", {"q": location, "cnt": days * 8})
            return [
                ForecastPoint(
                    date=datetime.fromtimestamp(item["dt"], tz=timezone.utc),
                    temperature=round(float(item["main"]["temp"])),
                    description=item["weather"][0]["description"],
                    humidity=item["main"].get("humidity"),
                )
                for item in data.get("list", [])
            ]
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.error(f"Error fetching weather forecast for {region}: {e}")
            return []


_weather_singleton: Optional[OpenWeatherProvider] = None


def get_weather_provider() -> OpenWeatherProvider:
    global _weather_singleton
    if _weather_singleton is None:
        _weather_singleton = OpenWeatherProvider()
    return _weather_singleton
