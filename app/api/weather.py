# backend/app/api/weather.py

from fastapi import APIRouter, Depends, HTTPException, Query

from app.services.weather import WeatherSnapshot, get_weather_provider

router = APIRouter()


@router.get("/{region}", response_model=WeatherSnapshot)
async def weather_for_region(region: str, weather=Depends(get_weather_provider)):
    snapshot = await weather.current(region)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Weather data not found for this region")
    return snapshot


@router.get("", response_model=WeatherSnapshot)
async def weather_for_location(location: str = Query("Almaty", min_length=1), weather=Depends(get_weather_provider)):
    snapshot = await weather.current_by_location(location)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Weather data not found for this location")
    return snapshot
