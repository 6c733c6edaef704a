from datetime import datetime

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from app.core.errors import PersistenceFailure
from app.models.advice import CO2InsightDraft, RecommendationDraft
from app.models.consumption import ConsumptionReadingCreate
from app.services.storage import ConsumptionStorage


def test_reading_date_defaults_to_first_of_month():
    data = ConsumptionReadingCreate(electricity="", water=None, gas=3, month=2, year=2024)
    assert data.reading_date == datetime(2024, 2, 1)
    assert data.electricity == 0.0
    assert data.water == 0.0


@pytest.mark.asyncio
async def test_upsert_updates_same_period_in_place(storage, fake_db):
    first = await storage.upsert_reading("u1", ConsumptionReadingCreate(electricity=300, gas=100, water=20, month=1, year=2024))
    again = await storage.upsert_reading("u1", ConsumptionReadingCreate(electricity=310, gas=90, water=21, month=1, year=2024))

    assert again.id == first.id
    assert again.electricity == 310
    assert again.created_at == first.created_at
    assert len(fake_db.consumption_readings._docs) == 1


@pytest.mark.asyncio
async def test_weeks_and_users_are_separate_rows(storage, fake_db):
    await storage.upsert_reading("u1", ConsumptionReadingCreate(electricity=10, month=1, year=2024, is_advanced_mode=True, week_number=1))
    await storage.upsert_reading("u1", ConsumptionReadingCreate(electricity=12, month=1, year=2024, is_advanced_mode=True, week_number=2))
    await storage.upsert_reading("u2", ConsumptionReadingCreate(electricity=12, month=1, year=2024, is_advanced_mode=True, week_number=2))
    assert len(fake_db.consumption_readings._docs) == 3


@pytest.mark.asyncio
async def test_readings_newest_first(storage):
    for year, month in ((2023, 11), (2024, 2), (2024, 1)):
        await storage.upsert_reading("u1", ConsumptionReadingCreate(electricity=1, month=month, year=year))

    readings = await storage.get_user_readings("u1")
    assert [(r.year, r.month) for r in readings] == [(2024, 2), (2024, 1), (2023, 11)]
    assert len(await storage.get_user_readings("u1", limit=2)) == 2


@pytest.mark.asyncio
async def test_date_range_is_inclusive(storage):
    for month in (1, 2, 3):
        await storage.upsert_reading("u1", ConsumptionReadingCreate(electricity=month, month=month, year=2024))

    readings = await storage.get_readings_by_date_range("u1", datetime(2024, 2, 1), datetime(2024, 3, 1))
    assert [r.month for r in readings] == [3, 2]


@pytest.mark.asyncio
async def test_recommendation_read_state_is_owner_scoped(storage):
    rec = await storage.create_recommendation("u1", RecommendationDraft(title="t", description="d"))

    assert await storage.mark_recommendation_read("u2", rec.id) is False
    assert await storage.mark_recommendation_read("u1", "not-an-id") is False
    assert await storage.mark_recommendation_read("u1", rec.id) is True

    assert await storage.get_user_recommendations("u1", unread_only=True) == []
    assert len(await storage.get_user_recommendations("u1")) == 1
    assert await storage.clear_user_recommendations("u1") == 1


@pytest.mark.asyncio
async def test_insights_roundtrip(storage):
    await storage.create_co2_insight("u1", CO2InsightDraft())
    insights = await storage.get_user_co2_insights("u1")
    assert insights[0].title == "Environmental Insight"
    assert await storage.clear_user_co2_insights("u1") == 1
    assert await storage.get_user_co2_insights("u1") == []


@pytest.mark.asyncio
async def test_driver_errors_become_persistence_failures():
    class BrokenCollection:
        def find(self, query=None):
            raise ServerSelectionTimeoutError("no primary")

    class BrokenDB:
        consumption_readings = BrokenCollection()

    with pytest.raises(PersistenceFailure):
        await ConsumptionStorage(BrokenDB()).get_user_readings("u1")
