import json

import pytest

from conftest import FakeTextGenerator, FakeWeather, make_forecast, make_snapshot

from app.core.errors import ExternalCapabilityFailure, TextGenerationError
from app.models.advice import CO2InsightDraft, InsightCategory, Priority, RecommendationCategory
from app.models.consumption import ConsumptionReadingCreate
from app.services.recommendations import (
    WEATHER_UNAVAILABLE,
    RecommendationService,
    parse_recommendations,
    parse_savings,
)


async def seed(storage, user_id, rows):
    for year, month, electricity, water, gas in rows:
        await storage.upsert_reading(
            user_id,
            ConsumptionReadingCreate(electricity=electricity, water=water, gas=gas, month=month, year=year),
        )


def monthly_rows(electricity, water, gas, year=2023):
    """Ten months, oldest first; each argument is (older value, recent value)."""
    rows = []
    for month in range(1, 11):
        recent = month > 5
        rows.append((year, month, electricity[recent], water[recent], gas[recent]))
    return rows


AI_RESPONSE = json.dumps(
    {
        "recommendations": [
            {
                "title": "Use the cool mornings",
                "description": "Open windows before 9am instead of running the AC.",
                "category": "electricity",
                "potentialSavings": "15-25",
                "priority": "high",
            },
            {
                "title": "Seal drafts",
                "description": "Weatherstrip doors before the next cold snap.",
                "category": "Heating",
                "potentialSavings": "$12/month",
                "priority": "urgent",
            },
            {"title": "No description", "category": "water"},
        ]
    }
)


def test_parse_savings():
    assert parse_savings("15-25") == 15.0
    assert parse_savings(12) == 12.0
    assert parse_savings("7.5 per month") == 7.5
    assert parse_savings("$12/month") is None
    assert parse_savings(None) is None


def test_parse_recommendations_normalises_entries():
    drafts = parse_recommendations(AI_RESPONSE)
    assert len(drafts) == 2
    assert drafts[0].category == RecommendationCategory.ELECTRICITY
    assert drafts[0].potential_savings == 15.0
    assert drafts[1].category == RecommendationCategory.GENERAL
    assert drafts[1].priority == Priority.MEDIUM


@pytest.mark.asyncio
async def test_ai_path_persists_parsed_recommendations(storage):
    await seed(storage, "u1", [(2024, 1, 300, 20, 100), (2024, 2, 330, 18, 80)])
    generator = FakeTextGenerator(AI_RESPONSE)
    weather = FakeWeather(make_snapshot(temperature=20), make_forecast(18, 25, 26, 27, 10))
    service = RecommendationService(storage, generator, weather)

    saved = await service.generate_recommendations("u1")

    assert [r.title for r in saved] == ["Use the cool mornings", "Seal drafts"]
    assert len(await storage.get_user_recommendations("u1")) == 2

    call = generator.calls[0]
    assert call["json_response"] is True
    assert call["temperature"] == 0.7
    assert "English" in call["system"]
    assert "Electricity: 630 kWh" in call["prompt"]
    assert "Current weather in Almaty: 20°C, clear sky." in call["prompt"]
    assert "Next 3 days will be warmer (avg 26°C)" in call["prompt"]


@pytest.mark.asyncio
async def test_weather_failure_uses_fallback_sentence(storage):
    service = RecommendationService(storage, None, FakeWeather(error=RuntimeError("down")))
    assert await service.weather_context() == WEATHER_UNAVAILABLE

    service = RecommendationService(storage, None, FakeWeather(snapshot=None))
    assert await service.weather_context() == ""


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        TextGenerationError("Gemini not configured"),
        "this is not json",
        json.dumps({"advice": []}),
    ],
)
async def test_ai_failure_falls_back_to_heuristics(storage, response):
    await seed(storage, "u1", monthly_rows((100, 200), (10, 10), (20, 20)))
    service = RecommendationService(storage, FakeTextGenerator(response), FakeWeather(make_snapshot()))

    saved = await service.generate_recommendations("u1")

    assert saved[0].title == "Electricity usage increased by 33.3%"
    assert saved[-1].title == "Water-efficient appliances"


@pytest.mark.asyncio
async def test_no_history_skips_ai(storage):
    generator = FakeTextGenerator(AI_RESPONSE)
    service = RecommendationService(storage, generator, FakeWeather(make_snapshot()))

    saved = await service.generate_recommendations("u1")

    assert generator.calls == []
    assert [r.title for r in saved] == [
        "Peak hours optimization",
        "Smart home integration",
        "Water-efficient appliances",
    ]
    assert [r.potential_savings for r in saved] == [15.0, 25.0, 30.0]


@pytest.mark.asyncio
async def test_heuristic_increase_and_praise(storage):
    await seed(storage, "u1", monthly_rows((100, 200), (10, 10), (30, 10)))
    service = RecommendationService(storage, None, None)

    saved = await service.generate_heuristic_recommendations("u1")

    assert len(saved) == 5
    increase, praise = saved[0], saved[1]
    assert increase.category == RecommendationCategory.ELECTRICITY
    assert increase.priority == Priority.HIGH
    assert increase.potential_savings == 50.0
    assert praise.title == "Great job on gas conservation! 🌱"
    assert praise.priority == Priority.LOW
    assert praise.category == RecommendationCategory.GENERAL
    assert praise.potential_savings == 10.0


@pytest.mark.asyncio
async def test_heuristic_caps_at_five(storage):
    await seed(storage, "u1", monthly_rows((100, 200), (10, 20), (30, 60)))
    service = RecommendationService(storage, None, None)

    saved = await service.generate_heuristic_recommendations("u1")

    assert len(saved) == 5
    by_category = {r.category: r for r in saved[:3]}
    assert by_category[RecommendationCategory.WATER].priority == Priority.MEDIUM
    assert by_category[RecommendationCategory.GAS].priority == Priority.HIGH
    assert [r.title for r in saved[3:]] == ["Peak hours optimization", "Smart home integration"]


# ---------------------------------------------------------------------------
# CO₂ insights
# ---------------------------------------------------------------------------
INSIGHTS_RESPONSE = json.dumps(
    {
        "insights": [
            {"title": "Overall impact", "description": "Below average.", "category": "environmental",
             "priority": "low", "potentialSavings": "15kg CO2 per month"},
            {"description": "Electricity dominates.", "category": "electricity", "priority": "high"},
            {"title": "Summer heat", "description": "Cooling adds up.", "category": "seasonal"},
            {"title": "Nice work", "description": "Gas use is down."},
            {"title": "Fifth", "description": "Dropped by the cap."},
        ]
    }
)


@pytest.mark.asyncio
async def test_co2_insights_replace_previous_and_cap_at_four(storage):
    await seed(storage, "u1", [(2024, 1, 100, 0, 0)])
    await storage.create_co2_insight("u1", CO2InsightDraft(title="stale"))
    generator = FakeTextGenerator(INSIGHTS_RESPONSE)
    service = RecommendationService(storage, generator, FakeWeather(make_snapshot()))

    saved = await service.generate_co2_insights("u1")

    assert len(saved) == 4
    assert saved[0].potential_savings == "15kg CO2 per month"
    assert saved[1].title == "Environmental Insight"
    assert saved[1].category == InsightCategory.ELECTRICITY
    assert saved[2].category == InsightCategory.ENVIRONMENTAL
    assert saved[3].priority == Priority.MEDIUM
    stored = await storage.get_user_co2_insights("u1")
    assert "stale" not in [i.title for i in stored]

    call = generator.calls[0]
    assert call["max_output_tokens"] == 1500
    assert "Total CO2 emissions: 45.32 kg" in call["prompt"]
    assert "Water: 0.00 kg CO2" in call["prompt"]


@pytest.mark.asyncio
async def test_co2_insights_invalid_json_gives_empty_list(storage):
    await seed(storage, "u1", [(2024, 1, 100, 10, 10)])
    await storage.create_co2_insight("u1", CO2InsightDraft(title="stale"))
    service = RecommendationService(storage, FakeTextGenerator("{not json"), FakeWeather(error=RuntimeError("down")))

    assert await service.generate_co2_insights("u1") == []
    assert await storage.get_user_co2_insights("u1") == []


@pytest.mark.asyncio
async def test_co2_insights_without_readings(storage):
    generator = FakeTextGenerator(INSIGHTS_RESPONSE)
    service = RecommendationService(storage, generator, None)
    assert await service.generate_co2_insights("u1") == []
    assert generator.calls == []


@pytest.mark.asyncio
async def test_generator_failure_raises_for_insights_but_not_recommendations(storage):
    # The insight path has no heuristic fallback, unlike recommendations.
    await seed(storage, "u1", [(2024, 1, 100, 10, 10)])
    failure = TextGenerationError("Gemini call timed out after 30s")

    insights = RecommendationService(storage, FakeTextGenerator(failure), FakeWeather(make_snapshot()))
    with pytest.raises(ExternalCapabilityFailure):
        await insights.generate_co2_insights("u1")

    recommendations = RecommendationService(storage, FakeTextGenerator(failure), FakeWeather(make_snapshot()))
    saved = await recommendations.generate_recommendations("u1")
    assert len(saved) == 3
