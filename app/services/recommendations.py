# backend/app/services/recommendations.py

import json
import logging
import re
from typing import Any, Dict, List, Optional

from app.core.config import settings
from app.core.errors import (
    ExternalCapabilityFailure,
    MalformedAIResponse,
    PersistenceFailure,
)
from app.models.advice import (
    CO2Insight,
    CO2InsightDraft,
    InsightCategory,
    Priority,
    Recommendation,
    RecommendationCategory,
    RecommendationDraft,
)
from app.models.consumption import ConsumptionReading, ResourceType
from app.services.emissions import calculate_insight_emissions, get_factor_set, sum_consumption
from app.services.storage import ConsumptionStorage
from app.services.text_generation import TextGenerator
from app.services.weather import WeatherProvider

logger = logging.getLogger(__name__)

AI_HISTORY = 6
HEURISTIC_HISTORY = 30
INSIGHT_HISTORY = 10
HEURISTIC_RECENT_WINDOW = 5
MAX_RECOMMENDATIONS = 5
MAX_INSIGHTS = 4
INSIGHT_MAX_TOKENS = 1500
INCREASE_THRESHOLD = 1.1
DECREASE_THRESHOLD = 0.9

WEATHER_UNAVAILABLE = "Weather data unavailable, using general seasonal recommendations."

RECOMMENDATION_SYSTEM = (
    "You are an expert in ecology and energy conservation. You MUST respond ONLY in English language - "
    "never use Russian, Kazakh, or any other language. Provide practical advice for users to reduce their "
    "environmental impact and save money on utilities. Consider current weather conditions and weather "
    "forecasts in your recommendations to make them more relevant and actionable."
)

RECOMMENDATION_PROMPT = """
IMPORTANT: Respond ONLY in English. Do not use any other language.

Analyze the user's resource consumption data and provide 3-5 personalized recommendations to reduce consumption and environmental footprint.

Consumption data for the last 6 months:
- Electricity: {electricity:g} kWh
- Water: {water:g} m³
- Gas: {gas:g} m³

Weather context: {weather}

Requirements for recommendations:
1. Write ALL text in English language only
2. Specific and actionable advice based on current and forecasted weather
3. Potential savings in dollars per month (estimate realistic amounts)
4. Environmental impact consideration
5. Priority level (high/medium/low)
6. Consider both current weather and upcoming weather forecast for seasonal recommendations
7. Reference specific weather conditions in your recommendations when relevant

Respond in JSON format with ALL text in English:
{{
  "recommendations": [
    {{
      "title": "Brief English title",
      "description": "Detailed English action description that references weather when relevant",
      "category": "electricity/water/gas/general",
      "potentialSavings": "15-25",
      "priority": "high/medium/low"
    }}
  ]
}}
"""

INSIGHT_SYSTEM = (
    "You are an environmental AI assistant. Always respond in English only. Provide practical, actionable "
    "CO2 reduction insights based on consumption data and weather conditions."
)

INSIGHT_PROMPT = """You are an environmental AI assistant analyzing CO2 emissions data. Please provide EXACTLY 3-4 insights in English only. DO NOT use Russian language.

User's CO2 emissions data:
- Total CO2 emissions: {total:.2f} kg
- Electricity: {electricity:.2f} kg CO2
- Gas: {gas:.2f} kg CO2
- Water: {water:.2f} kg CO2

{weather}

Please provide insights about:
1. Overall environmental impact and how it compares to average household
2. Which utility contributes most to CO2 and specific actions to reduce it
3. Weather-related environmental impact and seasonal recommendations
4. Benefits and positive impact the user has made

For each insight, provide:
- title: Brief descriptive title
- description: Detailed explanation and specific recommendations
- category: electricity, gas, water, or environmental
- priority: high, medium, or low
- potentialSavings: Estimated CO2 reduction potential (e.g., "15kg CO2 per month")

Respond in JSON format as {{"insights": [...]}}. Use ONLY English language."""

INCREASE_ADVICE = {
    ResourceType.ELECTRICITY: (
        "Your electricity consumption is higher than usual. Consider adjusting your thermostat by 2°C "
        "and unplugging devices when not in use.",
        RecommendationCategory.ELECTRICITY,
        Priority.HIGH,
    ),
    ResourceType.WATER: (
        "Your water consumption is above average. Check for leaks and consider shorter showers to reduce usage.",
        RecommendationCategory.WATER,
        Priority.MEDIUM,
    ),
    ResourceType.GAS: (
        "Your gas consumption is higher than usual. Consider lowering your heating temperature and "
        "improving home insulation.",
        RecommendationCategory.GAS,
        Priority.HIGH,
    ),
}

GENERAL_TIPS = [
    RecommendationDraft(
        title="Peak hours optimization",
        description="Shift your high-energy activities to off-peak hours (11 PM - 6 AM) to save on electricity costs.",
        category=RecommendationCategory.ELECTRICITY,
        potential_savings=15.0,
        priority=Priority.MEDIUM,
    ),
    RecommendationDraft(
        title="Smart home integration",
        description="Consider installing smart thermostats and LED bulbs to automatically optimize your energy usage.",
        category=RecommendationCategory.ELECTRICITY,
        potential_savings=25.0,
        priority=Priority.LOW,
    ),
    RecommendationDraft(
        title="Water-efficient appliances",
        description="Upgrade to water-efficient appliances and fixtures to reduce your water consumption by up to 20%.",
        category=RecommendationCategory.WATER,
        potential_savings=30.0,
        priority=Priority.LOW,
    ),
]

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)")


def parse_savings(value: Any) -> Optional[float]:
    """Leading number of a savings estimate: 12 -> 12.0, "15-25" -> 15.0, "n/a" -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    m = _LEADING_NUMBER.match(str(value))
    return float(m.group(0)) if m else None


def _enum_or_default(enum_cls, value: Any, default):
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def _load_json_object(raw: str) -> Dict[str, Any]:
    text = (raw or "").strip()
    if text.startswith("```"):
        # strip a ```json fenced block
        text = re.sub(r"^```[a-zA-Z]*\s*|\s*```$", "", text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedAIResponse(f"AI response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedAIResponse("AI response is not a JSON object")
    return data


def parse_recommendations(raw: str) -> List[RecommendationDraft]:
    data = _load_json_object(raw)
    items = data.get("recommendations")
    if not isinstance(items, list):
        raise MalformedAIResponse("AI response has no 'recommendations' array")

    drafts = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        description = str(item.get("description") or "").strip()
        if not title or not description:
            continue
        drafts.append(
            RecommendationDraft(
                title=title,
                description=description,
                category=_enum_or_default(RecommendationCategory, item.get("category"), RecommendationCategory.GENERAL),
                priority=_enum_or_default(Priority, item.get("priority"), Priority.MEDIUM),
                potential_savings=parse_savings(item.get("potentialSavings")),
            )
        )
    return drafts


def parse_insights(raw: str) -> List[CO2InsightDraft]:
    """Malformed output yields an empty list rather than an error."""
    try:
        data = _load_json_object(raw)
    except MalformedAIResponse as e:
        logger.error(f"Error parsing AI insight response: {e}")
        return []

    items = data.get("insights")
    if not isinstance(items, list):
        return []

    drafts = []
    for item in items[:MAX_INSIGHTS]:
        if not isinstance(item, dict):
            continue
        savings = item.get("potentialSavings")
        drafts.append(
            CO2InsightDraft(
                title=str(item.get("title") or "").strip() or CO2InsightDraft.model_fields["title"].default,
                description=str(item.get("description") or "").strip()
                or CO2InsightDraft.model_fields["description"].default,
                category=_enum_or_default(InsightCategory, item.get("category"), InsightCategory.ENVIRONMENTAL),
                priority=_enum_or_default(Priority, item.get("priority"), Priority.MEDIUM),
                potential_savings=str(savings) if savings not in (None, "") else None,
            )
        )
    return drafts


def heuristic_drafts(readings: List[ConsumptionReading]) -> List[RecommendationDraft]:
    """Rule-based recommendations from a most-recent-first reading list, capped at five."""
    drafts: List[RecommendationDraft] = []

    if readings:
        for rtype in ResourceType:
            amounts = [r.amount(rtype) for r in readings]
            average = sum(amounts) / len(amounts)
            recent = amounts[:HEURISTIC_RECENT_WINDOW]
            recent_avg = sum(recent) / len(recent)

            if recent_avg > average * INCREASE_THRESHOLD:
                description, category, priority = INCREASE_ADVICE[rtype]
                increase = (recent_avg - average) / average * 100 if average else 100.0
                drafts.append(
                    RecommendationDraft(
                        title=f"{rtype.value.capitalize()} usage increased by {increase:.1f}%",
                        description=description,
                        category=category,
                        priority=priority,
                        potential_savings=round(recent_avg - average, 1),
                    )
                )
            elif recent_avg < average * DECREASE_THRESHOLD:
                saved = average - recent_avg
                drafts.append(
                    RecommendationDraft(
                        title=f"Great job on {rtype.value} conservation! 🌱",
                        description=f"You've saved {saved:.1f} units compared to your average. Keep up the excellent work!",
                        category=RecommendationCategory.GENERAL,
                        priority=Priority.LOW,
                        potential_savings=round(saved, 1),
                    )
                )

    drafts.extend(tip.model_copy() for tip in GENERAL_TIPS)
    return drafts[:MAX_RECOMMENDATIONS]


class RecommendationService:
    """
    AI-first recommendation generator with a rule-based fallback, plus the
    AI-only CO₂ insight generator.

    Both capabilities are injected; no module-level clients.
    """

    def __init__(
        self,
        storage: ConsumptionStorage,
        text_generator: Optional[TextGenerator],
        weather: Optional[WeatherProvider],
        region: Optional[str] = None,
        temperature: Optional[float] = None,
        insights_factor_set: Optional[str] = None,
    ):
        self.storage = storage
        self.text_generator = text_generator
        self.weather = weather
        self.region = region or settings.DEFAULT_WEATHER_REGION
        self.temperature = settings.AI_TEMPERATURE if temperature is None else temperature
        self.insight_factors = get_factor_set(insights_factor_set or settings.INSIGHTS_FACTOR_SET)

    # -------------------------
    # Weather context
    # -------------------------
    async def weather_context(self) -> str:
        if self.weather is None:
            return WEATHER_UNAVAILABLE
        try:
            current = await self.weather.current(self.region)
            if current is None:
                return ""
            context = (
                f"Current weather in {self.region}: {current.temperature:g}°C, "
                f"{current.description}. {current.impact}"
            )

            forecast = await self.weather.forecast(self.region, 7)
            upcoming = [p.temperature for p in forecast[1:4]]
            if upcoming:
                avg_temp = sum(upcoming) / len(upcoming)
                trend = "warmer" if avg_temp > current.temperature else "cooler"
                context += f" Weather forecast: Next 3 days will be {trend} (avg {round(avg_temp)}°C)."
            return context
        except Exception as e:
            logger.warning(f"Weather context unavailable: {e}")
            return WEATHER_UNAVAILABLE

    # -------------------------
    # Recommendations
    # -------------------------
    async def generate_recommendations(self, user_id: str) -> List[Recommendation]:
        """AI path first; any AI failure falls back to the heuristic path."""
        readings = await self.storage.get_user_readings(user_id, limit=AI_HISTORY)
        if not readings:
            return await self.generate_heuristic_recommendations(user_id)

        try:
            drafts = await self._ai_recommendation_drafts(readings)
        except PersistenceFailure:
            raise
        except Exception as e:
            logger.warning(f"AI recommendations failed for user={user_id}, using heuristics: {e}")
            return await self.generate_heuristic_recommendations(user_id)

        saved = []
        for draft in drafts:
            saved.append(await self.storage.create_recommendation(user_id, draft))
        logger.info(f"Saved {len(saved)} AI recommendations for user={user_id}")
        return saved

    async def _ai_recommendation_drafts(self, readings: List[ConsumptionReading]) -> List[RecommendationDraft]:
        if self.text_generator is None:
            raise ExternalCapabilityFailure("No text generator configured")

        totals = sum_consumption(readings)
        prompt = RECOMMENDATION_PROMPT.format(
            electricity=totals["electricity"],
            water=totals["water"],
            gas=totals["gas"],
            weather=await self.weather_context(),
        )
        raw = await self.text_generator.generate(
            prompt,
            system=RECOMMENDATION_SYSTEM,
            temperature=self.temperature,
            json_response=True,
        )
        return parse_recommendations(raw)

    async def generate_heuristic_recommendations(self, user_id: str) -> List[Recommendation]:
        readings = await self.storage.get_user_readings(user_id, limit=HEURISTIC_HISTORY)
        saved = []
        for draft in heuristic_drafts(readings):
            saved.append(await self.storage.create_recommendation(user_id, draft))
        return saved

    # -------------------------
    # CO₂ insights
    # -------------------------
    async def generate_co2_insights(self, user_id: str) -> List[CO2Insight]:
        """
        Replace the user's insights with a fresh AI analysis.

        Unlike recommendations there is no heuristic fallback: unparseable
        output gives [], but a failed generator call is raised to the caller.
        """
        await self.storage.clear_user_co2_insights(user_id)

        readings = await self.storage.get_user_readings(user_id, limit=INSIGHT_HISTORY)
        if not readings:
            return []

        emissions = calculate_insight_emissions(readings, self.insight_factors)
        weather = await self.weather_context()
        if weather == WEATHER_UNAVAILABLE:
            weather = ""

        if self.text_generator is None:
            raise ExternalCapabilityFailure("No text generator configured")

        prompt = INSIGHT_PROMPT.format(
            total=emissions.total,
            electricity=emissions.electricity,
            gas=emissions.gas,
            water=emissions.water,
            weather=weather,
        )
        try:
            raw = await self.text_generator.generate(
                prompt,
                system=INSIGHT_SYSTEM,
                temperature=self.temperature,
                max_output_tokens=INSIGHT_MAX_TOKENS,
                json_response=True,
            )
        except ExternalCapabilityFailure:
            logger.exception(f"Error generating CO2 insights for user={user_id}")
            raise
        except Exception as e:
            logger.exception(f"Error generating CO2 insights for user={user_id}")
            raise ExternalCapabilityFailure(f"CO2 insight generation failed: {e}") from e

        saved = []
        for draft in parse_insights(raw):
            saved.append(await self.storage.create_co2_insight(user_id, draft))
        return saved
