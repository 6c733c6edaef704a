# backend/app/services/emissions.py

"""
Emission model: utility quantities -> CO₂-equivalent.

Factors live in named sets rather than inline literals because different call
paths have historically used different values and changing one silently would
break comparisons with stored history:

  standard           electricity 0.5 kg/kWh, gas 2.0 kg/m³, water excluded.
                     Dashboard footprint and every leaderboard.
  footprint-gas-2.3  electricity 0.5 kg/kWh, gas 2.3 kg/m³, water excluded.
                     Older dashboard footprint; opt in via FOOTPRINT_FACTOR_SET.
  insights           electricity 0.4532 kg/kWh, gas 2.0425 kg/m³, water 0.298 kg/m³.
                     CO₂ insights only; the one path that counts water.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from app.core.errors import ValidationFailure
from app.models.reports import FootprintBreakdown, FootprintResult, InsightEmissions


@dataclass(frozen=True)
class EmissionFactors:
    name: str
    electricity: float  # kg CO₂ per kWh
    gas: float  # kg CO₂ per m³
    water: float = 0.0  # kg CO₂ per m³


STANDARD_FACTORS = EmissionFactors("standard", electricity=0.5, gas=2.0)
FOOTPRINT_GAS_23_FACTORS = EmissionFactors("footprint-gas-2.3", electricity=0.5, gas=2.3)
INSIGHTS_FACTORS = EmissionFactors("insights", electricity=0.4532, gas=2.0425, water=0.298)

EMISSION_FACTOR_SETS = {
    f.name: f for f in (STANDARD_FACTORS, FOOTPRINT_GAS_23_FACTORS, INSIGHTS_FACTORS)
}


def get_factor_set(name: str) -> EmissionFactors:
    try:
        return EMISSION_FACTOR_SETS[name]
    except KeyError:
        raise ValidationFailure(
            f"Unknown emission factor set '{name}' (known: {', '.join(sorted(EMISSION_FACTOR_SETS))})"
        ) from None


def to_quantity(value: Any, field: str = "quantity") -> float:
    """None/blank -> 0.0; numbers and numeric strings -> float; anything else fails."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValidationFailure(f"{field} must be numeric, got {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        if not value.strip():
            return 0.0
        try:
            number = float(value.strip())
        except ValueError:
            raise ValidationFailure(f"{field} must be numeric, got {value!r}") from None
    else:
        raise ValidationFailure(f"{field} must be numeric, got {type(value).__name__}")

    if not math.isfinite(number):
        raise ValidationFailure(f"{field} must be finite, got {value!r}")
    return number


def _field(source: Any, name: str) -> Any:
    if isinstance(source, Mapping):
        return source.get(name)
    return getattr(source, name, None)


def calculate_footprint(consumption: Any, factors: Optional[EmissionFactors] = None) -> FootprintResult:
    """
    Dashboard footprint in tonnes, rounded to 3 decimals.

    Water never contributes here, whatever the factor set says.
    """
    factors = factors or STANDARD_FACTORS
    electricity_kg = to_quantity(_field(consumption, "electricity"), "electricity") * factors.electricity
    gas_kg = to_quantity(_field(consumption, "gas"), "gas") * factors.gas
    # validated even though it is excluded
    to_quantity(_field(consumption, "water"), "water")
    water_kg = 0.0

    total_kg = electricity_kg + gas_kg
    return FootprintResult(
        total=round(total_kg / 1000, 3),
        breakdown=FootprintBreakdown(
            electricity=round(electricity_kg / 1000, 3),
            gas=round(gas_kg / 1000, 3),
            water=round(water_kg / 1000, 3),
        ),
    )


def calculate_insight_emissions(readings: Iterable[Any], factors: Optional[EmissionFactors] = None) -> InsightEmissions:
    """kg CO₂ per utility summed over readings, water included."""
    factors = factors or INSIGHTS_FACTORS
    electricity = gas = water = 0.0
    for reading in readings:
        electricity += to_quantity(_field(reading, "electricity"), "electricity") * factors.electricity
        gas += to_quantity(_field(reading, "gas"), "gas") * factors.gas
        water += to_quantity(_field(reading, "water"), "water") * factors.water
    return InsightEmissions(
        electricity=electricity,
        gas=gas,
        water=water,
        total=electricity + gas + water,
    )


def reading_co2_kg(reading: Any, factors: Optional[EmissionFactors] = None) -> float:
    """Per-reading kg CO₂ for leaderboards; water excluded."""
    factors = factors or STANDARD_FACTORS
    return (
        to_quantity(_field(reading, "electricity"), "electricity") * factors.electricity
        + to_quantity(_field(reading, "gas"), "gas") * factors.gas
    )


def sum_consumption(readings: Iterable[Any]) -> dict:
    totals = {"electricity": 0.0, "water": 0.0, "gas": 0.0}
    for reading in readings:
        for key in totals:
            totals[key] += to_quantity(_field(reading, key), key)
    return totals
