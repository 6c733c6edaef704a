import pytest

from app.core.errors import ValidationFailure
from app.models.consumption import ConsumptionReading
from app.services.emissions import (
    FOOTPRINT_GAS_23_FACTORS,
    calculate_footprint,
    calculate_insight_emissions,
    get_factor_set,
    reading_co2_kg,
    sum_consumption,
    to_quantity,
)


def test_footprint_uses_standard_factors_in_tonnes():
    result = calculate_footprint({"electricity": 330, "gas": 80, "water": 18})
    assert result.total == 0.325
    assert result.breakdown.electricity == 0.165
    assert result.breakdown.gas == 0.16


def test_footprint_never_counts_water():
    result = calculate_footprint({"electricity": 100, "gas": 0, "water": 999})
    assert result.breakdown.water == 0
    assert result.total == 0.05


def test_footprint_rounds_to_three_decimals():
    result = calculate_footprint({"electricity": 1.2345, "gas": 0.0001, "water": 0})
    assert result.total == round((1.2345 * 0.5 + 0.0001 * 2.0) / 1000, 3)


def test_footprint_blank_and_missing_fields_are_zero():
    result = calculate_footprint({"electricity": "", "gas": None})
    assert result.total == 0
    assert result.breakdown.electricity == 0


def test_footprint_accepts_numeric_strings():
    assert calculate_footprint({"electricity": "200", "gas": "10"}).total == 0.12


def test_footprint_rejects_non_numeric():
    with pytest.raises(ValidationFailure):
        calculate_footprint({"electricity": "lots", "gas": 1})
    with pytest.raises(ValidationFailure):
        calculate_footprint({"electricity": float("nan"), "gas": 1})
    with pytest.raises(ValidationFailure):
        calculate_footprint({"electricity": True, "gas": 1})


def test_legacy_factor_set_uses_higher_gas_factor():
    result = calculate_footprint({"electricity": 0, "gas": 100}, FOOTPRINT_GAS_23_FACTORS)
    assert result.total == 0.23
    assert get_factor_set("footprint-gas-2.3") is FOOTPRINT_GAS_23_FACTORS


def test_unknown_factor_set():
    with pytest.raises(ValidationFailure):
        get_factor_set("imaginary")


def test_insight_emissions_include_water_in_kg():
    readings = [{"electricity": 100, "gas": 10, "water": 10}, {"electricity": 100, "gas": 0, "water": 0}]
    em = calculate_insight_emissions(readings)
    assert em.electricity == pytest.approx(200 * 0.4532)
    assert em.gas == pytest.approx(10 * 2.0425)
    assert em.water == pytest.approx(10 * 0.298)
    assert em.total == pytest.approx(em.electricity + em.gas + em.water)


def test_reading_co2_kg_excludes_water():
    reading = ConsumptionReading(
        id="r1", user_id="u1", electricity=100, gas=0, water=500, month=3, year=2024,
        reading_date="2024-03-01T00:00:00",
    )
    assert reading_co2_kg(reading) == 50


def test_sum_consumption_and_to_quantity():
    totals = sum_consumption([{"electricity": 1, "water": "2", "gas": None}, {"electricity": 2, "water": 3, "gas": 4}])
    assert totals == {"electricity": 3.0, "water": 5.0, "gas": 4.0}
    assert to_quantity(" 7.5 ") == 7.5
    assert to_quantity(-3) == -3.0
