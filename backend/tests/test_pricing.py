"""
Delivery pricing tests.

Covers the country-pair resolver, distance capping, size multipliers and
the delivery window estimate.
"""

import pytest

from backend.app.core.config import MatchingConfig
from backend.app.domain.pricing.countries import country_to_code
from backend.app.domain.pricing.pricing_calculator import (
    PricingCalculator,
    PricingInput,
    delivery_window_hours,
    size_for_weight,
    size_multiplier,
)
from backend.app.domain.pricing.pricing_resolver import PricingResolver
from backend.app.models.delivery_pricing import ANY_COUNTRY
from backend.app.models.trip_enums import CapacityTier

HARARE = (-17.8292, 31.0522)
JOHANNESBURG = (-26.2041, 28.0473)


def pricing_input(pickup=(None, None), delivery=(None, None), pickup_country=None,
                  delivery_country=None, size=CapacityTier.MEDIUM) -> PricingInput:
    return PricingInput(
        pickup_latitude=pickup[0],
        pickup_longitude=pickup[1],
        delivery_latitude=delivery[0],
        delivery_longitude=delivery[1],
        pickup_country=pickup_country,
        delivery_country=delivery_country,
        parcel_size=size,
    )


@pytest.fixture
def calculator(store, config):
    return PricingCalculator(store, config)


@pytest.mark.asyncio
async def test_domestic_delivery_price(calculator, make_pricing):
    await make_pricing("ZA", "ZA", base_fee=5.0, rate_per_km=0.5)

    # One degree of latitude is ~111.19 km; 4.4966 degrees is ~500 km
    result = await calculator.calculate(
        pricing_input(pickup=(0.0, 0.0), delivery=(4.496608, 0.0),
                      pickup_country="South Africa", delivery_country="south africa")
    )

    assert result.distance_km == pytest.approx(500.0, abs=0.1)
    assert result.delivery_fee == pytest.approx(255.0, abs=0.1)
    assert result.platform_fee == pytest.approx(38.25, abs=0.02)
    assert result.total_amount == pytest.approx(293.25, abs=0.1)
    assert result.currency == "USD"
    assert result.is_domestic is True
    assert result.estimated_delivery_min_hours == 48
    assert result.estimated_delivery_max_hours == 48


@pytest.mark.asyncio
async def test_cross_border_distance_is_capped(calculator, make_pricing):
    await make_pricing("ZW", "ZA", base_fee=25.0, rate_per_km=0.10, max_distance_km=500.0, is_domestic=False)

    result = await calculator.calculate(
        pricing_input(pickup=HARARE, delivery=JOHANNESBURG,
                      pickup_country="Zimbabwe", delivery_country="South Africa")
    )

    assert result.distance_km > 500
    assert result.delivery_fee == pytest.approx(75.0)
    assert result.platform_fee == 11.25
    assert result.total_amount == pytest.approx(86.25)
    assert result.is_domestic is False
    assert result.estimated_delivery_min_hours == 2
    assert result.estimated_delivery_max_hours == 240


@pytest.mark.asyncio
async def test_missing_coordinates_price_base_fee_only(calculator, make_pricing):
    await make_pricing("ZW", "ZW", base_fee=5.0, rate_per_km=0.40)

    result = await calculator.calculate(
        pricing_input(pickup=HARARE, pickup_country="ZW", delivery_country="Zimbabwe", size=CapacityTier.LARGE)
    )

    assert result.distance_km == 0.0
    assert result.delivery_fee == pytest.approx(6.0)
    assert result.estimated_delivery_min_hours == 24


@pytest.mark.asyncio
async def test_generic_row_covers_same_country_only(calculator, make_pricing):
    await make_pricing(ANY_COUNTRY, ANY_COUNTRY, base_fee=5.0, rate_per_km=0.40)

    domestic = await calculator.calculate(pricing_input(pickup_country="Kenya", delivery_country="Kenya"))
    cross_border = await calculator.calculate(pricing_input(pickup_country="Kenya", delivery_country="Uganda"))

    assert domestic is not None
    assert domestic.is_domestic is True
    assert domestic.delivery_fee == 5.0
    assert cross_border is None


@pytest.mark.asyncio
async def test_unknown_pair_has_no_price(calculator):
    assert await calculator.calculate(pricing_input(pickup_country="Zimbabwe", delivery_country="Japan")) is None


@pytest.mark.asyncio
async def test_resolver_prefers_exact_pair(store, make_pricing):
    await make_pricing(ANY_COUNTRY, ANY_COUNTRY, base_fee=1.0, rate_per_km=0.1)
    await make_pricing("GB", "GB", base_fee=8.0, rate_per_km=0.5)

    rule = await PricingResolver(store).resolve("GB", "GB")

    assert rule.origin_country == "GB"
    assert rule.base_fee == 8.0


@pytest.mark.asyncio
async def test_commission_percent_from_config(store, make_pricing):
    await make_pricing("EE", "EE", base_fee=10.0, rate_per_km=0.15)
    calculator = PricingCalculator(store, MatchingConfig(commission_percent=10.0))

    result = await calculator.calculate(pricing_input(pickup_country="Estonia", delivery_country="EE"))

    assert result.platform_fee == 1.0
    assert result.total_amount == 11.0


@pytest.mark.asyncio
async def test_calculate_for_parcel_uses_weight_class(calculator, make_pricing, make_parcel):
    await make_pricing("ZW", "ZW", base_fee=10.0, rate_per_km=0.40)
    parcel = await make_parcel(pickup_country="Zimbabwe", delivery_country="Zimbabwe", weight_kg=1.0)

    result = await calculator.calculate_for_parcel(parcel)

    assert result.delivery_fee == pytest.approx(9.0)


@pytest.mark.parametrize("country, expected", [
    ("South Africa", "ZA"),
    ("  united kingdom ", "GB"),
    ("UK", "GB"),
    ("za", "ZA"),
    ("Atlantis", "AT"),
    ("", ANY_COUNTRY),
    (None, ANY_COUNTRY),
])
def test_country_to_code(country, expected):
    assert country_to_code(country) == expected


@pytest.mark.parametrize("weight, size, multiplier", [
    (1.0, CapacityTier.SMALL, 0.9),
    (5.0, CapacityTier.MEDIUM, 1.0),
    (20.0, CapacityTier.LARGE, 1.2),
    (None, CapacityTier.LARGE, 1.2),
])
def test_size_multiplier(weight, size, multiplier):
    assert size_for_weight(weight) == size
    assert size_multiplier(size) == multiplier


@pytest.mark.parametrize("distance, is_domestic, expected", [
    (0.0, True, (24, 24)),
    (400.0, True, (24, 24)),
    (401.0, True, (48, 48)),
    (5000.0, True, (168, 168)),
    (10.0, False, (2, 240)),
])
def test_delivery_window(distance, is_domestic, expected):
    assert delivery_window_hours(distance, is_domestic) == expected


@pytest.mark.asyncio
async def test_country_abbreviation_resolves_seeded_pair(calculator, seeded_pricing):
    result = await calculator.calculate(pricing_input(pickup_country="Zimbabwe", delivery_country="UK"))

    assert result is not None
    assert result.is_domestic is False
    assert result.delivery_fee == pytest.approx(80.0)
