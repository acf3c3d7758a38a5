"""
Delivery Pricing Calculator (Domain Logic).

Prices an accepted parcel/trip pairing: delivery fee, platform commission
and an estimated delivery window.

Flow:
1. Normalize pickup/delivery countries to ISO codes
2. Resolve the country-pair pricing row
3. Distance from pickup to delivery, capped by the row if configured
4. Apply the parcel size multiplier
5. Add platform commission
"""

import logging
import math
from dataclasses import dataclass, asdict
from typing import Optional

from backend.app.core.config import MatchingConfig
from backend.app.db.store import SqlAlchemyStore
from backend.app.domain.matching.distance import haversine_distance
from backend.app.domain.matching.scoring import classify_parcel_size
from backend.app.domain.pricing.countries import country_to_code
from backend.app.domain.pricing.pricing_resolver import PricingResolver
from backend.app.models.trip_enums import CapacityTier

logger = logging.getLogger(__name__)

# Larger parcels cost more
SIZE_MULTIPLIERS = {
    CapacityTier.SMALL: 0.9,
    CapacityTier.MEDIUM: 1.0,
    CapacityTier.LARGE: 1.2,
}

# Delivery window
KM_PER_DAY_DOMESTIC = 400
HOURS_PER_DAY = 24
MIN_DOMESTIC_DAYS = 1
MAX_DOMESTIC_DAYS = 7
CROSS_BORDER_MIN_HOURS = 2
CROSS_BORDER_MAX_HOURS = 10 * HOURS_PER_DAY


@dataclass(frozen=True)
class PricingInput:
    pickup_latitude: Optional[float]
    pickup_longitude: Optional[float]
    delivery_latitude: Optional[float]
    delivery_longitude: Optional[float]
    pickup_country: Optional[str]
    delivery_country: Optional[str]
    parcel_size: Optional[CapacityTier] = None


@dataclass(frozen=True)
class PricingResult:
    delivery_fee: float
    platform_fee: float
    total_amount: float
    currency: str
    is_domestic: bool
    distance_km: float
    estimated_delivery_min_hours: int
    estimated_delivery_max_hours: int

    def to_dict(self) -> dict:
        return asdict(self)


def size_for_weight(weight_kg: Optional[float]) -> CapacityTier:
    """Pricing size class; an unknown weight is priced as large."""
    return classify_parcel_size(weight_kg) or CapacityTier.LARGE


def size_multiplier(size: Optional[CapacityTier]) -> float:
    return SIZE_MULTIPLIERS.get(size, 1.0)


def delivery_window_hours(distance_km: float, is_domestic: bool):
    """(min_hours, max_hours) for the delivery estimate."""
    if not is_domestic:
        return CROSS_BORDER_MIN_HOURS, CROSS_BORDER_MAX_HOURS

    days = math.ceil(distance_km / KM_PER_DAY_DOMESTIC)
    days = max(MIN_DOMESTIC_DAYS, min(MAX_DOMESTIC_DAYS, days))
    hours = days * HOURS_PER_DAY
    return hours, hours


class PricingCalculator:
    """
    Computes delivery pricing from the country-pair pricing table.

    Args:
        store: Store used to look up pricing rows
        config: Matching configuration (commission percent)
    """

    def __init__(self, store: SqlAlchemyStore, config: MatchingConfig, resolver: Optional[PricingResolver] = None):
        self.config = config
        self.resolver = resolver or PricingResolver(store)

    async def calculate(self, pricing_input: PricingInput) -> Optional[PricingResult]:
        """
        Price a delivery.

        Returns:
            PricingResult, or None when no pricing row applies to the
            country pair
        """
        origin_code = country_to_code(pricing_input.pickup_country)
        destination_code = country_to_code(pricing_input.delivery_country)

        rule = await self.resolver.resolve(origin_code, destination_code)
        if rule is None:
            return None

        distance_km = 0.0
        if (
            pricing_input.pickup_latitude is not None
            and pricing_input.pickup_longitude is not None
            and pricing_input.delivery_latitude is not None
            and pricing_input.delivery_longitude is not None
        ):
            distance_km = haversine_distance(
                pricing_input.pickup_latitude, pricing_input.pickup_longitude,
                pricing_input.delivery_latitude, pricing_input.delivery_longitude,
            )

        effective_distance = distance_km
        if rule.max_distance_km is not None and distance_km > rule.max_distance_km:
            effective_distance = rule.max_distance_km

        delivery_fee = max(
            0.0,
            (rule.base_fee + effective_distance * rule.rate_per_km) * size_multiplier(pricing_input.parcel_size),
        )
        platform_fee = round(delivery_fee * self.config.commission_percent / 100, 2)
        total_amount = round(delivery_fee + platform_fee, 2)
        min_hours, max_hours = delivery_window_hours(distance_km, rule.is_domestic)

        logger.debug(
            "Priced %s -> %s over %.1f km: fee=%.2f platform=%.2f total=%.2f %s",
            origin_code, destination_code, distance_km,
            delivery_fee, platform_fee, total_amount, rule.currency,
        )

        return PricingResult(
            delivery_fee=delivery_fee,
            platform_fee=platform_fee,
            total_amount=total_amount,
            currency=rule.currency,
            is_domestic=rule.is_domestic,
            distance_km=distance_km,
            estimated_delivery_min_hours=min_hours,
            estimated_delivery_max_hours=max_hours,
        )

    async def calculate_for_parcel(self, parcel) -> Optional[PricingResult]:
        """Price the pickup-to-delivery leg of a parcel."""
        return await self.calculate(
            PricingInput(
                pickup_latitude=parcel.pickup_latitude,
                pickup_longitude=parcel.pickup_longitude,
                delivery_latitude=parcel.delivery_latitude,
                delivery_longitude=parcel.delivery_longitude,
                pickup_country=parcel.pickup_country,
                delivery_country=parcel.delivery_country,
                parcel_size=size_for_weight(parcel.weight_kg),
            )
        )
