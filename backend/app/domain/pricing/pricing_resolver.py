"""
Pricing Rule Resolver.

Responsible for determining the applicable delivery pricing row for a
country pair.
Follows priority:
1. Exact (origin, destination) pair
2. Generic ('*', '*') row, for same-country deliveries only
"""

import logging
from dataclasses import dataclass
from typing import Optional

from backend.app.db.store import SqlAlchemyStore
from backend.app.models.delivery_pricing import ANY_COUNTRY

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"


@dataclass(frozen=True)
class ResolvedPricingRule:
    """Plain snapshot of the pricing row that applies to a delivery."""
    origin_country: str
    destination_country: str
    base_fee: float
    rate_per_km: float
    max_distance_km: Optional[float]
    currency: str
    is_domestic: bool


class PricingResolver:

    def __init__(self, store: SqlAlchemyStore):
        self.store = store

    async def resolve(self, origin_code: str, destination_code: str) -> Optional[ResolvedPricingRule]:
        """
        Find the pricing row for a pair of country codes.

        Returns:
            The resolved rule, or None when no row applies
        """
        rule = await self.store.get_pricing_rule(origin_code, destination_code)
        if rule is not None:
            return self._snapshot(rule, is_domestic=bool(rule.is_domestic))

        # Generic domestic fallback
        if origin_code == destination_code:
            fallback = await self.store.get_pricing_rule(ANY_COUNTRY, ANY_COUNTRY)
            if fallback is not None:
                return self._snapshot(fallback, is_domestic=True)

        logger.info("No delivery pricing for %s -> %s", origin_code, destination_code)
        return None

    @staticmethod
    def _snapshot(rule, is_domestic: bool) -> ResolvedPricingRule:
        return ResolvedPricingRule(
            origin_country=rule.origin_country,
            destination_country=rule.destination_country,
            base_fee=float(rule.base_fee),
            rate_per_km=float(rule.rate_per_km),
            max_distance_km=float(rule.max_distance_km) if rule.max_distance_km else None,
            currency=rule.currency or DEFAULT_CURRENCY,
            is_domestic=is_domestic,
        )
