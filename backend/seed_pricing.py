"""
Database seeding script for delivery pricing.

Loads the default country-pair pricing table. Safe to re-run: existing
pairs are left untouched.

Usage:
    python -m backend.seed_pricing
"""

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import AsyncSessionLocal
from backend.app.models.delivery_pricing import DeliveryPricing, ANY_COUNTRY

# (origin, destination, base_fee, rate_per_km, max_distance_km, is_domestic)
DEFAULT_PRICING_ROWS = [
    ("ZW", "ZW", 5.0, 0.40, None, True),
    ("ZA", "ZA", 5.0, 0.35, None, True),
    ("GB", "GB", 8.0, 0.50, None, True),
    ("EE", "EE", 5.0, 0.15, None, True),
    ("ZW", "ZA", 25.0, 0.10, 500.0, False),
    ("ZA", "ZW", 25.0, 0.10, 500.0, False),
    ("ZW", "GB", 80.0, 0.05, 1000.0, False),
    ("GB", "ZW", 80.0, 0.05, 1000.0, False),
    ("ZA", "GB", 70.0, 0.05, 1000.0, False),
    ("GB", "ZA", 70.0, 0.05, 1000.0, False),
    (ANY_COUNTRY, ANY_COUNTRY, 5.0, 0.40, None, True),
]


async def seed_delivery_pricing(db: AsyncSession) -> int:
    """
    Insert missing default pricing rows.

    Returns:
        Number of rows inserted (caller commits)
    """
    result = await db.execute(select(DeliveryPricing.origin_country, DeliveryPricing.destination_country))
    existing = {(o, d) for o, d in result.all()}

    inserted = 0
    for origin, destination, base_fee, rate_per_km, max_distance_km, is_domestic in DEFAULT_PRICING_ROWS:
        if (origin, destination) in existing:
            continue
        db.add(DeliveryPricing(
            origin_country=origin,
            destination_country=destination,
            base_fee=base_fee,
            rate_per_km=rate_per_km,
            max_distance_km=max_distance_km,
            currency="USD",
            is_domestic=is_domestic,
        ))
        inserted += 1

    await db.flush()
    return inserted


async def main():
    async with AsyncSessionLocal() as db:
        print("Seeding delivery pricing...")
        inserted = await seed_delivery_pricing(db)
        await db.commit()
        print(f"Inserted {inserted} pricing rows ({len(DEFAULT_PRICING_ROWS) - inserted} already present)")


if __name__ == "__main__":
    asyncio.run(main())
