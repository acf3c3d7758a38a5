"""
Delivery pricing database model.

Country-pair rates used to price an accepted match. Domestic rows are
distance based; international rows usually cap the distance component.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Boolean, UniqueConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base

# Country code used by the generic same-country fallback row
ANY_COUNTRY = "*"


class DeliveryPricing(Base):
    """
    Delivery pricing rule.

    Keyed by (origin_country, destination_country) ISO alpha-2 codes, with
    ('*', '*') as the generic domestic fallback.
    """
    __tablename__ = "delivery_pricing"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Country pair
    origin_country = Column(String(8), nullable=False, index=True)
    destination_country = Column(String(8), nullable=False, index=True)

    # Rates
    base_fee = Column(Float, nullable=False, default=0)
    rate_per_km = Column(Float, nullable=False, default=0)
    max_distance_km = Column(Float, nullable=True)  # Cap for distance component (null = no cap)
    currency = Column(String(3), nullable=False, default="USD")
    is_domestic = Column(Boolean, nullable=False, default=False)

    # Audit
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('origin_country', 'destination_country', name='uq_delivery_pricing_pair'),
    )

    def __repr__(self):
        return f"<DeliveryPricing({self.origin_country}->{self.destination_country}, base={self.base_fee}, rate={self.rate_per_km})>"
