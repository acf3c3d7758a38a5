"""
Pricing Pydantic schemas.
"""

from pydantic import BaseModel


class PricingEstimateResponse(BaseModel):
    """Delivery price breakdown, also returned with an accepted match."""
    delivery_fee: float
    platform_fee: float
    total_amount: float
    currency: str
    is_domestic: bool
    distance_km: float
    estimated_delivery_min_hours: int
    estimated_delivery_max_hours: int

    class Config:
        from_attributes = True
