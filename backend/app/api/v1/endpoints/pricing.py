"""
Pricing API Endpoints.

Price estimate shown to senders before a courier accepts.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from backend.app.core.dependencies import get_current_user, get_pricing_calculator
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.domain.pricing.countries import country_to_code
from backend.app.domain.pricing.pricing_calculator import PricingCalculator, PricingInput, size_for_weight
from backend.app.schemas.pricing import PricingEstimateResponse

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.get("/estimate", response_model=PricingEstimateResponse)
async def estimate_price(
    pickup_lat: Optional[float] = Query(None, ge=-90, le=90),
    pickup_lng: Optional[float] = Query(None, ge=-180, le=180),
    delivery_lat: Optional[float] = Query(None, ge=-90, le=90),
    delivery_lng: Optional[float] = Query(None, ge=-180, le=180),
    pickup_country: Optional[str] = Query(None, max_length=100),
    delivery_country: Optional[str] = Query(None, max_length=100),
    weight_kg: Optional[float] = Query(None, gt=0, description="Parcel weight; unknown weight is priced as large"),
    current_user: dict = Depends(get_current_user),
    calculator: PricingCalculator = Depends(get_pricing_calculator),
):
    """
    Estimate delivery fee, commission and delivery window.

    Returns 404 when no pricing is configured for the country pair.
    """
    result = await calculator.calculate(
        PricingInput(
            pickup_latitude=pickup_lat,
            pickup_longitude=pickup_lng,
            delivery_latitude=delivery_lat,
            delivery_longitude=delivery_lng,
            pickup_country=pickup_country,
            delivery_country=delivery_country,
            parcel_size=size_for_weight(weight_kg),
        )
    )
    if result is None:
        pair = f"{country_to_code(pickup_country)}->{country_to_code(delivery_country)}"
        raise ResourceNotFoundError("Delivery pricing", pair)

    return PricingEstimateResponse.model_validate(result)
