"""
Match Pydantic schemas.

Response models for match listing and the accept/reject/refresh actions.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional, List
from backend.app.models.match_enums import MatchStatus, PaymentStatus
from backend.app.models.parcel_enums import ParcelStatus
from backend.app.models.trip_enums import TripStatus, CapacityTier
from backend.app.schemas.pricing import PricingEstimateResponse


class MatchResponse(BaseModel):
    """Schema for a match row."""
    id: int
    parcel_id: int
    trip_id: int
    match_score: float
    status: MatchStatus
    matched_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    delivery_fee: Optional[float] = None
    platform_fee: Optional[float] = None
    total_amount: Optional[float] = None
    currency: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None

    class Config:
        from_attributes = True


class ParcelSummary(BaseModel):
    id: int
    sender_id: int
    pickup_address: str
    delivery_address: str
    pickup_country: Optional[str]
    delivery_country: Optional[str]
    weight_kg: Optional[float]
    description: Optional[str]
    status: ParcelStatus

    class Config:
        from_attributes = True


class TripSummary(BaseModel):
    id: int
    courier_id: int
    origin_address: str
    destination_address: str
    departure_time: Optional[datetime]
    estimated_arrival: Optional[datetime]
    available_capacity: Optional[CapacityTier]
    status: TripStatus
    locked_parcel_id: Optional[int]

    class Config:
        from_attributes = True


class MatchDetailResponse(BaseModel):
    """Match with the parcel and trip it pairs."""
    match: MatchResponse
    parcel: ParcelSummary
    trip: TripSummary

    class Config:
        from_attributes = True


class MatchListResponse(BaseModel):
    matches: List[MatchDetailResponse]
    total: int


class MatchCreationResponse(BaseModel):
    """Result of a find-matches trigger."""
    created: List[MatchResponse]
    total: int


class AcceptMatchResponse(BaseModel):
    match: MatchResponse
    pricing: Optional[PricingEstimateResponse] = None
    warnings: List[str] = []


class TripRefreshResponse(BaseModel):
    """Result of re-evaluating matches after a trip edit."""
    trip_id: int
    invalidated: int
    rescored: List[int]
    expired: List[int]
    created: List[MatchResponse]
