"""
Parcel/trip compatibility scoring.

A score is a weighted sum of four 0-100 sub-scores:

    route alignment     0.40
    proximity           0.30
    time compatibility  0.20
    capacity fit        0.10

Missing inputs fall back to fixed neutral values so that matches can still
be produced without geocoding or a declared schedule.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from backend.app.core.config import MatchingConfig
from backend.app.domain.matching.distance import (
    haversine_distance,
    proximity_score,
    route_alignment_score,
)
from backend.app.models.trip_enums import CapacityTier

logger = logging.getLogger(__name__)

# Weights (sum to 1.0, applied as-is)
ROUTE_ALIGNMENT_WEIGHT = 0.4
PROXIMITY_WEIGHT = 0.3
TIME_WEIGHT = 0.2
CAPACITY_WEIGHT = 0.1

# Caps (km)
ROUTE_MAX_PICKUP_KM = 10.0
ROUTE_MAX_DELIVERY_KM = 10.0
PROXIMITY_MAX_KM = 50.0

# Neutral defaults
DEFAULT_ROUTE_ALIGNMENT_SCORE = 50.0
DEFAULT_PROXIMITY_SCORE = 40.0
DEFAULT_TIME_SCORE = 70.0
DEFAULT_CAPACITY_SCORE = 70.0
UNKNOWN_SIZE_CAPACITY_SCORE = 60.0

# Parcel size classes (kg, inclusive upper bounds)
SMALL_PARCEL_MAX_KG = 2.0
MEDIUM_PARCEL_MAX_KG = 10.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def classify_parcel_size(weight_kg: Optional[float]) -> Optional[CapacityTier]:
    """Size class from weight, or None when the weight is unknown."""
    if weight_kg is None:
        return None
    if weight_kg <= SMALL_PARCEL_MAX_KG:
        return CapacityTier.SMALL
    if weight_kg <= MEDIUM_PARCEL_MAX_KG:
        return CapacityTier.MEDIUM
    return CapacityTier.LARGE


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _has_coordinates(*values) -> bool:
    return all(v is not None for v in values)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Sub-scores of one parcel/trip pairing and their weighted total."""
    route_alignment: float
    proximity: float
    time_compatibility: float
    capacity_fit: float
    total: float

    def contributions(self) -> Dict[str, float]:
        return {
            "route_alignment": round(self.route_alignment * ROUTE_ALIGNMENT_WEIGHT, 2),
            "proximity": round(self.proximity * PROXIMITY_WEIGHT, 2),
            "time_compatibility": round(self.time_compatibility * TIME_WEIGHT, 2),
            "capacity_fit": round(self.capacity_fit * CAPACITY_WEIGHT, 2),
        }


class ScoringEngine:
    """
    Deterministic scorer for parcel/trip pairs.

    Args:
        config: Matching configuration (threshold)
        clock: Callable returning the current time; defaults to UTC now.
            Injected so scores are reproducible.
    """

    def __init__(self, config: MatchingConfig, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.clock = clock or utc_now

    def score(self, parcel, trip) -> float:
        return self.breakdown(parcel, trip).total

    def is_valid(self, score: float) -> bool:
        return score >= self.config.min_score_threshold

    def breakdown(self, parcel, trip) -> ScoreBreakdown:
        route = self.route_alignment(parcel, trip)
        proximity = self.proximity(parcel, trip)
        timing = self.time_compatibility(trip)
        capacity = self.capacity_fit(parcel, trip)

        total = (
            route * ROUTE_ALIGNMENT_WEIGHT
            + proximity * PROXIMITY_WEIGHT
            + timing * TIME_WEIGHT
            + capacity * CAPACITY_WEIGHT
        )
        result = ScoreBreakdown(
            route_alignment=route,
            proximity=proximity,
            time_compatibility=timing,
            capacity_fit=capacity,
            total=round(total, 2),
        )
        logger.debug(
            "Scored parcel %s against trip %s: %.2f %s",
            parcel.id, trip.id, result.total, result.contributions(),
        )
        return result

    def route_alignment(self, parcel, trip) -> float:
        if not _has_coordinates(
            parcel.pickup_latitude, parcel.pickup_longitude,
            parcel.delivery_latitude, parcel.delivery_longitude,
            trip.origin_latitude, trip.origin_longitude,
            trip.destination_latitude, trip.destination_longitude,
        ):
            return DEFAULT_ROUTE_ALIGNMENT_SCORE

        return route_alignment_score(
            (parcel.pickup_latitude, parcel.pickup_longitude),
            (parcel.delivery_latitude, parcel.delivery_longitude),
            (trip.origin_latitude, trip.origin_longitude),
            (trip.destination_latitude, trip.destination_longitude),
            max_pickup_km=ROUTE_MAX_PICKUP_KM,
            max_delivery_km=ROUTE_MAX_DELIVERY_KM,
        )

    def proximity(self, parcel, trip) -> float:
        if not _has_coordinates(
            parcel.pickup_latitude, parcel.pickup_longitude,
            parcel.delivery_latitude, parcel.delivery_longitude,
            trip.origin_latitude, trip.origin_longitude,
            trip.destination_latitude, trip.destination_longitude,
        ):
            return DEFAULT_PROXIMITY_SCORE

        pickup_km = haversine_distance(
            parcel.pickup_latitude, parcel.pickup_longitude,
            trip.origin_latitude, trip.origin_longitude,
        )
        delivery_km = haversine_distance(
            parcel.delivery_latitude, parcel.delivery_longitude,
            trip.destination_latitude, trip.destination_longitude,
        )
        return (proximity_score(pickup_km, PROXIMITY_MAX_KM) + proximity_score(delivery_km, PROXIMITY_MAX_KM)) / 2

    def time_compatibility(self, trip) -> float:
        if trip.departure_time is None:
            return DEFAULT_TIME_SCORE

        hours_until_departure = (
            _as_utc(trip.departure_time) - _as_utc(self.clock())
        ).total_seconds() / 3600

        if hours_until_departure < 0:
            return 0.0  # Already departed
        if hours_until_departure < 1:
            return 30.0
        if hours_until_departure < 24:
            return 70.0
        return 90.0

    def capacity_fit(self, parcel, trip) -> float:
        if trip.available_capacity is None:
            return DEFAULT_CAPACITY_SCORE

        parcel_size = classify_parcel_size(parcel.weight_kg)
        if parcel_size is None:
            return UNKNOWN_SIZE_CAPACITY_SCORE

        headroom = CapacityTier(trip.available_capacity).level - parcel_size.level
        if headroom < 0:
            return 0.0  # Undersized trip
        if headroom == 0:
            return 100.0
        if headroom == 1:
            return 80.0
        return 60.0
