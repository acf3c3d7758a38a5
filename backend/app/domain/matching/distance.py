"""
Great-circle distance and distance-based scores for parcel/trip matching.

All functions are pure. Callers check coordinate presence before calling.
"""

import math
from typing import Tuple

# Radius of Earth in kilometers
EARTH_RADIUS_KM = 6371.0

# Route alignment cutoffs (km)
DEFAULT_MAX_PICKUP_KM = 10.0
DEFAULT_MAX_DELIVERY_KM = 10.0

Coordinates = Tuple[float, float]


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in kilometers
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def proximity_score(distance_km: float, max_distance_km: float) -> float:
    """
    Score closeness on a 0-100 scale.

    100 at zero distance, decaying linearly to 0 at `max_distance_km` and
    staying 0 beyond it.
    """
    if distance_km >= max_distance_km:
        return 0.0
    if distance_km <= 0:
        return 100.0
    return 100.0 * (1 - distance_km / max_distance_km)


def route_alignment_score(
    pickup: Coordinates,
    delivery: Coordinates,
    trip_origin: Coordinates,
    trip_destination: Coordinates,
    max_pickup_km: float = DEFAULT_MAX_PICKUP_KM,
    max_delivery_km: float = DEFAULT_MAX_DELIVERY_KM,
) -> float:
    """
    Score how well a parcel's endpoints sit on a trip's route.

    Returns 0 when either the pickup is farther than `max_pickup_km` from the
    trip origin or the delivery is farther than `max_delivery_km` from the
    trip destination. Otherwise the two proximity scores are averaged.
    """
    pickup_km = haversine_distance(pickup[0], pickup[1], trip_origin[0], trip_origin[1])
    delivery_km = haversine_distance(delivery[0], delivery[1], trip_destination[0], trip_destination[1])

    if pickup_km > max_pickup_km or delivery_km > max_delivery_km:
        return 0.0

    return (proximity_score(pickup_km, max_pickup_km) + proximity_score(delivery_km, max_delivery_km)) / 2


def is_within_distance(lat1: float, lon1: float, lat2: float, lon2: float, threshold_km: float) -> bool:
    return haversine_distance(lat1, lon1, lat2, lon2) <= threshold_km
