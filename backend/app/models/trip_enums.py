"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    SCHEDULED = "SCHEDULED"  # Published by the courier, not yet departed
    IN_PROGRESS = "IN_PROGRESS"  # Courier is on the road
    COMPLETED = "COMPLETED"  # Journey finished
    CANCELLED = "CANCELLED"  # Trip cancelled


# Trips in these statuses can still take a parcel
OPEN_TRIP_STATUSES = (TripStatus.SCHEDULED, TripStatus.IN_PROGRESS)


class CapacityTier(str, enum.Enum):
    """
    Carrying capacity offered by a trip, also used as the parcel size class.

    Tiers are ordered: SMALL < MEDIUM < LARGE.
    """
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"

    @property
    def level(self) -> int:
        return _CAPACITY_LEVELS[self]


_CAPACITY_LEVELS = {
    CapacityTier.SMALL: 1,
    CapacityTier.MEDIUM: 2,
    CapacityTier.LARGE: 3,
}
