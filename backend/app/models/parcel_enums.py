"""
Parcel enumerations.
"""

import enum


class ParcelStatus(str, enum.Enum):
    """
    Parcel status enumeration.

    Status flow:
        PENDING → MATCHED → PICKED_UP → IN_TRANSIT → DELIVERED
        Any status can transition to CANCELLED
    """
    PENDING = "PENDING"
    MATCHED = "MATCHED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# Statuses in which a parcel carries a matched_trip_id
ASSIGNED_PARCEL_STATUSES = (
    ParcelStatus.MATCHED,
    ParcelStatus.PICKED_UP,
    ParcelStatus.IN_TRANSIT,
    ParcelStatus.DELIVERED,
)
