"""
Match-related enumerations.
"""

import enum


class MatchStatus(str, enum.Enum):
    """
    Parcel/trip match status.

    PENDING: Scored candidate offered to the trip courier
    ACCEPTED: Courier accepted, trip locked to the parcel
    REJECTED: Courier rejected, or a competing match was accepted
    EXPIRED: Accepted match whose score fell below threshold after a trip edit
    """
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


# A pair may hold at most one match in these statuses
LIVE_MATCH_STATUSES = (MatchStatus.PENDING, MatchStatus.ACCEPTED)


class PaymentStatus(str, enum.Enum):
    """Payment status of an accepted match's pricing snapshot."""
    PENDING = "PENDING"
    PAID = "PAID"
    REFUNDED = "REFUNDED"
    FAILED = "FAILED"
