"""
Parcel/trip match database model.

Uniqueness is enforced by partial indexes so that rejected and expired
matches remain as history while live offers stay exclusive.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.match_enums import MatchStatus, PaymentStatus

LIVE_STATUS_CLAUSE = "status IN ('PENDING', 'ACCEPTED')"
ACCEPTED_STATUS_CLAUSE = "status = 'ACCEPTED'"


class ParcelTripMatch(Base):
    """
    Match model.

    A scored candidate pairing of one parcel and one trip. Never deleted
    once decided; only pending rows are dropped when a trip is edited.
    """
    __tablename__ = "parcel_trip_matches"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    parcel_id = Column(Integer, ForeignKey('parcels.id', ondelete="CASCADE"), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey('trips.id', ondelete="CASCADE"), nullable=False, index=True)

    # Scoring
    match_score = Column(Float, nullable=False)

    # Lifecycle
    status = Column(Enum(MatchStatus), default=MatchStatus.PENDING, nullable=False, index=True)
    matched_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    # Pricing snapshot (set on accept)
    delivery_fee = Column(Float, nullable=True)
    platform_fee = Column(Float, nullable=True)
    total_amount = Column(Float, nullable=True)
    currency = Column(String(3), nullable=True)
    payment_status = Column(Enum(PaymentStatus), nullable=True)

    __table_args__ = (
        # One live offer per (parcel, trip)
        Index('ix_matches_live_pair', 'parcel_id', 'trip_id', unique=True,
              postgresql_where=text(LIVE_STATUS_CLAUSE),
              sqlite_where=text(LIVE_STATUS_CLAUSE)),
        # One accepted match per parcel
        Index('ix_matches_accepted_parcel', 'parcel_id', unique=True,
              postgresql_where=text(ACCEPTED_STATUS_CLAUSE),
              sqlite_where=text(ACCEPTED_STATUS_CLAUSE)),
        # One accepted match per trip
        Index('ix_matches_accepted_trip', 'trip_id', unique=True,
              postgresql_where=text(ACCEPTED_STATUS_CLAUSE),
              sqlite_where=text(ACCEPTED_STATUS_CLAUSE)),
    )

    def __repr__(self):
        return f"<ParcelTripMatch(id={self.id}, parcel_id={self.parcel_id}, trip_id={self.trip_id}, status='{self.status.value}')>"
