"""
Trip database model.

A trip is a courier's journey offering spare carrying capacity.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import TripStatus, CapacityTier


class Trip(Base):
    """
    Trip model.

    `locked_parcel_id` is set when the courier accepts a match and makes
    the trip exclusive to that parcel (one parcel per trip).
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    courier_id = Column(Integer, nullable=False, index=True)

    # Origin
    origin_address = Column(Text, nullable=False)
    origin_latitude = Column(Float, nullable=True)
    origin_longitude = Column(Float, nullable=True)
    origin_country = Column(String(100), nullable=True, index=True)

    # Destination
    destination_address = Column(Text, nullable=False)
    destination_latitude = Column(Float, nullable=True)
    destination_longitude = Column(Float, nullable=True)
    destination_country = Column(String(100), nullable=True, index=True)

    # Schedule and capacity
    departure_time = Column(DateTime(timezone=True), nullable=True)
    estimated_arrival = Column(DateTime(timezone=True), nullable=True)
    available_capacity = Column(Enum(CapacityTier), nullable=True)

    # Lifecycle
    status = Column(Enum(TripStatus), default=TripStatus.SCHEDULED, nullable=False, index=True)
    locked_parcel_id = Column(Integer, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Trip(id={self.id}, courier_id={self.courier_id}, status='{self.status.value}', locked_parcel_id={self.locked_parcel_id})>"
