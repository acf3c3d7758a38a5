"""
Parcel database model.

A parcel is a sender's delivery request awaiting a carrying trip.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.parcel_enums import ParcelStatus


class Parcel(Base):
    """
    Parcel model.

    Owned by the sender. The matching lifecycle only ever writes
    `status` and `matched_trip_id`.
    """
    __tablename__ = "parcels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    sender_id = Column(Integer, nullable=False, index=True)

    # Pickup
    pickup_address = Column(Text, nullable=False)
    pickup_latitude = Column(Float, nullable=True)
    pickup_longitude = Column(Float, nullable=True)
    pickup_country = Column(String(100), nullable=True, index=True)

    # Delivery
    delivery_address = Column(Text, nullable=False)
    delivery_latitude = Column(Float, nullable=True)
    delivery_longitude = Column(Float, nullable=True)
    delivery_country = Column(String(100), nullable=True, index=True)

    # Physical properties
    description = Column(Text, nullable=True)
    weight_kg = Column(Float, nullable=True)
    dimensions = Column(String(100), nullable=True)  # e.g. "30x20x15 cm"
    estimated_value = Column(Float, nullable=True)

    # Lifecycle
    status = Column(Enum(ParcelStatus), default=ParcelStatus.PENDING, nullable=False, index=True)
    matched_trip_id = Column(Integer, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Parcel(id={self.id}, sender_id={self.sender_id}, status='{self.status.value}')>"
