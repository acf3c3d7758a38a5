"""
Parcel status history model.

Append-only timeline of parcel status changes.
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Enum, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.parcel_enums import ParcelStatus


class ParcelStatusHistory(Base):
    __tablename__ = "parcel_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    parcel_id = Column(Integer, ForeignKey('parcels.id', ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(ParcelStatus), nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<ParcelStatusHistory(parcel_id={self.parcel_id}, status='{self.status.value}')>"
