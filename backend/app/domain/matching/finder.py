"""
Candidate queries for match creation.

Read-only; nothing here writes to the store.
"""

from typing import List

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.db.store import SqlAlchemyStore
from backend.app.models.parcel import Parcel
from backend.app.models.trip import Trip
from backend.app.models.parcel_enums import ParcelStatus
from backend.app.models.trip_enums import OPEN_TRIP_STATUSES


class CandidateFinder:

    def __init__(self, store: SqlAlchemyStore):
        self.store = store

    async def candidate_trips_for_parcel(self, parcel_id: int) -> List[Trip]:
        """
        Open, unlocked trips without a live match against the parcel.

        Returns an empty list when the parcel is no longer PENDING.

        Raises:
            ResourceNotFoundError: If the parcel does not exist
        """
        parcel = await self.store.get_parcel(parcel_id)
        if parcel is None:
            raise ResourceNotFoundError("Parcel", parcel_id)
        if parcel.status != ParcelStatus.PENDING:
            return []

        trips = await self.store.list_open_trips()
        live = await self.store.list_live_matches(parcel_id=parcel_id)
        matched_trip_ids = {m.trip_id for m in live}

        return [t for t in trips if t.id not in matched_trip_ids]

    async def candidate_parcels_for_trip(self, trip_id: int) -> List[Parcel]:
        """
        Pending parcels without a live match against the trip.

        Returns an empty list when the trip is locked or not open.

        Raises:
            ResourceNotFoundError: If the trip does not exist
        """
        trip = await self.store.get_trip(trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", trip_id)
        if trip.locked_parcel_id is not None or trip.status not in OPEN_TRIP_STATUSES:
            return []

        parcels = await self.store.list_pending_parcels()
        live = await self.store.list_live_matches(trip_id=trip_id)
        matched_parcel_ids = {m.parcel_id for m in live}

        return [p for p in parcels if p.id not in matched_parcel_ids]
