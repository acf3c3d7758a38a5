"""
Persistence gateway for the matching core.

Reads open a short-lived session each. Writes are grouped into units via
`SqlAlchemyStore.transaction()`, which commits on exit and rolls back when
the block raises. Conditional (compare-and-swap) writes report whether they
applied through the UPDATE rowcount so callers can re-verify preconditions
inside the unit.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator, Iterable, List, Optional

from sqlalchemy import select, update, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.models.parcel import Parcel
from backend.app.models.trip import Trip
from backend.app.models.match import ParcelTripMatch
from backend.app.models.parcel_status_history import ParcelStatusHistory
from backend.app.models.delivery_pricing import DeliveryPricing
from backend.app.models.notification import Notification, NotificationType
from backend.app.models.parcel_enums import ParcelStatus
from backend.app.models.trip_enums import OPEN_TRIP_STATUSES
from backend.app.models.match_enums import MatchStatus, LIVE_MATCH_STATUSES

logger = logging.getLogger(__name__)


@dataclass
class MatchWithTripAndParcel:
    """A match together with the parcel and trip it pairs."""
    match: ParcelTripMatch
    parcel: Parcel
    trip: Trip


class StoreTransaction:
    """Write operations bound to one open transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_match(
        self,
        parcel_id: int,
        trip_id: int,
        match_score: float,
        matched_at: datetime,
    ) -> ParcelTripMatch:
        """
        Insert a PENDING match.

        Raises:
            IntegrityError: If a live match already exists for the pair
        """
        match = ParcelTripMatch(
            parcel_id=parcel_id,
            trip_id=trip_id,
            match_score=match_score,
            status=MatchStatus.PENDING,
            matched_at=matched_at,
            accepted_at=None,
            delivery_fee=None,
            platform_fee=None,
            total_amount=None,
            currency=None,
            payment_status=None,
        )
        self.session.add(match)
        await self.session.flush()  # Surfaces unique index violations here
        return match

    async def update_match(self, match_id: int, **values) -> bool:
        result = await self.session.execute(
            update(ParcelTripMatch).where(ParcelTripMatch.id == match_id).values(**values)
        )
        return result.rowcount == 1

    async def update_parcel(self, parcel_id: int, **values) -> bool:
        result = await self.session.execute(
            update(Parcel).where(Parcel.id == parcel_id).values(**values)
        )
        return result.rowcount == 1

    async def update_trip(self, trip_id: int, **values) -> bool:
        result = await self.session.execute(
            update(Trip).where(Trip.id == trip_id).values(**values)
        )
        return result.rowcount == 1

    async def insert_status_history(
        self,
        parcel_id: int,
        status: ParcelStatus,
        notes: Optional[str] = None,
    ) -> ParcelStatusHistory:
        entry = ParcelStatusHistory(parcel_id=parcel_id, status=status, notes=notes)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def lock_trip(self, trip_id: int, parcel_id: int) -> bool:
        """
        Lock a trip to a parcel.

        Applies only while the trip is unlocked or already locked to the
        same parcel.
        """
        result = await self.session.execute(
            update(Trip)
            .where(
                Trip.id == trip_id,
                or_(Trip.locked_parcel_id.is_(None), Trip.locked_parcel_id == parcel_id),
            )
            .values(locked_parcel_id=parcel_id)
        )
        return result.rowcount == 1

    async def release_trip_lock(self, trip_id: int, parcel_id: int) -> bool:
        """Clear the trip lock only if it still points at the parcel."""
        result = await self.session.execute(
            update(Trip)
            .where(Trip.id == trip_id, Trip.locked_parcel_id == parcel_id)
            .values(locked_parcel_id=None)
        )
        return result.rowcount == 1

    async def claim_parcel(self, parcel_id: int, trip_id: int) -> bool:
        """Move a PENDING parcel to MATCHED against the trip."""
        result = await self.session.execute(
            update(Parcel)
            .where(Parcel.id == parcel_id, Parcel.status == ParcelStatus.PENDING)
            .values(status=ParcelStatus.MATCHED, matched_trip_id=trip_id)
        )
        return result.rowcount == 1

    async def release_parcel(self, parcel_id: int, trip_id: int) -> bool:
        """Return a MATCHED parcel to PENDING if it is still matched to the trip."""
        result = await self.session.execute(
            update(Parcel)
            .where(
                Parcel.id == parcel_id,
                Parcel.matched_trip_id == trip_id,
                Parcel.status == ParcelStatus.MATCHED,
            )
            .values(status=ParcelStatus.PENDING, matched_trip_id=None)
        )
        return result.rowcount == 1

    async def transition_match(
        self,
        match_id: int,
        from_status: MatchStatus,
        to_status: MatchStatus,
        **values,
    ) -> bool:
        result = await self.session.execute(
            update(ParcelTripMatch)
            .where(ParcelTripMatch.id == match_id, ParcelTripMatch.status == from_status)
            .values(status=to_status, **values)
        )
        return result.rowcount == 1

    async def reject_pending_matches(
        self,
        parcel_id: Optional[int] = None,
        trip_id: Optional[int] = None,
        exclude_match_id: Optional[int] = None,
    ) -> int:
        """
        Reject every PENDING match on the parcel or the trip, except one.

        The rows are locked in id order before the update, so concurrent
        accepts on crossing pairs wait on each other instead of deadlocking.
        """
        if parcel_id is None and trip_id is None:
            raise ValueError("parcel_id or trip_id is required")

        scope = []
        if parcel_id is not None:
            scope.append(ParcelTripMatch.parcel_id == parcel_id)
        if trip_id is not None:
            scope.append(ParcelTripMatch.trip_id == trip_id)

        query = select(ParcelTripMatch.id).where(ParcelTripMatch.status == MatchStatus.PENDING, or_(*scope))
        if exclude_match_id is not None:
            query = query.where(ParcelTripMatch.id != exclude_match_id)

        result = await self.session.execute(query.order_by(ParcelTripMatch.id).with_for_update())
        match_ids = list(result.scalars().all())
        if not match_ids:
            return 0

        result = await self.session.execute(
            update(ParcelTripMatch)
            .where(ParcelTripMatch.id.in_(match_ids), ParcelTripMatch.status == MatchStatus.PENDING)
            .values(status=MatchStatus.REJECTED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_pending_matches(self, trip_id: int) -> int:
        result = await self.session.execute(
            delete(ParcelTripMatch)
            .where(
                ParcelTripMatch.trip_id == trip_id,
                ParcelTripMatch.status == MatchStatus.PENDING,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def add_notification(
        self,
        user_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        metadata: Optional[dict] = None,
    ) -> Notification:
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            metadata_payload=metadata,
        )
        self.session.add(notif)
        await self.session.flush()
        return notif

    async def mark_notifications_read(
        self,
        user_id: int,
        read_at: datetime,
        notification_id: Optional[int] = None,
    ) -> int:
        """Mark one notification, or every unread one, as read for its recipient."""
        stmt = update(Notification).where(Notification.user_id == user_id)
        if notification_id is not None:
            stmt = stmt.where(Notification.id == notification_id)
        else:
            stmt = stmt.where(Notification.is_read.is_(False))

        result = await self.session.execute(
            stmt.values(is_read=True, read_at=read_at).execution_options(synchronize_session=False)
        )
        return result.rowcount


class SqlAlchemyStore:
    """
    Store backed by an async SQLAlchemy session factory.

    Args:
        session_factory: `async_sessionmaker` producing AsyncSession objects
        serialize_writes: Run write units one at a time in this process.
            Needed on SQLite, which allows a single writer.
    """

    def __init__(self, session_factory: async_sessionmaker, serialize_writes: bool = False):
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock() if serialize_writes else None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreTransaction]:
        guard = self._write_lock if self._write_lock is not None else nullcontext()
        async with guard:
            async with self._session_factory() as session:
                async with session.begin():
                    yield StoreTransaction(session)

    # Reads

    async def get_parcel(self, parcel_id: int) -> Optional[Parcel]:
        async with self._session_factory() as session:
            return await session.get(Parcel, parcel_id)

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        async with self._session_factory() as session:
            return await session.get(Trip, trip_id)

    async def get_match(self, match_id: int) -> Optional[ParcelTripMatch]:
        async with self._session_factory() as session:
            return await session.get(ParcelTripMatch, match_id)

    async def get_match_details(self, match_id: int) -> Optional[MatchWithTripAndParcel]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ParcelTripMatch, Parcel, Trip)
                .join(Parcel, Parcel.id == ParcelTripMatch.parcel_id)
                .join(Trip, Trip.id == ParcelTripMatch.trip_id)
                .where(ParcelTripMatch.id == match_id)
            )
            row = result.one_or_none()

        if row is None:
            return None
        return MatchWithTripAndParcel(match=row[0], parcel=row[1], trip=row[2])

    async def list_pending_parcels(self) -> List[Parcel]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Parcel)
                .where(Parcel.status == ParcelStatus.PENDING)
                .order_by(Parcel.created_at.desc(), Parcel.id.desc())
            )
            return list(result.scalars().all())

    async def list_open_trips(self) -> List[Trip]:
        """Scheduled or in-progress trips not yet locked to a parcel."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Trip)
                .where(
                    Trip.status.in_(OPEN_TRIP_STATUSES),
                    Trip.locked_parcel_id.is_(None),
                )
                .order_by(Trip.created_at.desc(), Trip.id.desc())
            )
            return list(result.scalars().all())

    async def list_live_matches(
        self,
        parcel_id: Optional[int] = None,
        trip_id: Optional[int] = None,
    ) -> List[ParcelTripMatch]:
        """PENDING and ACCEPTED matches for a parcel or trip."""
        return await self._select_matches(parcel_id, trip_id, LIVE_MATCH_STATUSES)

    async def list_accepted_matches(self, trip_id: int) -> List[ParcelTripMatch]:
        return await self._select_matches(None, trip_id, (MatchStatus.ACCEPTED,))

    async def list_matches(
        self,
        parcel_id: Optional[int] = None,
        trip_id: Optional[int] = None,
        statuses: Optional[Iterable[MatchStatus]] = None,
    ) -> List[MatchWithTripAndParcel]:
        """Matches with their parcel and trip, best score first."""
        query = (
            select(ParcelTripMatch, Parcel, Trip)
            .join(Parcel, Parcel.id == ParcelTripMatch.parcel_id)
            .join(Trip, Trip.id == ParcelTripMatch.trip_id)
        )
        if parcel_id is not None:
            query = query.where(ParcelTripMatch.parcel_id == parcel_id)
        if trip_id is not None:
            query = query.where(ParcelTripMatch.trip_id == trip_id)
        if statuses is not None:
            query = query.where(ParcelTripMatch.status.in_(list(statuses)))
        query = query.order_by(ParcelTripMatch.match_score.desc(), ParcelTripMatch.id)

        async with self._session_factory() as session:
            result = await session.execute(query)
            rows = result.all()

        return [MatchWithTripAndParcel(match=m, parcel=p, trip=t) for m, p, t in rows]

    async def get_pricing_rule(self, origin_country: str, destination_country: str) -> Optional[DeliveryPricing]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DeliveryPricing).where(
                    DeliveryPricing.origin_country == origin_country,
                    DeliveryPricing.destination_country == destination_country,
                )
            )
            return result.scalar_one_or_none()

    async def add_notification(self, user_id: int, title: str, message: str, **kwargs) -> Notification:
        async with self.transaction() as tx:
            return await tx.add_notification(user_id, title, message, **kwargs)

    async def list_notifications(self, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        """Newest first."""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def _select_matches(
        self,
        parcel_id: Optional[int],
        trip_id: Optional[int],
        statuses: Iterable[MatchStatus],
    ) -> List[ParcelTripMatch]:
        query = select(ParcelTripMatch).where(ParcelTripMatch.status.in_(list(statuses)))
        if parcel_id is not None:
            query = query.where(ParcelTripMatch.parcel_id == parcel_id)
        if trip_id is not None:
            query = query.where(ParcelTripMatch.trip_id == trip_id)

        async with self._session_factory() as session:
            result = await session.execute(query.order_by(ParcelTripMatch.id))
            return list(result.scalars().all())
