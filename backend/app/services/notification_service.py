"""
Notification Service.

Match notifications for couriers and senders. The lifecycle manager only
knows the `Notifier` protocol; `InAppNotifier` is the default
implementation and persists in-app Notification rows.
"""

import logging
from typing import Protocol

from backend.app.db.store import SqlAlchemyStore
from backend.app.models.notification import NotificationType

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify_courier_of_match(self, match_id: int) -> None:
        ...

    async def notify_sender_of_accepted_match(self, match_id: int) -> None:
        ...


class InAppNotifier:
    """Writes match notifications to the notifications table."""

    def __init__(self, store: SqlAlchemyStore):
        self.store = store

    async def notify_courier_of_match(self, match_id: int) -> None:
        details = await self.store.get_match_details(match_id)
        if details is None:
            logger.warning("Match %s vanished before courier notification", match_id)
            return

        match, parcel, trip = details.match, details.parcel, details.trip
        await self.store.add_notification(
            user_id=trip.courier_id,
            title="New parcel match",
            message=(
                f"A parcel from {parcel.pickup_address} to {parcel.delivery_address} "
                f"matches your trip ({match.match_score:.0f}% match)."
            ),
            type=NotificationType.MATCH_FOUND,
            metadata={"match_id": match.id, "parcel_id": parcel.id, "trip_id": trip.id},
        )
        logger.info("Courier %s notified of match %s", trip.courier_id, match.id)

    async def notify_sender_of_accepted_match(self, match_id: int) -> None:
        details = await self.store.get_match_details(match_id)
        if details is None:
            logger.warning("Match %s vanished before sender notification", match_id)
            return

        match, parcel, trip = details.match, details.parcel, details.trip
        message = (
            f"A courier travelling from {trip.origin_address} to {trip.destination_address} "
            f"accepted your parcel."
        )
        if match.total_amount is not None:
            message += f" Total: {match.total_amount:.2f} {match.currency}."

        await self.store.add_notification(
            user_id=parcel.sender_id,
            title="Your parcel has been matched",
            message=message,
            type=NotificationType.MATCH_ACCEPTED,
            metadata={"match_id": match.id, "parcel_id": parcel.id, "trip_id": trip.id},
        )
        logger.info("Sender %s notified of accepted match %s", parcel.sender_id, match.id)
