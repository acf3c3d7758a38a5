"""
Match lifecycle orchestration.

Creates pending matches from scored candidates and drives the
accept / reject / expire transitions, including exclusive trip locking.

State machine per match:
    PENDING  -> ACCEPTED | REJECTED
    ACCEPTED -> EXPIRED   (trip edit drops the score below threshold)
    REJECTED, EXPIRED     terminal
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.app.core.config import MatchingConfig
from backend.app.core.exceptions import (
    ConflictError,
    InsufficientPermissionsError,
    InternalError,
    MatchAlreadyDecidedError,
    ResourceNotFoundError,
)
from backend.app.db.store import SqlAlchemyStore
from backend.app.domain.matching.finder import CandidateFinder
from backend.app.domain.matching.scoring import ScoreBreakdown, ScoringEngine
from backend.app.domain.pricing.pricing_calculator import PricingCalculator, PricingResult
from backend.app.models.match import ParcelTripMatch
from backend.app.models.match_enums import MatchStatus, PaymentStatus
from backend.app.models.parcel_enums import ParcelStatus
from backend.app.models.trip_enums import TripStatus
from backend.app.services.notification_dispatcher import NotificationDispatcher
from backend.app.services.notification_service import Notifier

logger = logging.getLogger(__name__)

MATCH_NOT_PENDING = "Match is not pending (already accepted or rejected)"
PARCEL_UNAVAILABLE = "Parcel is no longer available (already matched or cancelled)"
TRIP_LOCKED = "This trip is already locked to another parcel"


class MatchStateMachine:
    ALLOWED_TRANSITIONS = {
        MatchStatus.PENDING: [MatchStatus.ACCEPTED, MatchStatus.REJECTED],
        MatchStatus.ACCEPTED: [MatchStatus.EXPIRED],
        MatchStatus.REJECTED: [],
        MatchStatus.EXPIRED: [],
    }

    @staticmethod
    def can_transition(current_status: MatchStatus, new_status: MatchStatus) -> bool:
        return new_status in MatchStateMachine.ALLOWED_TRANSITIONS.get(current_status, [])


@dataclass
class AcceptOutcome:
    """Accepted match plus anything that went wrong after the commit."""
    match: ParcelTripMatch
    pricing: Optional[PricingResult] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class TripUpdateSummary:
    invalidated: int = 0
    rescored: List[int] = field(default_factory=list)
    expired: List[int] = field(default_factory=list)
    created: List[ParcelTripMatch] = field(default_factory=list)


@contextmanager
def _store_errors(operation: str):
    try:
        yield
    except SQLAlchemyError as e:
        logger.exception("Store failure during %s", operation)
        raise InternalError(
            f"Store failure during {operation}",
            details={"operation": operation},
        ) from e


class MatchLifecycleManager:
    """
    Orchestrates match creation and state transitions.

    Notifications are submitted to the dispatcher and never awaited, so a
    failing notifier cannot fail or roll back a lifecycle operation.

    Args:
        store: Persistence gateway
        config: Matching configuration
        notifier: Courier/sender notification channel
        dispatcher: Background executor for notifier calls
        scoring_engine, finder, pricing: Collaborators, built from the store
            and config when omitted
    """

    def __init__(
        self,
        store: SqlAlchemyStore,
        config: MatchingConfig,
        notifier: Notifier,
        dispatcher: NotificationDispatcher,
        scoring_engine: Optional[ScoringEngine] = None,
        finder: Optional[CandidateFinder] = None,
        pricing: Optional[PricingCalculator] = None,
    ):
        self.store = store
        self.config = config
        self.notifier = notifier
        self.dispatcher = dispatcher
        self.scoring_engine = scoring_engine or ScoringEngine(config)
        self.finder = finder or CandidateFinder(store)
        self.pricing = pricing or PricingCalculator(store, config)

    # Create

    async def create_matches_for_parcel(self, parcel_id: int) -> List[ParcelTripMatch]:
        """
        Score every candidate trip for a parcel and persist the valid ones.

        Returns:
            Newly created PENDING matches
        """
        with _store_errors("create_matches_for_parcel"):
            parcel = await self.store.get_parcel(parcel_id)
            if parcel is None:
                raise ResourceNotFoundError("Parcel", parcel_id)

            trips = await self.finder.candidate_trips_for_parcel(parcel_id)
            created = []
            for trip in trips:
                match = await self._create_match(parcel, trip)
                if match is not None:
                    created.append(match)

        logger.info(
            "Parcel %s: %s candidate trips, %s matches created",
            parcel_id, len(trips), len(created),
        )
        return created

    async def create_matches_for_trip(self, trip_id: int) -> List[ParcelTripMatch]:
        """
        Score every candidate parcel for a trip and persist the valid ones.

        Returns:
            Newly created PENDING matches
        """
        with _store_errors("create_matches_for_trip"):
            trip = await self.store.get_trip(trip_id)
            if trip is None:
                raise ResourceNotFoundError("Trip", trip_id)

            parcels = await self.finder.candidate_parcels_for_trip(trip_id)
            created = []
            for parcel in parcels:
                match = await self._create_match(parcel, trip)
                if match is not None:
                    created.append(match)

        logger.info(
            "Trip %s: %s candidate parcels, %s matches created",
            trip_id, len(parcels), len(created),
        )
        return created

    async def _create_match(self, parcel, trip) -> Optional[ParcelTripMatch]:
        score = self.scoring_engine.score(parcel, trip)
        if not self.scoring_engine.is_valid(score):
            logger.debug(
                "Parcel %s / trip %s scored %.2f, below threshold %s",
                parcel.id, trip.id, score, self.config.min_score_threshold,
            )
            return None

        try:
            async with self.store.transaction() as tx:
                match = await tx.insert_match(parcel.id, trip.id, score, matched_at=self.scoring_engine.clock())
        except IntegrityError:
            # A live match for the pair already exists
            logger.info("Live match for parcel %s / trip %s already exists", parcel.id, trip.id)
            return None

        self.dispatcher.submit(self.notifier.notify_courier_of_match, match.id)
        return match

    # Accept / reject

    async def accept(self, match_id: int, acting_courier_id: int) -> AcceptOutcome:
        """
        Accept a pending match on behalf of the trip courier.

        Locks the trip to the parcel, claims the parcel, stamps the match with
        its pricing snapshot and rejects every competing pending match, all in
        one transaction. Each write is conditional, so a concurrent accept
        that got there first turns this one into a conflict.

        Raises:
            ResourceNotFoundError: Match, trip or parcel missing
            InsufficientPermissionsError: Acting user is not the trip courier
            MatchAlreadyDecidedError: Match is no longer pending
            ConflictError: Parcel taken or trip locked to another parcel
            InternalError: Store failure before or during the commit
        """
        with _store_errors("accept"):
            match, trip = await self._load_for_decision(match_id, acting_courier_id, "accept")

            parcel = await self.store.get_parcel(match.parcel_id)
            if parcel is None:
                raise ResourceNotFoundError("Parcel", match.parcel_id)
            if parcel.status != ParcelStatus.PENDING:
                raise ConflictError(PARCEL_UNAVAILABLE, details={"parcel_id": parcel.id})
            if trip.locked_parcel_id is not None and trip.locked_parcel_id != parcel.id:
                raise ConflictError(TRIP_LOCKED, details={"trip_id": trip.id})

            warnings: List[str] = []
            pricing = await self._price(parcel, warnings)
            snapshot = self._pricing_snapshot(pricing)
            accepted_at = self.scoring_engine.clock()

            try:
                async with self.store.transaction() as tx:
                    if not await tx.lock_trip(trip.id, parcel.id):
                        self._log_conflict(match_id, "trip lock")
                        raise ConflictError(TRIP_LOCKED, details={"trip_id": trip.id})
                    if not await tx.claim_parcel(parcel.id, trip.id):
                        self._log_conflict(match_id, "parcel claim")
                        raise ConflictError(PARCEL_UNAVAILABLE, details={"parcel_id": parcel.id})
                    if not await tx.transition_match(
                        match.id,
                        MatchStatus.PENDING,
                        MatchStatus.ACCEPTED,
                        accepted_at=accepted_at,
                        **snapshot,
                    ):
                        self._log_conflict(match_id, "match transition")
                        raise ConflictError(MATCH_NOT_PENDING, details={"match_id": match.id})

                    rejected = await tx.reject_pending_matches(
                        parcel_id=parcel.id, trip_id=trip.id, exclude_match_id=match.id,
                    )
            except IntegrityError as e:
                self._log_conflict(match_id, "unique index")
                raise ConflictError(MATCH_NOT_PENDING, details={"match_id": match.id}) from e

        logger.info(
            "Match %s accepted: trip %s locked to parcel %s, %s competing matches rejected",
            match.id, trip.id, parcel.id, rejected,
        )

        try:
            async with self.store.transaction() as tx:
                await tx.insert_status_history(
                    parcel.id,
                    ParcelStatus.MATCHED,
                    f"Matched with trip {trip.id}. Courier accepted the match.",
                )
        except SQLAlchemyError:
            logger.error("Status history for parcel %s not recorded", parcel.id, exc_info=True)
            warnings.append("Status history could not be recorded")

        self.dispatcher.submit(self.notifier.notify_sender_of_accepted_match, match.id)

        try:
            accepted = await self.store.get_match(match.id)
        except SQLAlchemyError:
            logger.error("Accepted match %s could not be reloaded", match.id, exc_info=True)
            warnings.append("Accepted match could not be reloaded")
            accepted = None

        if accepted is None:
            # Committed values, applied to the pre-accept snapshot
            accepted = match
            accepted.status = MatchStatus.ACCEPTED
            accepted.accepted_at = accepted_at
            for key, value in snapshot.items():
                setattr(accepted, key, value)
        return AcceptOutcome(match=accepted, pricing=pricing, warnings=warnings)

    async def reject(self, match_id: int, acting_courier_id: int) -> ParcelTripMatch:
        """
        Reject a pending match. The parcel stays PENDING for other trips.

        Raises:
            ResourceNotFoundError: Match or trip missing
            InsufficientPermissionsError: Acting user is not the trip courier
            MatchAlreadyDecidedError: Match is no longer pending
        """
        with _store_errors("reject"):
            match, trip = await self._load_for_decision(match_id, acting_courier_id, "reject")

            async with self.store.transaction() as tx:
                if not await tx.transition_match(match.id, MatchStatus.PENDING, MatchStatus.REJECTED):
                    self._log_conflict(match_id, "match transition")
                    raise ConflictError(MATCH_NOT_PENDING, details={"match_id": match.id})

            logger.info("Match %s rejected by courier %s", match.id, acting_courier_id)
            return await self.store.get_match(match.id)

    async def _load_for_decision(self, match_id: int, acting_courier_id: int, action: str):
        match = await self.store.get_match(match_id)
        if match is None:
            raise ResourceNotFoundError("Match", match_id)

        trip = await self.store.get_trip(match.trip_id)
        if trip is None:
            raise ResourceNotFoundError("Trip", match.trip_id)
        if trip.courier_id != acting_courier_id:
            raise InsufficientPermissionsError(
                f"Forbidden: Only the trip courier can {action} matches",
                details={"match_id": match_id},
            )

        target = MatchStatus.ACCEPTED if action == "accept" else MatchStatus.REJECTED
        if not MatchStateMachine.can_transition(match.status, target):
            raise MatchAlreadyDecidedError(match.id, match.status.value)

        return match, trip

    async def _price(self, parcel, warnings: List[str]) -> Optional[PricingResult]:
        try:
            pricing = await self.pricing.calculate_for_parcel(parcel)
        except Exception:
            # Accept proceeds without a price
            logger.exception("Pricing failed for parcel %s", parcel.id)
            warnings.append("Pricing could not be calculated")
            return None

        if pricing is None:
            warnings.append("No delivery pricing is configured for this route")
        return pricing

    @staticmethod
    def _pricing_snapshot(pricing: Optional[PricingResult]) -> dict:
        if pricing is None:
            return {}
        return {
            "delivery_fee": pricing.delivery_fee,
            "platform_fee": pricing.platform_fee,
            "total_amount": pricing.total_amount,
            "currency": pricing.currency,
            "payment_status": PaymentStatus.PENDING,
        }

    @staticmethod
    def _log_conflict(match_id: int, step: str):
        logger.warning("Accept/reject of match %s lost a race at %s", match_id, step)

    # Trip edits

    async def on_trip_updated(self, trip_id: int) -> TripUpdateSummary:
        """
        Re-evaluate matches after a scheduled trip was edited.

        Pending matches are dropped and recreated from scratch. Accepted
        matches are rescored; one that falls below threshold expires, its
        parcel goes back to PENDING and the trip lock is released.
        """
        summary = TripUpdateSummary()

        with _store_errors("on_trip_updated"):
            trip = await self.store.get_trip(trip_id)
            if trip is None:
                raise ResourceNotFoundError("Trip", trip_id)
            if trip.status != TripStatus.SCHEDULED:
                logger.info("Trip %s is %s, skipping match refresh", trip_id, trip.status.value)
                return summary

            async with self.store.transaction() as tx:
                summary.invalidated = await tx.delete_pending_matches(trip.id)

            for match in await self.store.list_accepted_matches(trip.id):
                parcel = await self.store.get_parcel(match.parcel_id)
                if parcel is None:
                    logger.warning("Accepted match %s points at missing parcel %s", match.id, match.parcel_id)
                    continue

                score = self.scoring_engine.score(parcel, trip)
                if self.scoring_engine.is_valid(score):
                    async with self.store.transaction() as tx:
                        await tx.update_match(match.id, match_score=score)
                    summary.rescored.append(match.id)
                    continue

                if await self._expire(match, parcel, trip, score):
                    summary.expired.append(match.id)

        summary.created = await self.create_matches_for_trip(trip.id)

        logger.info(
            "Trip %s refreshed: %s pending dropped, %s rescored, %s expired, %s created",
            trip.id, summary.invalidated, len(summary.rescored), len(summary.expired), len(summary.created),
        )
        return summary

    async def _expire(self, match, parcel, trip, score: float) -> bool:
        async with self.store.transaction() as tx:
            if not await tx.transition_match(
                match.id, MatchStatus.ACCEPTED, MatchStatus.EXPIRED, match_score=score,
            ):
                return False

            released = await tx.release_parcel(parcel.id, trip.id)
            if released:
                await tx.release_trip_lock(trip.id, parcel.id)
                await tx.insert_status_history(
                    parcel.id,
                    ParcelStatus.PENDING,
                    f"Match with trip {trip.id} expired after the trip was updated.",
                )
            else:
                logger.warning(
                    "Match %s expired but parcel %s is no longer MATCHED to trip %s; trip lock kept",
                    match.id, parcel.id, trip.id,
                )

        logger.info(
            "Match %s expired (score %.2f < %s), parcel %s released: %s",
            match.id, score, self.config.min_score_threshold, parcel.id, released,
        )
        return True

    async def score_pair(self, parcel_id: int, trip_id: int) -> ScoreBreakdown:
        """Score a parcel against a trip without persisting anything."""
        with _store_errors("score_pair"):
            parcel = await self.store.get_parcel(parcel_id)
            if parcel is None:
                raise ResourceNotFoundError("Parcel", parcel_id)
            trip = await self.store.get_trip(trip_id)
            if trip is None:
                raise ResourceNotFoundError("Trip", trip_id)

        return self.scoring_engine.breakdown(parcel, trip)
