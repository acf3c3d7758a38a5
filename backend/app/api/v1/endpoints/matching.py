"""
Matching API Endpoints.

Senders and couriers trigger match creation, list their matches, and
couriers accept or reject pending offers. Ownership is checked here; the
lifecycle manager re-checks courier ownership for decisions.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, status

from backend.app.core.dependencies import get_current_user, get_match_manager, get_store, is_admin
from backend.app.core.exceptions import InsufficientPermissionsError, ResourceNotFoundError
from backend.app.db.store import SqlAlchemyStore
from backend.app.domain.matching.lifecycle import MatchLifecycleManager
from backend.app.models.match_enums import MatchStatus
from backend.app.schemas.match import (
    AcceptMatchResponse,
    MatchCreationResponse,
    MatchDetailResponse,
    MatchListResponse,
    MatchResponse,
    TripRefreshResponse,
)
from backend.app.schemas.pricing import PricingEstimateResponse

router = APIRouter(prefix="/matching", tags=["Matching"])

# Statuses shown in match listings
LISTED_STATUSES = (MatchStatus.PENDING, MatchStatus.ACCEPTED, MatchStatus.REJECTED)


async def _get_owned_parcel(store: SqlAlchemyStore, parcel_id: int, current_user: dict):
    parcel = await store.get_parcel(parcel_id)
    if not parcel:
        raise ResourceNotFoundError("Parcel", parcel_id)
    if parcel.sender_id != current_user["user_id"] and not is_admin(current_user):
        raise InsufficientPermissionsError("Forbidden: Only the parcel sender can do this")
    return parcel


async def _get_owned_trip(store: SqlAlchemyStore, trip_id: int, current_user: dict):
    trip = await store.get_trip(trip_id)
    if not trip:
        raise ResourceNotFoundError("Trip", trip_id)
    if trip.courier_id != current_user["user_id"] and not is_admin(current_user):
        raise InsufficientPermissionsError("Forbidden: Only the trip courier can do this")
    return trip


def _parse_statuses(status_filter: Optional[List[MatchStatus]]):
    return tuple(status_filter) if status_filter else LISTED_STATUSES


@router.post("/parcels/{parcel_id}/find-matches", response_model=MatchCreationResponse, status_code=status.HTTP_200_OK)
async def find_matches_for_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
    manager: MatchLifecycleManager = Depends(get_match_manager),
):
    """Create pending matches for a newly posted parcel (sender only)."""
    await _get_owned_parcel(store, parcel_id, current_user)

    created = await manager.create_matches_for_parcel(parcel_id)
    return MatchCreationResponse(
        created=[MatchResponse.model_validate(m) for m in created],
        total=len(created),
    )


@router.post("/trips/{trip_id}/find-matches", response_model=MatchCreationResponse, status_code=status.HTTP_200_OK)
async def find_matches_for_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
    manager: MatchLifecycleManager = Depends(get_match_manager),
):
    """Create pending matches for a newly published trip (courier only)."""
    await _get_owned_trip(store, trip_id, current_user)

    created = await manager.create_matches_for_trip(trip_id)
    return MatchCreationResponse(
        created=[MatchResponse.model_validate(m) for m in created],
        total=len(created),
    )


@router.post("/trips/{trip_id}/refresh", response_model=TripRefreshResponse)
async def refresh_trip_matches(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
    manager: MatchLifecycleManager = Depends(get_match_manager),
):
    """
    Re-evaluate matches after the courier edited the trip.

    Pending matches are recomputed; accepted matches that no longer score
    above threshold expire.
    """
    await _get_owned_trip(store, trip_id, current_user)

    summary = await manager.on_trip_updated(trip_id)
    return TripRefreshResponse(
        trip_id=trip_id,
        invalidated=summary.invalidated,
        rescored=summary.rescored,
        expired=summary.expired,
        created=[MatchResponse.model_validate(m) for m in summary.created],
    )


@router.get("/parcels/{parcel_id}/matches", response_model=MatchListResponse)
async def list_parcel_matches(
    parcel_id: int = Path(..., description="Parcel ID"),
    status_filter: Optional[List[MatchStatus]] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
):
    """List matches for a parcel, best score first (sender only)."""
    await _get_owned_parcel(store, parcel_id, current_user)

    rows = await store.list_matches(parcel_id=parcel_id, statuses=_parse_statuses(status_filter))
    return MatchListResponse(
        matches=[MatchDetailResponse.model_validate(r) for r in rows],
        total=len(rows),
    )


@router.get("/trips/{trip_id}/matches", response_model=MatchListResponse)
async def list_trip_matches(
    trip_id: int = Path(..., description="Trip ID"),
    status_filter: Optional[List[MatchStatus]] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    store: SqlAlchemyStore = Depends(get_store),
):
    """List matches offered to a trip, best score first (courier only)."""
    await _get_owned_trip(store, trip_id, current_user)

    rows = await store.list_matches(trip_id=trip_id, statuses=_parse_statuses(status_filter))
    return MatchListResponse(
        matches=[MatchDetailResponse.model_validate(r) for r in rows],
        total=len(rows),
    )


@router.post("/matches/{match_id}/accept", response_model=AcceptMatchResponse)
async def accept_match(
    match_id: int = Path(..., description="Match ID"),
    current_user: dict = Depends(get_current_user),
    manager: MatchLifecycleManager = Depends(get_match_manager),
):
    """
    Accept a pending match (trip courier only).

    Locks the trip to the parcel and rejects competing offers. Returns 409
    when the parcel or trip was taken in the meantime.
    """
    outcome = await manager.accept(match_id, current_user["user_id"])

    pricing = None
    if outcome.pricing is not None:
        pricing = PricingEstimateResponse.model_validate(outcome.pricing)

    return AcceptMatchResponse(
        match=MatchResponse.model_validate(outcome.match),
        pricing=pricing,
        warnings=outcome.warnings,
    )


@router.post("/matches/{match_id}/reject", response_model=MatchResponse)
async def reject_match(
    match_id: int = Path(..., description="Match ID"),
    current_user: dict = Depends(get_current_user),
    manager: MatchLifecycleManager = Depends(get_match_manager),
):
    """Reject a pending match (trip courier only)."""
    match = await manager.reject(match_id, current_user["user_id"])
    return MatchResponse.model_validate(match)
