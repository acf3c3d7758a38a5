"""
Centralized Test Configuration.

Each test gets its own file-backed SQLite database. A file (rather than an
in-memory StaticPool) gives every session its own connection, which the
concurrent accept tests rely on.
"""

import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from backend.app.main import app
from backend.app.db.session import Base
from backend.app.db.store import SqlAlchemyStore
from backend.app.core.config import MatchingConfig
from backend.app.core.dependencies import (
    get_store,
    get_matching_config,
    get_notification_dispatcher,
    get_match_manager,
)
from backend.app.core.jwt import create_access_token
from backend.app.core.reliability import CircuitBreaker
from backend.app.domain.matching.lifecycle import MatchLifecycleManager
from backend.app.domain.matching.scoring import ScoringEngine
from backend.app.models.delivery_pricing import DeliveryPricing
from backend.app.models.parcel import Parcel
from backend.app.models.trip import Trip
from backend.app.models.parcel_enums import ParcelStatus
from backend.app.models.trip_enums import TripStatus, CapacityTier
from backend.app.services.notification_dispatcher import NotificationDispatcher
from backend.app.services.notification_service import InAppNotifier
from backend.seed_pricing import seed_delivery_pricing
from backend.tests.helpers import NOW, SENDER_ID, COURIER_ID, fixed_clock


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'matching.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session_factory):
    return SqlAlchemyStore(session_factory, serialize_writes=True)


@pytest.fixture
def config():
    return MatchingConfig(min_score_threshold=60, commission_percent=15.0)


@pytest.fixture
def scoring_engine(config):
    return ScoringEngine(config, clock=fixed_clock)


@pytest.fixture
async def dispatcher():
    dispatcher = NotificationDispatcher(
        queue_size=100,
        workers=1,
        circuit_breaker=CircuitBreaker(failure_threshold=5, reset_timeout=60, name="test-notifier"),
    )
    yield dispatcher
    await dispatcher.aclose()


@pytest.fixture
def notifier(store):
    return InAppNotifier(store)


@pytest.fixture
def manager(store, config, notifier, dispatcher, scoring_engine):
    return MatchLifecycleManager(
        store=store,
        config=config,
        notifier=notifier,
        dispatcher=dispatcher,
        scoring_engine=scoring_engine,
    )


@pytest.fixture
async def seeded_pricing(session_factory):
    async with session_factory() as session:
        await seed_delivery_pricing(session)
        await session.commit()


@pytest.fixture
def make_parcel(session_factory):
    """Factory for committed parcels; defaults to a 5 kg (medium) PENDING parcel without coordinates."""
    async def _make(**overrides) -> Parcel:
        values = dict(
            sender_id=SENDER_ID,
            pickup_address="12 Pickup Street",
            delivery_address="34 Delivery Road",
            weight_kg=5.0,
            status=ParcelStatus.PENDING,
        )
        values.update(overrides)
        async with session_factory() as session:
            parcel = Parcel(**values)
            session.add(parcel)
            await session.commit()
            await session.refresh(parcel)
        return parcel
    return _make


@pytest.fixture
def make_trip(session_factory):
    """Factory for committed trips; defaults to a MEDIUM SCHEDULED trip departing in 48h."""
    async def _make(**overrides) -> Trip:
        values = dict(
            courier_id=COURIER_ID,
            origin_address="Origin Town",
            destination_address="Destination City",
            departure_time=NOW + timedelta(hours=48),
            available_capacity=CapacityTier.MEDIUM,
            status=TripStatus.SCHEDULED,
        )
        values.update(overrides)
        async with session_factory() as session:
            trip = Trip(**values)
            session.add(trip)
            await session.commit()
            await session.refresh(trip)
        return trip
    return _make


@pytest.fixture
def make_pricing(session_factory):
    async def _make(origin, destination, base_fee, rate_per_km, max_distance_km=None, is_domestic=True):
        async with session_factory() as session:
            row = DeliveryPricing(
                origin_country=origin,
                destination_country=destination,
                base_fee=base_fee,
                rate_per_km=rate_per_km,
                max_distance_km=max_distance_km,
                currency="USD",
                is_domestic=is_domestic,
            )
            session.add(row)
            await session.commit()
        return row
    return _make


@pytest.fixture
def auth_headers():
    def _headers(user_id: int, role: str = None) -> dict:
        data = {"sub": f"user-{user_id}", "user_id": user_id}
        if role:
            data["role"] = role
        return {"Authorization": f"Bearer {create_access_token(data)}"}
    return _headers


@pytest.fixture
async def client(store, config, dispatcher, manager):
    """Async client wired to the per-test store and manager."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_matching_config] = lambda: config
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_match_manager] = lambda: manager

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}
