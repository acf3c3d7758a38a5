"""
Scoring engine tests.

Parcels and trips are built as transient model instances; nothing touches
the database.
"""

import pytest
from datetime import timedelta

from backend.app.core.config import MatchingConfig
from backend.app.core.exceptions import InvalidMatchingConfigError
from backend.app.domain.matching.scoring import ScoringEngine, classify_parcel_size
from backend.app.models.parcel import Parcel
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import CapacityTier
from backend.tests.helpers import NOW, fixed_clock


def parcel(**kwargs) -> Parcel:
    values = dict(id=1, sender_id=1, pickup_address="A", delivery_address="B", weight_kg=5.0)
    values.update(kwargs)
    return Parcel(**values)


def trip(**kwargs) -> Trip:
    values = dict(
        id=1,
        courier_id=10,
        origin_address="A",
        destination_address="B",
        departure_time=NOW + timedelta(hours=48),
        available_capacity=CapacityTier.MEDIUM,
    )
    values.update(kwargs)
    return Trip(**values)


@pytest.fixture
def engine():
    return ScoringEngine(MatchingConfig(), clock=fixed_clock)


def test_perfect_match_scores_above_ninety(engine):
    p = parcel(
        pickup_latitude=51.5155, pickup_longitude=-0.0922,
        delivery_latitude=53.4839, delivery_longitude=-2.2446,
        weight_kg=3.5,
    )
    t = trip(
        origin_latitude=51.5074, origin_longitude=-0.1278,
        destination_latitude=53.4808, destination_longitude=-2.2426,
        departure_time=NOW + timedelta(hours=25),
    )

    score = engine.score(p, t)

    assert score > 90
    assert score == pytest.approx(91.12, abs=0.1)
    assert engine.is_valid(score)


def test_disjoint_routes_score_zero_on_geography(engine):
    # London -> Edinburgh parcel, Manchester -> Birmingham trip
    p = parcel(
        pickup_latitude=51.5074, pickup_longitude=-0.1278,
        delivery_latitude=55.9533, delivery_longitude=-3.1883,
    )
    t = trip(
        origin_latitude=53.4808, origin_longitude=-2.2426,
        destination_latitude=52.4862, destination_longitude=-1.8904,
        departure_time=NOW + timedelta(hours=25),
    )

    breakdown = engine.breakdown(p, t)

    assert breakdown.route_alignment == 0
    assert breakdown.proximity == 0
    assert breakdown.total == 28.0  # 90 * 0.2 + 100 * 0.1
    assert not engine.is_valid(breakdown.total)


def test_missing_coordinates_use_neutral_defaults(engine):
    breakdown = engine.breakdown(parcel(), trip())

    assert breakdown.route_alignment == 50
    assert breakdown.proximity == 40
    assert breakdown.total == 60.0
    assert breakdown.contributions() == {
        "route_alignment": 20.0,
        "proximity": 12.0,
        "time_compatibility": 18.0,
        "capacity_fit": 10.0,
    }


def test_zero_coordinates_are_valid(engine):
    p = parcel(pickup_latitude=0.0, pickup_longitude=0.0, delivery_latitude=0.0, delivery_longitude=0.0)
    t = trip(origin_latitude=0.0, origin_longitude=0.0, destination_latitude=0.0, destination_longitude=0.0)

    breakdown = engine.breakdown(p, t)

    assert breakdown.route_alignment == 100
    assert breakdown.proximity == 100


@pytest.mark.parametrize("offset, expected", [
    (timedelta(hours=-1), 0),
    (timedelta(minutes=30), 30),
    (timedelta(hours=5), 70),
    (timedelta(hours=24), 90),
    (timedelta(days=10), 90),
])
def test_time_compatibility(engine, offset, expected):
    assert engine.time_compatibility(trip(departure_time=NOW + offset)) == expected


def test_time_compatibility_without_departure(engine):
    assert engine.time_compatibility(trip(departure_time=None)) == 70


def test_naive_departure_is_treated_as_utc(engine):
    naive = (NOW + timedelta(minutes=30)).replace(tzinfo=None)
    assert engine.time_compatibility(trip(departure_time=naive)) == 30


@pytest.mark.parametrize("weight, capacity, expected", [
    (1.0, CapacityTier.SMALL, 100),
    (1.0, CapacityTier.MEDIUM, 80),
    (1.0, CapacityTier.LARGE, 60),
    (5.0, CapacityTier.MEDIUM, 100),
    (5.0, CapacityTier.LARGE, 80),
    (25.0, CapacityTier.LARGE, 100),
    (None, CapacityTier.SMALL, 60),
    (5.0, None, 70),
])
def test_capacity_fit(engine, weight, capacity, expected):
    assert engine.capacity_fit(parcel(weight_kg=weight), trip(available_capacity=capacity)) == expected


@pytest.mark.parametrize("weight, capacity", [
    (2.5, CapacityTier.SMALL),
    (10.5, CapacityTier.SMALL),
    (10.5, CapacityTier.MEDIUM),
    (500.0, CapacityTier.MEDIUM),
])
def test_undersized_trip_is_a_hard_fail(engine, weight, capacity):
    assert engine.capacity_fit(parcel(weight_kg=weight), trip(available_capacity=capacity)) == 0


def test_size_class_boundaries():
    assert classify_parcel_size(2.0) == CapacityTier.SMALL
    assert classify_parcel_size(2.01) == CapacityTier.MEDIUM
    assert classify_parcel_size(10.0) == CapacityTier.MEDIUM
    assert classify_parcel_size(10.01) == CapacityTier.LARGE
    assert classify_parcel_size(None) is None


def test_score_is_deterministic(engine):
    p = parcel(pickup_latitude=51.5, pickup_longitude=-0.1, delivery_latitude=53.4, delivery_longitude=-2.2)
    t = trip(origin_latitude=51.51, origin_longitude=-0.12, destination_latitude=53.48, destination_longitude=-2.24)

    scores = {engine.score(p, t) for _ in range(5)}

    assert len(scores) == 1


@pytest.mark.parametrize("p, t", [
    (parcel(), trip()),
    (parcel(weight_kg=None), trip(available_capacity=None, departure_time=None)),
    (parcel(weight_kg=1000.0), trip(available_capacity=CapacityTier.SMALL, departure_time=NOW - timedelta(days=1))),
    (
        parcel(pickup_latitude=-33.9, pickup_longitude=18.4, delivery_latitude=-26.2, delivery_longitude=28.0),
        trip(origin_latitude=-33.9, origin_longitude=18.4, destination_latitude=-26.2, destination_longitude=28.0),
    ),
])
def test_score_is_bounded(engine, p, t):
    assert 0 <= engine.score(p, t) <= 100


def test_threshold_comes_from_config():
    strict = ScoringEngine(MatchingConfig(min_score_threshold=80), clock=fixed_clock)
    assert not strict.is_valid(79.99)
    assert strict.is_valid(80)


@pytest.mark.parametrize("kwargs", [
    {"min_score_threshold": 101},
    {"min_score_threshold": -1},
    {"min_score_threshold": 60.5},
    {"min_score_threshold": True},
    {"commission_percent": 150},
])
def test_invalid_config_is_rejected(kwargs):
    with pytest.raises(InvalidMatchingConfigError):
        MatchingConfig(**kwargs)
