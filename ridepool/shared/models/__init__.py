"""
Pydantic-модели для обмена данными с движком матчинга.
"""

from ridepool.shared.models.geo import Coordinates
from ridepool.shared.models.fleet import Vehicle, Trip, TripStop
from ridepool.shared.models.booking import Booking, BookingRequest
from ridepool.shared.models.route import RouteLeg, RouteResult
from ridepool.shared.models.matching import (
    MatchingConfig,
    MatchResult,
    PoolMatch,
    NewTripMatch,
    RejectedMatch,
    match_result_adapter,
)
from ridepool.shared.models.snapshot import FleetSnapshot

__all__ = [
    # Geo
    "Coordinates",
    # Fleet
    "Vehicle",
    "Trip",
    "TripStop",
    # Booking
    "Booking",
    "BookingRequest",
    # Route
    "RouteLeg",
    "RouteResult",
    # Matching
    "MatchingConfig",
    "MatchResult",
    "PoolMatch",
    "NewTripMatch",
    "RejectedMatch",
    "match_result_adapter",
    # Snapshot
    "FleetSnapshot",
]
