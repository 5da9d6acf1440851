# ridepool/core/__init__.py
"""
Доменный слой.
Матчинг совместных поездок, независимый от способа хранения и транспорта.
"""

from ridepool.core.availability import AvailabilityDecision, VehicleAvailabilityResolver
from ridepool.core.bookings import BookingOutcome, BookingService
from ridepool.core.insertion import InsertionCandidate, InsertionEvaluator
from ridepool.core.matching import MatchingEngine
from ridepool.core.routing import GoogleDirectionsProvider, RoutingProvider, StraightLineRoutingProvider

__all__ = [
    "AvailabilityDecision",
    "VehicleAvailabilityResolver",
    "BookingOutcome",
    "BookingService",
    "InsertionCandidate",
    "InsertionEvaluator",
    "MatchingEngine",
    "GoogleDirectionsProvider",
    "RoutingProvider",
    "StraightLineRoutingProvider",
]
