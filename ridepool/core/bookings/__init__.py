"""
Домен бронирований.
Фиксация результатов матчинга, отмена бронирований, статусы рейсов.
"""

from ridepool.core.bookings.service import BookingOutcome, BookingService, commit_match, default_fleet
from ridepool.core.bookings.state_machine import TripStateMachine

__all__ = [
    "BookingOutcome",
    "BookingService",
    "TripStateMachine",
    "commit_match",
    "default_fleet",
]
