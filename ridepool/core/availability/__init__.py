"""
Доступность машин для новых рейсов.
"""

from ridepool.core.availability.service import AvailabilityDecision, VehicleAvailabilityResolver

__all__ = [
    "AvailabilityDecision",
    "VehicleAvailabilityResolver",
]
