# ridepool/shared/models/snapshot.py
"""
Снимок состояния парка, который движок читает, но не изменяет.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ridepool.common.constants import TripStatus
from ridepool.shared.models.booking import Booking
from ridepool.shared.models.fleet import Trip, Vehicle


class FleetSnapshot(BaseModel):
    """Машины, рейсы и бронирования на момент запроса."""

    vehicles: list[Vehicle] = Field(default_factory=list)
    trips: list[Trip] = Field(default_factory=list)
    bookings: list[Booking] = Field(default_factory=list)

    class Config:
        frozen = True

    def vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return next((v for v in self.vehicles if v.id == vehicle_id), None)

    def trip(self, trip_id: str) -> Optional[Trip]:
        return next((t for t in self.trips if t.id == trip_id), None)

    def booking(self, booking_id: str) -> Optional[Booking]:
        return next((b for b in self.bookings if b.id == booking_id), None)

    def planned_trips(self) -> list[Trip]:
        return [t for t in self.trips if t.status == TripStatus.PLANNED]

    def confirmed_bookings(self, trip_id: str) -> list[Booking]:
        """Подтверждённые бронирования рейса."""
        return [b for b in self.bookings if b.trip_id == trip_id and b.is_confirmed]

    def active_trips(self, vehicle_id: Optional[str] = None) -> list[Trip]:
        """Незавершённые рейсы (всего парка или одной машины)."""
        return [
            t for t in self.trips
            if t.is_active and (vehicle_id is None or t.vehicle_id == vehicle_id)
        ]
