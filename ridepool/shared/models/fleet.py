# ridepool/shared/models/fleet.py
"""
Модели парка: машины, рейсы и остановки.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ridepool.common.constants import TERMINAL_TRIP_STATUSES, StopType, TripStatus
from ridepool.shared.models.common import Timestamp
from ridepool.shared.models.geo import Coordinates


class Vehicle(BaseModel):
    """Машина парка."""

    id: str
    name: str = ""
    capacity: int = Field(8, ge=1, description="Число посадочных мест")
    # Задаётся только когда машина свободна после завершения рейса
    current_location: Optional[Coordinates] = None

    class Config:
        frozen = True
        from_attributes = True


class TripStop(BaseModel):
    """Остановка рейса."""

    id: str
    location: Coordinates
    address: str = ""
    type: StopType
    # None до тех пор, пока вызывающая сторона не зафиксирует бронирование
    booking_id: Optional[str] = None
    scheduled_time: Timestamp
    sequence: int = Field(..., ge=0)

    class Config:
        frozen = True
        from_attributes = True


class Trip(BaseModel):
    """Рейс машины с упорядоченным списком остановок."""

    id: str
    vehicle_id: str
    status: TripStatus = TripStatus.PLANNED
    stops: list[TripStop] = Field(default_factory=list)
    route_polyline: str = ""
    departure_time: Timestamp
    estimated_duration: int = Field(0, ge=0, description="Длительность маршрута, сек")
    created_at: Optional[Timestamp] = None

    class Config:
        frozen = True
        from_attributes = True

    def ordered_stops(self) -> list[TripStop]:
        """Остановки в порядке посещения."""
        return sorted(self.stops, key=lambda s: s.sequence)

    @property
    def last_stop(self) -> Optional[TripStop]:
        ordered = self.ordered_stops()
        return ordered[-1] if ordered else None

    @property
    def end_time(self) -> datetime:
        """Время последней остановки, для пустого рейса время отправления."""
        last = self.last_stop
        return last.scheduled_time if last else self.departure_time

    @property
    def is_active(self) -> bool:
        """Рейс ещё занимает машину."""
        return self.status not in TERMINAL_TRIP_STATUSES
