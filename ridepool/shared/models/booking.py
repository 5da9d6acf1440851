# ridepool/shared/models/booking.py
"""
Бронирования и входящие запросы на поездку.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ridepool.common.constants import BookingStatus
from ridepool.shared.models.common import Timestamp
from ridepool.shared.models.geo import Coordinates


class Booking(BaseModel):
    """Подтверждённое (или отменённое) бронирование."""

    id: str
    booking_number: str
    trip_id: Optional[str] = None

    pickup_location: Coordinates
    pickup_address: str = ""
    dropoff_location: Coordinates
    dropoff_address: str = ""

    requested_pickup_time: Timestamp
    estimated_pickup_time: Timestamp
    estimated_dropoff_time: Timestamp
    # Текущее расписание рейса; estimated_* остаются обещанием и базой для проверки объезда
    scheduled_pickup_time: Optional[Timestamp] = None
    scheduled_dropoff_time: Optional[Timestamp] = None

    passenger_count: int = Field(1, ge=1)
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: Optional[Timestamp] = None

    class Config:
        frozen = True
        from_attributes = True

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED


class BookingRequest(BaseModel):
    """Запрос пассажира, живёт в пределах одного вызова матчинга."""

    pickup_location: Coordinates
    pickup_address: str = ""
    dropoff_location: Coordinates
    dropoff_address: str = ""
    requested_pickup_time: Timestamp
    passenger_count: int = Field(1, ge=1)

    class Config:
        frozen = True
