# ridepool/shared/models/matching.py
"""
Параметры и результат матчинга.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from ridepool.shared.models.common import Timestamp
from ridepool.shared.models.fleet import TripStop


class MatchingConfig(BaseModel):
    """Рабочие параметры движка, передаются вызывающей стороной."""

    seats_per_vehicle: int = Field(8, ge=1)
    max_detour_minutes: float = Field(8.0, ge=0)
    minutes_per_stop: float = Field(2.0, ge=0, description="Время на остановке")
    buffer_minutes: float = Field(5.0, ge=0, description="Запас между рейсами машины")
    candidate_window_minutes: float = Field(30.0, ge=0)
    pickup_tolerance_minutes: float = Field(15.0, ge=0)
    route_timeout_seconds: float = Field(10.0, gt=0)

    class Config:
        frozen = True


class _PlannedMatch(BaseModel):
    """Общая часть успешного результата."""

    vehicle_id: str
    estimated_pickup_time: Timestamp
    estimated_dropoff_time: Timestamp
    estimated_duration: int = Field(..., ge=0, description="Длительность маршрута, сек")
    route_polyline: str = ""
    # Полный список остановок рейса; у новых остановок booking_id = None
    new_stops: list[TripStop]

    class Config:
        frozen = True


class PoolMatch(_PlannedMatch):
    """Бронирование встраивается в существующий рейс."""

    type: Literal["pool"] = "pool"
    trip_id: str


class NewTripMatch(_PlannedMatch):
    """Для бронирования открывается новый рейс."""

    type: Literal["new"] = "new"


class RejectedMatch(BaseModel):
    """Подходящего варианта нет."""

    type: Literal["rejected"] = "rejected"
    reason: str
    earliest_available_time: Optional[Timestamp] = None

    class Config:
        frozen = True


MatchResult = Annotated[
    Union[PoolMatch, NewTripMatch, RejectedMatch],
    Field(discriminator="type"),
]

match_result_adapter: TypeAdapter[MatchResult] = TypeAdapter(MatchResult)
