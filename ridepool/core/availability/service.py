# ridepool/core/availability/service.py
"""
Поиск свободной машины для нового рейса.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from ridepool.common.constants import DiagnosticCategory
from ridepool.common.diagnostics import DiagnosticSink, NullDiagnostics
from ridepool.common.time_utils import add_minutes, add_seconds, minutes_between
from ridepool.core.errors import RouteUnavailable
from ridepool.core.routing.service import RoutingProvider, fetch_route
from ridepool.shared.models.fleet import Trip, Vehicle
from ridepool.shared.models.geo import Coordinates
from ridepool.shared.models.matching import MatchingConfig


@dataclass
class AvailabilityDecision:
    """Выбранная машина или оценка, когда машина освободится."""
    vehicle: Optional[Vehicle] = None
    earliest_available_time: Optional[datetime] = None


@dataclass
class _VehicleCheck:
    """Итог проверки одной машины."""
    feasible: bool
    reason: str = ""
    ready_estimate: Optional[datetime] = None
    details: dict = field(default_factory=dict)


class VehicleAvailabilityResolver:
    """
    Проверяет машины в порядке парка и возвращает первую подходящую.

    Машина подходит, если её незавершённые рейсы не пересекают окно нового
    рейса, она успевает доехать от конца предыдущего рейса к точке посадки
    с запасом buffer, и до следующего рейса остаётся не меньше buffer.
    """

    def __init__(
        self,
        routing: RoutingProvider,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self._routing = routing
        self._diagnostics = diagnostics or NullDiagnostics()

    async def find_available_vehicle(
        self,
        requested_pickup: datetime,
        duration_seconds: int,
        pickup_location: Coordinates,
        vehicles: Sequence[Vehicle],
        trips: Sequence[Trip],
        config: MatchingConfig,
        passenger_count: int = 1,
    ) -> AvailabilityDecision:
        """
        Args:
            requested_pickup: Запрошенное время посадки
            duration_seconds: Длительность нового рейса
            pickup_location: Точка посадки
            vehicles: Все машины парка
            trips: Рейсы парка (завершённые и отменённые игнорируются)
            config: Параметры матчинга
            passenger_count: Число пассажиров запроса

        Returns:
            Решение: машина или ближайшее время освобождения.
            Машины, в которые запрос не помещается, оценку не дают
        """
        window_start = requested_pickup
        window_end = add_minutes(add_seconds(requested_pickup, duration_seconds), config.minutes_per_stop)

        estimates: list[datetime] = []

        for vehicle in vehicles:
            seats = min(config.seats_per_vehicle, vehicle.capacity)
            if seats < passenger_count:
                self._diagnostics.record(DiagnosticCategory.ALGORITHM, "vehicle_unavailable", {
                    "vehicle_id": vehicle.id,
                    "reason": "capacity",
                    "seats": seats,
                    "passenger_count": passenger_count,
                })
                continue

            vehicle_trips = sorted(
                (t for t in trips if t.vehicle_id == vehicle.id and t.is_active),
                key=lambda t: t.departure_time,
            )
            check = await self._check_vehicle(
                vehicle, vehicle_trips, window_start, window_end, pickup_location, config,
            )

            if check.ready_estimate is not None:
                estimates.append(check.ready_estimate)

            if check.feasible:
                self._diagnostics.record(DiagnosticCategory.ALGORITHM, "vehicle_available", {
                    "vehicle_id": vehicle.id,
                    "requested_time": requested_pickup.isoformat(),
                })
                return AvailabilityDecision(vehicle=vehicle)

            self._diagnostics.record(DiagnosticCategory.ALGORITHM, "vehicle_unavailable", {
                "vehicle_id": vehicle.id,
                "reason": check.reason,
                "ready_estimate": check.ready_estimate.isoformat() if check.ready_estimate else None,
                **check.details,
            })

        earliest = min(estimates) if estimates else None
        self._diagnostics.record(DiagnosticCategory.ALGORITHM, "no_vehicle_available", {
            "requested_time": requested_pickup.isoformat(),
            "earliest_available_time": earliest.isoformat() if earliest else None,
        })
        return AvailabilityDecision(vehicle=None, earliest_available_time=earliest)

    async def _check_vehicle(
        self,
        vehicle: Vehicle,
        vehicle_trips: list[Trip],
        window_start: datetime,
        window_end: datetime,
        pickup_location: Coordinates,
        config: MatchingConfig,
    ) -> _VehicleCheck:
        overlapping = [
            t for t in vehicle_trips
            if t.departure_time <= window_end and t.end_time >= window_start
        ]
        if overlapping:
            blocking = max(overlapping, key=lambda t: t.end_time)
            ready = await self._ready_after(blocking, vehicle, pickup_location, config)
            return _VehicleCheck(
                feasible=False,
                reason="busy",
                ready_estimate=ready,
                details={"trip_id": blocking.id},
            )

        prior = None
        for trip in vehicle_trips:
            if trip.end_time <= window_start and (prior is None or trip.end_time >= prior.end_time):
                prior = trip
        following = next((t for t in vehicle_trips if t.departure_time > window_end), None)

        if prior is not None:
            origin = self._trip_end_location(prior, vehicle)
            if origin is not None:
                try:
                    travel = await fetch_route(
                        self._routing, origin, pickup_location,
                        timeout=config.route_timeout_seconds,
                    )
                except RouteUnavailable as e:
                    return _VehicleCheck(
                        feasible=False,
                        reason="route_unavailable",
                        details={"trip_id": prior.id, "message": e.message},
                    )
                arrival = add_seconds(prior.end_time, travel.duration)
            else:
                arrival = prior.end_time

            latest_arrival = add_minutes(window_start, -config.buffer_minutes)
            if arrival > latest_arrival:
                return _VehicleCheck(
                    feasible=False,
                    reason="cannot_reach_pickup",
                    ready_estimate=add_minutes(arrival, config.buffer_minutes),
                    details={"trip_id": prior.id, "arrival": arrival.isoformat()},
                )

        if following is not None:
            # Статическая проверка запаса, без реального времени переезда
            gap = minutes_between(following.departure_time, window_end)
            if gap < config.buffer_minutes:
                return _VehicleCheck(
                    feasible=False,
                    reason="next_trip_too_close",
                    details={"trip_id": following.id, "gap_minutes": round(gap, 2)},
                )

        return _VehicleCheck(feasible=True)

    async def _ready_after(
        self,
        trip: Trip,
        vehicle: Vehicle,
        pickup_location: Coordinates,
        config: MatchingConfig,
    ) -> Optional[datetime]:
        """Когда машина сможет начать новый рейс после trip (None, если неизвестно)."""
        origin = self._trip_end_location(trip, vehicle)
        travel_seconds = 0
        if origin is not None:
            try:
                travel = await fetch_route(
                    self._routing, origin, pickup_location,
                    timeout=config.route_timeout_seconds,
                )
            except RouteUnavailable:
                return None
            travel_seconds = travel.duration
        return add_minutes(add_seconds(trip.end_time, travel_seconds), config.buffer_minutes)

    @staticmethod
    def _trip_end_location(trip: Trip, vehicle: Vehicle) -> Optional[Coordinates]:
        last = trip.last_stop
        if last is not None:
            return last.location
        return vehicle.current_location
