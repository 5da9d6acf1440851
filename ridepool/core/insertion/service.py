# ridepool/core/insertion/service.py
"""
Проверка вставки запроса в рейс.

Один вызов evaluate() проверяет одну пару позиций (посадка, высадка):
собирает новый список остановок, пересчитывает расписание по маршруту
и применяет ограничения вместимости, объезда и времени подачи.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from ridepool.common.constants import DiagnosticCategory, StopType
from ridepool.common.diagnostics import DiagnosticSink, NullDiagnostics
from ridepool.common.logger import log_error
from ridepool.common.time_utils import add_minutes, add_seconds, minutes_between
from ridepool.core.errors import ConstraintViolation, InvariantViolation, RouteUnavailable
from ridepool.core.routing.service import RoutingProvider, fetch_route
from ridepool.shared.models.booking import Booking, BookingRequest
from ridepool.shared.models.fleet import Trip, TripStop
from ridepool.shared.models.matching import MatchingConfig
from ridepool.shared.models.route import RouteResult


# Временные id новых остановок; настоящие выдаются только победителю
NEW_PICKUP_ID = "new-pickup"
NEW_DROPOFF_ID = "new-dropoff"
NEW_STOP_IDS = frozenset({NEW_PICKUP_ID, NEW_DROPOFF_ID})


@dataclass
class InsertionCandidate:
    """Принятый вариант вставки."""
    trip: Trip
    new_stops: list[TripStop]
    estimated_pickup_time: datetime
    estimated_dropoff_time: datetime
    duration: int
    route_polyline: str
    # Число подтверждённых пассажиров рейса до вставки
    score: int
    pickup_pos: int
    dropoff_pos: int


# =============================================================================
# ЧИСТЫЕ ФУНКЦИИ
# =============================================================================

def build_new_stops(request: BookingRequest) -> tuple[TripStop, TripStop]:
    """Остановки посадки и высадки для запроса (со временем из запроса)."""
    pickup = TripStop(
        id=NEW_PICKUP_ID,
        location=request.pickup_location,
        address=request.pickup_address,
        type=StopType.PICKUP,
        scheduled_time=request.requested_pickup_time,
        sequence=0,
    )
    dropoff = TripStop(
        id=NEW_DROPOFF_ID,
        location=request.dropoff_location,
        address=request.dropoff_address,
        type=StopType.DROPOFF,
        scheduled_time=request.requested_pickup_time,
        sequence=1,
    )
    return pickup, dropoff


def splice_stops(
    existing: Sequence[TripStop],
    pickup: TripStop,
    dropoff: TripStop,
    pickup_pos: int,
    dropoff_pos: int,
) -> list[TripStop]:
    """
    Вставляет посадку и высадку, сохраняя порядок существующих остановок.

    pickup_pos считается по исходному списку (0..n), dropoff_pos: по списку,
    в который посадка уже вставлена (pickup_pos+1..n+1).
    Номера sequence переназначаются подряд с нуля.
    """
    n = len(existing)
    if not (0 <= pickup_pos <= n and pickup_pos < dropoff_pos <= n + 1):
        raise InvariantViolation(
            "Недопустимые позиции вставки",
            pickup_pos=pickup_pos,
            dropoff_pos=dropoff_pos,
            stops=n,
        )

    spliced = list(existing)
    spliced.insert(pickup_pos, pickup)
    spliced.insert(dropoff_pos, dropoff)

    return [stop.model_copy(update={"sequence": seq}) for seq, stop in enumerate(spliced)]


def schedule_stops(
    stops: Sequence[TripStop],
    departure: datetime,
    route: RouteResult,
    minutes_per_stop: float,
) -> list[TripStop]:
    """
    Пересчитывает время остановок.
    Первая остановка в момент отправления, каждая следующая
    после участка маршрута и времени на остановке.
    """
    if len(route.legs) < len(stops) - 1:
        raise InvariantViolation(
            "Участков маршрута меньше, чем переходов между остановками",
            legs=len(route.legs),
            stops=len(stops),
        )

    current = departure
    scheduled = []
    for index, stop in enumerate(stops):
        if index > 0:
            current = add_seconds(current, route.legs[index - 1].duration)
            current = add_minutes(current, minutes_per_stop)
        scheduled.append(stop.model_copy(update={"scheduled_time": current}))
    return scheduled


def onboard_profile(stops: Sequence[TripStop], passenger_counts: dict[str, int]) -> list[int]:
    """
    Число пассажиров на борту после каждой остановки.

    Args:
        stops: Остановки в порядке посещения
        passenger_counts: booking_id или id новой остановки -> число пассажиров
    """
    onboard = 0
    profile = []
    for stop in stops:
        key = stop.booking_id if stop.booking_id is not None else stop.id
        count = passenger_counts.get(key, 0)
        onboard += count if stop.type == StopType.PICKUP else -count
        profile.append(onboard)
    return profile


def passengers_at_stop(stops: Sequence[TripStop], bookings: Iterable[Booking], stop_index: int) -> int:
    """Пассажиров на борту после остановки с индексом stop_index."""
    counts = {b.id: b.passenger_count for b in bookings if b.is_confirmed}
    return onboard_profile(stops[: stop_index + 1], counts)[-1] if stops else 0


def confirmed_passenger_count(bookings: Iterable[Booking]) -> int:
    return sum(b.passenger_count for b in bookings if b.is_confirmed)


# =============================================================================
# СЕРВИС
# =============================================================================

class InsertionEvaluator:
    """
    Проверяет одну пару позиций вставки.

    Любая ошибка маршрута или нарушенное ограничение отбрасывает только
    эту пару: evaluate() возвращает None, внешний поиск идёт дальше.
    """

    def __init__(
        self,
        routing: RoutingProvider,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self._routing = routing
        self._diagnostics = diagnostics or NullDiagnostics()

    async def evaluate(
        self,
        trip: Trip,
        stops: Sequence[TripStop],
        bookings: Sequence[Booking],
        request: BookingRequest,
        pickup_pos: int,
        dropoff_pos: int,
        config: MatchingConfig,
        capacity: Optional[int] = None,
    ) -> Optional[InsertionCandidate]:
        """
        Args:
            trip: Рейс-кандидат
            stops: Текущие остановки рейса в порядке посещения
            bookings: Подтверждённые бронирования рейса
            request: Входящий запрос
            pickup_pos: Позиция посадки
            dropoff_pos: Позиция высадки
            config: Параметры матчинга
            capacity: Вместимость машины (по умолчанию из конфига)

        Returns:
            Кандидат или None
        """
        where = {"trip_id": trip.id, "pickup_pos": pickup_pos, "dropoff_pos": dropoff_pos}
        try:
            candidate = await self._evaluate(
                trip, stops, bookings, request, pickup_pos, dropoff_pos, config,
                capacity if capacity is not None else config.seats_per_vehicle,
            )
        except RouteUnavailable as e:
            self._reject(where, "route_unavailable", e.message, e.details)
            return None
        except ConstraintViolation as e:
            self._reject(where, e.kind, e.message, e.details)
            return None
        except InvariantViolation as e:
            await log_error(
                f"Нарушен инвариант при вставке в рейс {trip.id}: {e.message}",
                extra={**where, **e.details},
            )
            self._reject(where, "invariant_violation", e.message, e.details)
            return None

        self._diagnostics.record(DiagnosticCategory.ALGORITHM, "insertion_accepted", {
            **where,
            "estimated_pickup_time": candidate.estimated_pickup_time.isoformat(),
            "estimated_dropoff_time": candidate.estimated_dropoff_time.isoformat(),
        })
        return candidate

    def _reject(self, where: dict, reason: str, message: str, details: dict) -> None:
        self._diagnostics.record(DiagnosticCategory.ALGORITHM, "insertion_rejected", {
            **where,
            "reason": reason,
            "message": message,
            **details,
        })

    async def _evaluate(
        self,
        trip: Trip,
        stops: Sequence[TripStop],
        bookings: Sequence[Booking],
        request: BookingRequest,
        pickup_pos: int,
        dropoff_pos: int,
        config: MatchingConfig,
        capacity: int,
    ) -> InsertionCandidate:
        new_pickup, new_dropoff = build_new_stops(request)
        spliced = splice_stops(stops, new_pickup, new_dropoff, pickup_pos, dropoff_pos)

        # Весь рейс одним запросом, порядок точек не меняется
        points = [s.location for s in spliced]
        route = await fetch_route(
            self._routing,
            points[0],
            points[-1],
            points[1:-1],
            timeout=config.route_timeout_seconds,
        )

        scheduled = schedule_stops(spliced, trip.departure_time, route, config.minutes_per_stop)

        pickup_index = next((i for i, s in enumerate(scheduled) if s.id == NEW_PICKUP_ID), None)
        dropoff_index = next((i for i, s in enumerate(scheduled) if s.id == NEW_DROPOFF_ID), None)
        if pickup_index is None or dropoff_index is None or pickup_index >= dropoff_index:
            raise InvariantViolation(
                "Новые остановки не найдены после пересборки",
                pickup_index=pickup_index,
                dropoff_index=dropoff_index,
            )

        pickup_time = scheduled[pickup_index].scheduled_time
        dropoff_time = scheduled[dropoff_index].scheduled_time

        self._check_capacity(scheduled, bookings, request, capacity)
        self._check_existing_detours(scheduled, bookings, config)
        await self._check_new_passenger_detour(request, pickup_time, dropoff_time, config)
        self._check_pickup_window(request, pickup_time, config)

        return InsertionCandidate(
            trip=trip,
            new_stops=scheduled,
            estimated_pickup_time=pickup_time,
            estimated_dropoff_time=dropoff_time,
            duration=route.duration,
            route_polyline=route.polyline,
            score=confirmed_passenger_count(bookings),
            pickup_pos=pickup_pos,
            dropoff_pos=dropoff_pos,
        )

    @staticmethod
    def _check_capacity(
        stops: Sequence[TripStop],
        bookings: Sequence[Booking],
        request: BookingRequest,
        capacity: int,
    ) -> None:
        counts = {b.id: b.passenger_count for b in bookings if b.is_confirmed}
        counts[NEW_PICKUP_ID] = request.passenger_count
        counts[NEW_DROPOFF_ID] = request.passenger_count

        for stop, onboard in zip(stops, onboard_profile(stops, counts)):
            if onboard > capacity:
                raise ConstraintViolation(
                    ConstraintViolation.CAPACITY,
                    "Превышена вместимость машины",
                    passengers_on_board=onboard,
                    capacity=capacity,
                    stop_sequence=stop.sequence,
                )

    @staticmethod
    def _check_existing_detours(
        stops: Sequence[TripStop],
        bookings: Sequence[Booking],
        config: MatchingConfig,
    ) -> None:
        dropoffs = {
            s.booking_id: s for s in stops
            if s.type == StopType.DROPOFF and s.booking_id is not None
        }
        for booking in bookings:
            stop = dropoffs.get(booking.id)
            if stop is None:
                continue
            delay = minutes_between(stop.scheduled_time, booking.estimated_dropoff_time)
            if delay > config.max_detour_minutes:
                raise ConstraintViolation(
                    ConstraintViolation.DETOUR,
                    f"Превышен допустимый объезд для бронирования {booking.booking_number}",
                    booking_id=booking.id,
                    delay_minutes=round(delay, 2),
                    max_detour=config.max_detour_minutes,
                )

    async def _check_new_passenger_detour(
        self,
        request: BookingRequest,
        pickup_time: datetime,
        dropoff_time: datetime,
        config: MatchingConfig,
    ) -> None:
        direct = await fetch_route(
            self._routing,
            request.pickup_location,
            request.dropoff_location,
            timeout=config.route_timeout_seconds,
        )
        delay = minutes_between(dropoff_time, add_seconds(pickup_time, direct.duration))
        if delay > config.max_detour_minutes:
            raise ConstraintViolation(
                ConstraintViolation.NEW_PASSENGER_DETOUR,
                "Невозможно гарантировать время высадки нового пассажира",
                delay_minutes=round(delay, 2),
                max_detour=config.max_detour_minutes,
            )

    @staticmethod
    def _check_pickup_window(
        request: BookingRequest,
        pickup_time: datetime,
        config: MatchingConfig,
    ) -> None:
        diff = abs(minutes_between(pickup_time, request.requested_pickup_time))
        if diff > config.pickup_tolerance_minutes:
            raise ConstraintViolation(
                ConstraintViolation.PICKUP_WINDOW,
                "Время посадки слишком далеко от запрошенного",
                pickup_diff_minutes=round(diff, 2),
                tolerance=config.pickup_tolerance_minutes,
            )
