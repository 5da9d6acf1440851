# ridepool/core/bookings/service.py
"""
Сервис бронирований.

Хранит снимок парка в памяти, вызывает движок матчинга и фиксирует
результат. Чтение снимка, матчинг и фиксация выполняются под одной
блокировкой, поэтому два параллельных запроса не займут одно место.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from ridepool.common.constants import (
    BookingStatus,
    DiagnosticCategory,
    StopType,
    TripStatus,
    TypeMsg,
)
from ridepool.common.diagnostics import DiagnosticSink, NullDiagnostics
from ridepool.common.ids import IdAllocator, SequentialIdAllocator
from ridepool.common.logger import log_info
from ridepool.config.loader import FleetSettings
from ridepool.core.bookings.state_machine import TripStateMachine
from ridepool.core.errors import BookingNotFound, InvalidTripTransition, TripNotFound
from ridepool.core.matching.service import MatchingEngine
from ridepool.core.routing.service import RoutingProvider
from ridepool.shared.models.booking import Booking, BookingRequest
from ridepool.shared.models.fleet import Trip, TripStop, Vehicle
from ridepool.shared.models.matching import (
    MatchingConfig,
    MatchResult,
    NewTripMatch,
    PoolMatch,
    RejectedMatch,
)
from ridepool.shared.models.snapshot import FleetSnapshot


@dataclass
class BookingOutcome:
    """Результат попытки бронирования."""
    result: MatchResult
    booking: Optional[Booking] = None
    trip: Optional[Trip] = None

    @property
    def accepted(self) -> bool:
        return self.booking is not None


def default_fleet(fleet: FleetSettings, seats_per_vehicle: int) -> list[Vehicle]:
    """Машины v1..vN с именами '<префикс> N' и одинаковой вместимостью."""
    return [
        Vehicle(
            id=f"v{number}",
            name=f"{fleet.VEHICLE_NAME_PREFIX} {number}",
            capacity=seats_per_vehicle,
        )
        for number in range(1, fleet.VEHICLE_COUNT + 1)
    ]


def _refresh_schedule(bookings: list[Booking], trip: Trip) -> list[Booking]:
    """
    Переносит время остановок рейса в scheduled_* его бронирований.
    Обещанные estimated_* не трогаются: от них считается допустимый объезд.
    """
    pickups = {s.booking_id: s.scheduled_time for s in trip.stops if s.type == StopType.PICKUP}
    dropoffs = {s.booking_id: s.scheduled_time for s in trip.stops if s.type == StopType.DROPOFF}

    refreshed = []
    for booking in bookings:
        if booking.trip_id == trip.id and booking.id in pickups and booking.id in dropoffs:
            booking = booking.model_copy(update={
                "scheduled_pickup_time": pickups[booking.id],
                "scheduled_dropoff_time": dropoffs[booking.id],
            })
        refreshed.append(booking)
    return refreshed


def commit_match(
    snapshot: FleetSnapshot,
    request: BookingRequest,
    result: PoolMatch | NewTripMatch,
    ids: IdAllocator,
    booking_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> tuple[FleetSnapshot, Booking, Trip]:
    """
    Применяет успешный результат матчинга к снимку.

    Args:
        snapshot: Текущий снимок (не изменяется)
        request: Исходный запрос
        result: Результат типа pool или new
        ids: Аллокатор номеров рейсов и бронирований
        booking_id: Идентификатор бронирования (по умолчанию uuid4)
        now: Время создания

    Returns:
        (новый снимок, бронирование, рейс)

    Raises:
        TripNotFound: Рейс из результата pool отсутствует в снимке
    """
    now = now or datetime.now(timezone.utc)
    booking_id = booking_id or str(uuid4())

    # Новые остановки получают ссылку на бронирование
    stops = [
        s if s.booking_id is not None else s.model_copy(update={"booking_id": booking_id})
        for s in result.new_stops
    ]

    if isinstance(result, PoolMatch):
        existing = snapshot.trip(result.trip_id)
        if existing is None:
            raise TripNotFound(result.trip_id)
        trip = existing.model_copy(update={
            "stops": stops,
            "route_polyline": result.route_polyline,
            "estimated_duration": result.estimated_duration,
        })
        trips = [trip if t.id == trip.id else t for t in snapshot.trips]
    else:
        trip = Trip(
            id=ids.next_trip_id(),
            vehicle_id=result.vehicle_id,
            status=TripStatus.PLANNED,
            stops=stops,
            route_polyline=result.route_polyline,
            departure_time=result.estimated_pickup_time,
            estimated_duration=result.estimated_duration,
            created_at=now,
        )
        trips = [*snapshot.trips, trip]

    booking = Booking(
        id=booking_id,
        booking_number=ids.next_booking_number(),
        trip_id=trip.id,
        pickup_location=request.pickup_location,
        pickup_address=request.pickup_address,
        dropoff_location=request.dropoff_location,
        dropoff_address=request.dropoff_address,
        requested_pickup_time=request.requested_pickup_time,
        estimated_pickup_time=result.estimated_pickup_time,
        estimated_dropoff_time=result.estimated_dropoff_time,
        passenger_count=request.passenger_count,
        status=BookingStatus.CONFIRMED,
        created_at=now,
    )

    bookings = _refresh_schedule([*snapshot.bookings, booking], trip)
    updated = snapshot.model_copy(update={"trips": trips, "bookings": bookings})
    return updated, booking, trip


class BookingService:
    """
    Фиксация бронирований и жизненный цикл рейсов.
    """

    def __init__(
        self,
        engine: MatchingEngine,
        snapshot: FleetSnapshot | None = None,
        config: MatchingConfig | None = None,
        ids: IdAllocator | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> None:
        self.engine = engine
        self._snapshot = snapshot or FleetSnapshot()
        self._config = config or MatchingConfig()
        self._ids = ids or SequentialIdAllocator()
        self._diagnostics = diagnostics or NullDiagnostics()
        self._lock = asyncio.Lock()

    @classmethod
    def build(
        cls,
        routing: RoutingProvider,
        snapshot: FleetSnapshot | None = None,
        config: MatchingConfig | None = None,
        ids: IdAllocator | None = None,
        diagnostics: DiagnosticSink | None = None,
    ) -> "BookingService":
        """Собирает сервис и движок с общим аллокатором и диагностикой."""
        ids = ids or SequentialIdAllocator()
        diagnostics = diagnostics or NullDiagnostics()
        engine = MatchingEngine(routing, diagnostics=diagnostics, ids=ids)
        return cls(engine, snapshot=snapshot, config=config, ids=ids, diagnostics=diagnostics)

    @property
    def snapshot(self) -> FleetSnapshot:
        return self._snapshot

    @property
    def config(self) -> MatchingConfig:
        return self._config

    async def update_config(self, config: MatchingConfig, fleet: FleetSettings | None = None) -> None:
        """
        Меняет параметры матчинга и при необходимости состав парка.

        Если число машин в fleet отличается от текущего, парк собирается
        заново (машины с теми же id сохраняют положение). При смене числа
        мест вместимость всех машин приводится к новому значению.
        """
        async with self._lock:
            seats = config.seats_per_vehicle
            vehicles = self._snapshot.vehicles

            if fleet is not None and fleet.VEHICLE_COUNT != len(vehicles):
                current = {v.id: v for v in vehicles}
                vehicles = [current.get(v.id, v) for v in default_fleet(fleet, seats)]

            if seats != self._config.seats_per_vehicle or vehicles is not self._snapshot.vehicles:
                vehicles = [v if v.capacity == seats else v.model_copy(update={"capacity": seats}) for v in vehicles]

            self._snapshot = self._snapshot.model_copy(update={"vehicles": vehicles})
            self._config = config

        await log_info(
            f"Параметры матчинга обновлены: {len(vehicles)} машин по {seats} мест",
            type_msg=TypeMsg.DEBUG,
        )

    # -------------------------------------------------------------------------
    # Бронирования
    # -------------------------------------------------------------------------

    async def create_booking(self, request: BookingRequest) -> BookingOutcome:
        """
        Подбирает вариант и фиксирует бронирование.

        При отказе снимок не меняется.
        """
        async with self._lock:
            result = await self.engine.find_best_match(request, self._snapshot, self._config)

            if isinstance(result, RejectedMatch):
                self._diagnostics.record(DiagnosticCategory.BOOKING, "booking_rejected", {
                    "reason": result.reason,
                    "earliest_available_time": (
                        result.earliest_available_time.isoformat()
                        if result.earliest_available_time else None
                    ),
                })
                return BookingOutcome(result=result)

            self._snapshot, booking, trip = commit_match(self._snapshot, request, result, self._ids)

        self._diagnostics.record(DiagnosticCategory.BOOKING, "booking_created", {
            "booking_number": booking.booking_number,
            "trip_id": trip.id,
            "type": "pooled" if isinstance(result, PoolMatch) else "new_trip",
            "vehicle_id": trip.vehicle_id,
        })
        await log_info(
            f"Бронирование {booking.booking_number} зафиксировано в рейсе {trip.id}",
            type_msg=TypeMsg.INFO,
        )
        return BookingOutcome(result=result, booking=booking, trip=trip)

    async def cancel_booking(self, booking_id: str) -> Booking:
        """
        Отменяет бронирование.

        Если в рейсе не осталось подтверждённых бронирований, рейс отменяется,
        иначе из него удаляются остановки этого бронирования.
        """
        async with self._lock:
            booking = self._snapshot.booking(booking_id)
            if booking is None:
                raise BookingNotFound(booking_id)
            if not booking.is_confirmed:
                return booking

            cancelled = booking.model_copy(update={"status": BookingStatus.CANCELLED})
            bookings = [cancelled if b.id == booking_id else b for b in self._snapshot.bookings]
            trips = self._snapshot.trips

            trip = self._snapshot.trip(booking.trip_id) if booking.trip_id else None
            if trip is not None and trip.is_active:
                remaining = [b for b in bookings if b.trip_id == trip.id and b.is_confirmed]
                if not remaining:
                    updated_trip = trip.model_copy(update={"status": TripStatus.CANCELLED})
                else:
                    stops = [
                        s.model_copy(update={"sequence": i})
                        for i, s in enumerate(
                            s for s in trip.ordered_stops() if s.booking_id != booking_id
                        )
                    ]
                    updated_trip = trip.model_copy(update={"stops": stops})
                trips = [updated_trip if t.id == trip.id else t for t in trips]

            self._snapshot = self._snapshot.model_copy(update={"bookings": bookings, "trips": trips})

        self._diagnostics.record(DiagnosticCategory.BOOKING, "booking_cancelled", {
            "booking_number": booking.booking_number,
            "trip_id": booking.trip_id,
        })
        await log_info(f"Бронирование {booking.booking_number} отменено", type_msg=TypeMsg.INFO)
        return cancelled

    # -------------------------------------------------------------------------
    # Рейсы
    # -------------------------------------------------------------------------

    async def start_trip(self, trip_id: str) -> Trip:
        trip = await self._transition(trip_id, TripStatus.IN_PROGRESS)
        self._diagnostics.record(DiagnosticCategory.TRIP, "trip_started", {"trip_id": trip_id})
        return trip

    async def complete_trip(self, trip_id: str) -> Trip:
        """Завершает рейс; машина остаётся в точке последней остановки."""
        trip = await self._transition(trip_id, TripStatus.COMPLETED)
        self._diagnostics.record(DiagnosticCategory.TRIP, "trip_completed", {"trip_id": trip_id})
        return trip

    async def _transition(self, trip_id: str, new_status: TripStatus) -> Trip:
        async with self._lock:
            trip = self._snapshot.trip(trip_id)
            if trip is None:
                raise TripNotFound(trip_id)

            if not TripStateMachine.can_transition(trip.status, new_status):
                raise InvalidTripTransition(f"Invalid transition from {trip.status} to {new_status}")

            updated = trip.model_copy(update={"status": new_status})
            trips = [updated if t.id == trip_id else t for t in self._snapshot.trips]
            vehicles = self._snapshot.vehicles

            last = trip.last_stop
            if new_status == TripStatus.COMPLETED and last is not None:
                vehicles = [
                    v.model_copy(update={"current_location": last.location})
                    if v.id == trip.vehicle_id else v
                    for v in vehicles
                ]

            self._snapshot = self._snapshot.model_copy(update={"trips": trips, "vehicles": vehicles})

        await log_info(f"Рейс {trip_id}: {trip.status} -> {new_status}", type_msg=TypeMsg.INFO)
        return updated
