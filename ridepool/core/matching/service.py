# ridepool/core/matching/service.py
"""
Движок матчинга запросов на совместные поездки.

Сначала ищет место в запланированных рейсах, затем свободную машину
для нового рейса. Снимок парка только читается: зафиксировать результат
может лишь вызывающая сторона.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from ridepool.common.constants import (
    REJECT_NO_ROUTE,
    REJECT_NO_VEHICLE,
    DiagnosticCategory,
    StopType,
    TypeMsg,
)
from ridepool.common.diagnostics import DiagnosticSink, NullDiagnostics
from ridepool.common.ids import IdAllocator, SequentialIdAllocator
from ridepool.common.logger import log_info
from ridepool.common.time_utils import add_minutes, add_seconds
from ridepool.core.availability.service import VehicleAvailabilityResolver
from ridepool.core.errors import NoFeasibleOption, RouteUnavailable
from ridepool.core.insertion.service import NEW_STOP_IDS, InsertionCandidate, InsertionEvaluator
from ridepool.core.routing.service import RoutingProvider, fetch_route
from ridepool.shared.models.booking import BookingRequest
from ridepool.shared.models.fleet import Trip, TripStop
from ridepool.shared.models.matching import (
    MatchingConfig,
    MatchResult,
    NewTripMatch,
    PoolMatch,
    RejectedMatch,
)
from ridepool.shared.models.snapshot import FleetSnapshot


class MatchingEngine:
    """
    Оркестратор поиска.

    В пределах рейса берётся первая подходящая пара позиций (first-fit),
    между рейсами побеждает рейс с наибольшим числом подтверждённых
    пассажиров; при равенстве побеждает более ранний в снимке.
    """

    def __init__(
        self,
        routing: RoutingProvider,
        diagnostics: DiagnosticSink | None = None,
        ids: IdAllocator | None = None,
        evaluator: InsertionEvaluator | None = None,
        resolver: VehicleAvailabilityResolver | None = None,
        concurrent: bool = True,
    ) -> None:
        """
        Args:
            routing: Провайдер маршрутов
            diagnostics: Приёмник диагностических событий
            ids: Аллокатор id для новых остановок
            evaluator: Проверка вставки (по умолчанию на том же провайдере)
            resolver: Поиск свободной машины (по умолчанию на том же провайдере)
            concurrent: Проверять рейсы параллельно
        """
        self._routing = routing
        self._diagnostics = diagnostics or NullDiagnostics()
        self._ids = ids or SequentialIdAllocator()
        self._evaluator = evaluator or InsertionEvaluator(routing, self._diagnostics)
        self._resolver = resolver or VehicleAvailabilityResolver(routing, self._diagnostics)
        self._concurrent = concurrent

    @property
    def routing(self) -> RoutingProvider:
        return self._routing

    def _record(self, action: str, details: dict) -> None:
        self._diagnostics.record(DiagnosticCategory.ALGORITHM, action, details)

    async def find_best_match(
        self,
        request: BookingRequest,
        snapshot: FleetSnapshot,
        config: MatchingConfig,
    ) -> MatchResult:
        """
        Подбирает рейс или машину для запроса.

        Args:
            request: Запрос пассажира
            snapshot: Снимок парка (не изменяется)
            config: Параметры матчинга

        Returns:
            PoolMatch, NewTripMatch или RejectedMatch
        """
        self._record("match_start", {
            "pickup_location": request.pickup_location.model_dump(),
            "dropoff_location": request.dropoff_location.model_dump(),
            "requested_pickup_time": request.requested_pickup_time.isoformat(),
            "passenger_count": request.passenger_count,
        })

        try:
            candidate = await self._best_pool_candidate(request, snapshot, config)
            if candidate is not None:
                return await self._pool_result(candidate)
            return await self._new_trip_result(request, snapshot, config)
        except NoFeasibleOption as e:
            self._record("match_rejected", {
                "reason": e.reason,
                "earliest_available_time": (
                    e.earliest_available_time.isoformat() if e.earliest_available_time else None
                ),
            })
            await log_info(f"Запрос отклонён: {e.reason}", type_msg=TypeMsg.INFO)
            return RejectedMatch(reason=e.reason, earliest_available_time=e.earliest_available_time)

    # -------------------------------------------------------------------------
    # Совместные поездки
    # -------------------------------------------------------------------------

    def _is_time_compatible(self, trip: Trip, request: BookingRequest, config: MatchingConfig) -> bool:
        requested = request.requested_pickup_time
        window = config.candidate_window_minutes

        if trip.departure_time > add_minutes(requested, window):
            self._record("skip_trip", {"trip_id": trip.id, "reason": "Trip departs too late"})
            return False

        if trip.end_time < add_minutes(requested, -window):
            self._record("skip_trip", {"trip_id": trip.id, "reason": "Trip ends too early"})
            return False

        return True

    async def _best_pool_candidate(
        self,
        request: BookingRequest,
        snapshot: FleetSnapshot,
        config: MatchingConfig,
    ) -> Optional[InsertionCandidate]:
        planned = snapshot.planned_trips()
        self._record("checking_planned_trips", {"count": len(planned)})

        trips = [t for t in planned if self._is_time_compatible(t, request, config)]

        if self._concurrent:
            # gather сохраняет порядок входа, итог не зависит от порядка завершения
            results = await asyncio.gather(
                *(self._first_fit(t, request, snapshot, config) for t in trips)
            )
        else:
            results = [await self._first_fit(t, request, snapshot, config) for t in trips]

        candidates = [c for c in results if c is not None]
        if not candidates:
            return None

        # sorted устойчива: при равном счёте остаётся порядок снимка
        return sorted(candidates, key=lambda c: c.score, reverse=True)[0]

    async def _first_fit(
        self,
        trip: Trip,
        request: BookingRequest,
        snapshot: FleetSnapshot,
        config: MatchingConfig,
    ) -> Optional[InsertionCandidate]:
        """Первая подходящая пара позиций в рейсе."""
        stops = trip.ordered_stops()
        bookings = snapshot.confirmed_bookings(trip.id)

        capacity = config.seats_per_vehicle
        vehicle = snapshot.vehicle(trip.vehicle_id)
        if vehicle is not None:
            capacity = min(capacity, vehicle.capacity)

        for pickup_pos in range(len(stops) + 1):
            for dropoff_pos in range(pickup_pos + 1, len(stops) + 2):
                candidate = await self._evaluator.evaluate(
                    trip, stops, bookings, request, pickup_pos, dropoff_pos, config, capacity,
                )
                if candidate is not None:
                    return candidate
        return None

    async def _pool_result(self, candidate: InsertionCandidate) -> PoolMatch:
        stops = [
            s.model_copy(update={"id": self._ids.next_stop_id()}) if s.id in NEW_STOP_IDS else s
            for s in candidate.new_stops
        ]

        self._record("match_found", {
            "type": "pool",
            "trip_id": candidate.trip.id,
            "existing_passengers": candidate.score,
            "estimated_pickup_time": candidate.estimated_pickup_time.isoformat(),
            "estimated_dropoff_time": candidate.estimated_dropoff_time.isoformat(),
        })
        await log_info(
            f"Запрос встроен в рейс {candidate.trip.id} "
            f"(позиции {candidate.pickup_pos}/{candidate.dropoff_pos})",
            type_msg=TypeMsg.INFO,
        )

        return PoolMatch(
            trip_id=candidate.trip.id,
            vehicle_id=candidate.trip.vehicle_id,
            estimated_pickup_time=candidate.estimated_pickup_time,
            estimated_dropoff_time=candidate.estimated_dropoff_time,
            estimated_duration=candidate.duration,
            route_polyline=candidate.route_polyline,
            new_stops=stops,
        )

    # -------------------------------------------------------------------------
    # Новый рейс
    # -------------------------------------------------------------------------

    async def _new_trip_result(
        self,
        request: BookingRequest,
        snapshot: FleetSnapshot,
        config: MatchingConfig,
    ) -> NewTripMatch:
        try:
            route = await fetch_route(
                self._routing,
                request.pickup_location,
                request.dropoff_location,
                timeout=config.route_timeout_seconds,
            )
        except RouteUnavailable as e:
            self._record("direct_route_failed", {"message": e.message, **e.details})
            raise NoFeasibleOption(REJECT_NO_ROUTE) from e

        decision = await self._resolver.find_available_vehicle(
            request.requested_pickup_time,
            route.duration,
            request.pickup_location,
            snapshot.vehicles,
            snapshot.active_trips(),
            config,
            passenger_count=request.passenger_count,
        )

        if decision.vehicle is None:
            reason = REJECT_NO_VEHICLE
            if decision.earliest_available_time is not None:
                reason = f"{reason}; earliest available at {decision.earliest_available_time.isoformat()}"
            raise NoFeasibleOption(reason, decision.earliest_available_time)

        self._record("creating_new_trip", {"vehicle_id": decision.vehicle.id})

        pickup_time = request.requested_pickup_time
        dropoff_time = add_minutes(add_seconds(pickup_time, route.duration), config.minutes_per_stop)

        stops = [
            TripStop(
                id=self._ids.next_stop_id(),
                location=request.pickup_location,
                address=request.pickup_address,
                type=StopType.PICKUP,
                scheduled_time=pickup_time,
                sequence=0,
            ),
            TripStop(
                id=self._ids.next_stop_id(),
                location=request.dropoff_location,
                address=request.dropoff_address,
                type=StopType.DROPOFF,
                scheduled_time=dropoff_time,
                sequence=1,
            ),
        ]

        self._record("match_found", {
            "type": "new",
            "vehicle_id": decision.vehicle.id,
            "estimated_pickup_time": pickup_time.isoformat(),
            "estimated_dropoff_time": dropoff_time.isoformat(),
        })
        await log_info(
            f"Для запроса открывается новый рейс на машине {decision.vehicle.id}",
            type_msg=TypeMsg.INFO,
        )

        return NewTripMatch(
            vehicle_id=decision.vehicle.id,
            estimated_pickup_time=pickup_time,
            estimated_dropoff_time=dropoff_time,
            estimated_duration=route.duration,
            route_polyline=route.polyline,
            new_stops=stops,
        )
