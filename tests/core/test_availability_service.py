# tests/core/test_availability_service.py
"""
Тесты для поиска свободной машины.
"""

from __future__ import annotations

import pytest

from ridepool.common.constants import TripStatus
from ridepool.common.diagnostics import StructuredDiagnostics
from ridepool.core.availability.service import AvailabilityDecision, VehicleAvailabilityResolver


# Новый рейс: посадка в 09:05, 2 минуты в пути, окно 09:05-09:09
DURATION_SECONDS = 120


class TestVehicleAvailabilityResolver:
    """Тесты для VehicleAvailabilityResolver."""

    @pytest.mark.asyncio
    async def test_idle_vehicle_available(self, routing, geo, clock, make_vehicle, matching_config) -> None:
        """Проверяет, что машина без рейсов свободна."""
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2, [make_vehicle("v1")], [], matching_config,
        )

        assert isinstance(decision, AvailabilityDecision)
        assert decision.vehicle.id == "v1"
        assert decision.earliest_available_time is None

    @pytest.mark.asyncio
    async def test_first_feasible_in_fleet_order(
        self, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет выбор первой подходящей машины в порядке парка."""
        busy, _ = make_trip("TRP-001", vehicle_id="v1")
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2,
            [make_vehicle("v1"), make_vehicle("v2"), make_vehicle("v3")],
            [busy],
            matching_config,
        )

        assert decision.vehicle.id == "v2"

    @pytest.mark.asyncio
    async def test_prior_trip_with_enough_time(
        self, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет, что машина успевает доехать после предыдущего рейса."""
        routing.set_leg(geo.D1, geo.P2, 600)
        prior, _ = make_trip(departure=clock(-70), ride_minutes=8)
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2, [make_vehicle("v1")], [prior], matching_config,
        )

        assert decision.vehicle.id == "v1"

    @pytest.mark.asyncio
    async def test_prior_trip_too_close(
        self, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет отказ, если машина не успевает доехать с запасом."""
        routing.set_leg(geo.D1, geo.P2, 300)
        # Предыдущий рейс заканчивается в 09:00, переезд 5 минут
        prior, _ = make_trip(departure=clock(-12), ride_minutes=10)
        diagnostics = StructuredDiagnostics()
        resolver = VehicleAvailabilityResolver(routing, diagnostics)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2, [make_vehicle("v1")], [prior], matching_config,
        )

        assert decision.vehicle is None
        assert decision.earliest_available_time == clock(10)
        unavailable = [e for e in diagnostics.entries if e.action == "vehicle_unavailable"]
        assert unavailable[0].details["reason"] == "cannot_reach_pickup"

    @pytest.mark.asyncio
    async def test_next_trip_too_close(
        self, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет отказ, если до следующего рейса меньше запаса."""
        following, _ = make_trip(departure=clock(12))
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2, [make_vehicle("v1")], [following], matching_config,
        )

        assert decision.vehicle is None
        assert decision.earliest_available_time is None

    @pytest.mark.asyncio
    async def test_next_trip_exactly_buffer_away(
        self, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет, что запас ровно buffer минут допустим."""
        following, _ = make_trip(departure=clock(14))
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2, [make_vehicle("v1")], [following], matching_config,
        )

        assert decision.vehicle.id == "v1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [TripStatus.COMPLETED, TripStatus.CANCELLED])
    async def test_finished_trips_ignored(
        self, status, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет, что завершённые и отменённые рейсы не занимают машину."""
        trip, _ = make_trip(status=status)
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2, [make_vehicle("v1")], [trip], matching_config,
        )

        assert decision.vehicle.id == "v1"

    @pytest.mark.asyncio
    async def test_route_failure_makes_vehicle_infeasible(
        self, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет, что ошибка маршрута от предыдущего рейса исключает машину."""
        routing.failing_points.add(geo.D1.as_param())
        prior, _ = make_trip(departure=clock(-70))
        diagnostics = StructuredDiagnostics()
        resolver = VehicleAvailabilityResolver(routing, diagnostics)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2, [make_vehicle("v1")], [prior], matching_config,
        )

        assert decision.vehicle is None
        assert decision.earliest_available_time is None
        assert diagnostics.actions()[-1] == "no_vehicle_available"

    @pytest.mark.asyncio
    async def test_earliest_is_minimum_over_busy_vehicles(
        self, routing, geo, clock, make_vehicle, make_trip, matching_config,
    ) -> None:
        """Проверяет, что ближайшее время освобождения равно минимуму по машинам."""
        routing.set_leg(geo.D1, geo.P2, 600)
        routing.set_leg(geo.D3, geo.P2, 60)
        trip1, _ = make_trip("TRP-001", vehicle_id="v1", ride_minutes=20)
        trip2, _ = make_trip("TRP-002", vehicle_id="v2", dropoff=geo.D3, ride_minutes=20)
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2,
            [make_vehicle("v1"), make_vehicle("v2")],
            [trip1, trip2],
            matching_config,
        )

        assert decision.vehicle is None
        # v2: конец в 09:22, переезд 1 минута, запас 5 минут
        assert decision.earliest_available_time == clock(28)

    @pytest.mark.asyncio
    async def test_capacity_skips_small_vehicle(
        self, routing, geo, clock, make_vehicle, matching_config,
    ) -> None:
        """Проверяет пропуск машины, в которую группа не помещается."""
        diagnostics = StructuredDiagnostics()
        resolver = VehicleAvailabilityResolver(routing, diagnostics)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2,
            [make_vehicle("v1", capacity=4), make_vehicle("v2", capacity=8)],
            [],
            matching_config,
            passenger_count=6,
        )

        assert decision.vehicle.id == "v2"
        skipped = diagnostics.filter()[0]
        assert skipped.action == "vehicle_unavailable"
        assert skipped.details["vehicle_id"] == "v1"
        assert skipped.details["reason"] == "capacity"

    @pytest.mark.asyncio
    async def test_capacity_limited_by_config(
        self, routing, geo, clock, make_vehicle, matching_config,
    ) -> None:
        """Проверяет, что группа больше числа мест из настроек не получает машину и оценку."""
        resolver = VehicleAvailabilityResolver(routing)

        decision = await resolver.find_available_vehicle(
            clock(5), DURATION_SECONDS, geo.P2,
            [make_vehicle("v1", capacity=12)],
            [],
            matching_config,
            passenger_count=10,
        )

        assert decision.vehicle is None
        assert decision.earliest_available_time is None
