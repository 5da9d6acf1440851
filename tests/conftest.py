# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable, Optional, Sequence

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test_api_key")

from ridepool.common.constants import BookingStatus, StopType, TripStatus
from ridepool.common.ids import SequentialIdAllocator
from ridepool.common.diagnostics import StructuredDiagnostics
from ridepool.shared.models.booking import Booking, BookingRequest
from ridepool.shared.models.fleet import Trip, TripStop, Vehicle
from ridepool.shared.models.geo import Coordinates
from ridepool.shared.models.matching import MatchingConfig
from ridepool.shared.models.route import RouteLeg, RouteResult


BASE_TIME = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    """Момент через minutes минут после 09:00 базового дня."""
    return BASE_TIME + timedelta(minutes=minutes)


# Точки тестового города
P1 = Coordinates(lat=48.8566, lng=2.3522)
D1 = Coordinates(lat=48.8738, lng=2.2950)
P2 = Coordinates(lat=48.8606, lng=2.3376)
D2 = Coordinates(lat=48.8530, lng=2.3499)
D3 = Coordinates(lat=48.8867, lng=2.3431)


# =============================================================================
# ЗАГЛУШКА МАРШРУТОВ
# =============================================================================

class StubRoutingProvider:
    """
    Детерминированный провайдер маршрутов.

    Длительность участка берётся из таблицы (направленной),
    для неизвестных пар default_seconds. Участок между одинаковыми
    точками длится 0 секунд.
    """

    def __init__(self, default_seconds: int = 3600) -> None:
        self.durations: dict[tuple[str, str], int] = {}
        self.default_seconds = default_seconds
        self.fail_all = False
        self.failing_points: set[str] = set()
        self.calls: list[list[Coordinates]] = []

    def set_leg(self, origin: Coordinates, destination: Coordinates, seconds: int) -> "StubRoutingProvider":
        self.durations[(origin.as_param(), destination.as_param())] = seconds
        return self

    def leg_seconds(self, origin: Coordinates, destination: Coordinates) -> int:
        if origin.as_param() == destination.as_param():
            return 0
        return self.durations.get((origin.as_param(), destination.as_param()), self.default_seconds)

    async def route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        waypoints: Optional[Sequence[Coordinates]] = None,
    ) -> Optional[RouteResult]:
        points = [origin, *(waypoints or []), destination]
        self.calls.append(points)

        if self.fail_all or any(p.as_param() in self.failing_points for p in points):
            return None

        legs = [
            RouteLeg(
                duration=self.leg_seconds(a, b),
                distance=self.leg_seconds(a, b) * 10,
                start_location=a,
                end_location=b,
            )
            for a, b in zip(points, points[1:])
        ]
        return RouteResult.from_legs(legs, polyline="stub")


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "ridepool_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "LOG_LEVEL": "DEBUG",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_FORMAT": "json",
        "LOG_MAX_BYTES": 1024,
        "GOOGLE_MAPS_API_KEY": "",
        "DIRECTIONS_LANGUAGE": "en",
        "HTTP_TIMEOUT_SECONDS": 5.0,
        "SEATS_PER_VEHICLE": 6,
        "MAX_DETOUR_MINUTES": 10,
        "MINUTES_PER_STOP": 1,
        "BUFFER_MINUTES": 3,
        "CANDIDATE_WINDOW_MINUTES": 45,
        "PICKUP_TOLERANCE_MINUTES": 20,
        "ROUTE_TIMEOUT_SECONDS": 4,
        "VEHICLE_COUNT": 2,
        "VEHICLE_NAME_PREFIX": "Navette",
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


@pytest.fixture
def matching_config() -> MatchingConfig:
    """Параметры матчинга: 8 мест, объезд 8 мин, 2 мин на остановке, запас 5 мин."""
    return MatchingConfig(
        seats_per_vehicle=8,
        max_detour_minutes=8,
        minutes_per_stop=2,
        buffer_minutes=5,
    )


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ
# =============================================================================

@pytest.fixture
def geo() -> SimpleNamespace:
    """Точки тестового города."""
    return SimpleNamespace(P1=P1, D1=D1, P2=P2, D2=D2, D3=D3)


@pytest.fixture
def clock() -> Callable[[float], datetime]:
    """Время относительно 09:00 базового дня."""
    return at


@pytest.fixture
def routing() -> StubRoutingProvider:
    """Провайдер маршрутов с пустой таблицей."""
    return StubRoutingProvider()


@pytest.fixture
def ids() -> SequentialIdAllocator:
    """Свежий аллокатор идентификаторов."""
    return SequentialIdAllocator()


@pytest.fixture
def diagnostics() -> StructuredDiagnostics:
    """Диагностический журнал в памяти."""
    return StructuredDiagnostics()


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def make_vehicle() -> Callable[..., Vehicle]:
    """Фабрика машин."""
    def _make(vehicle_id: str = "v1", capacity: int = 8, **kwargs: Any) -> Vehicle:
        return Vehicle(id=vehicle_id, name=f"Vehicle {vehicle_id}", capacity=capacity, **kwargs)
    return _make


@pytest.fixture
def make_trip() -> Callable[..., tuple[Trip, Booking]]:
    """
    Фабрика рейса с одним бронированием: посадка в pickup, высадка в dropoff.
    Время высадки = отправление + ride_minutes + 2 мин на остановке.
    """
    def _make(
        trip_id: str = "TRP-001",
        vehicle_id: str = "v1",
        departure: datetime = BASE_TIME,
        ride_minutes: float = 10,
        passengers: int = 1,
        pickup: Coordinates = P1,
        dropoff: Coordinates = D1,
        status: TripStatus = TripStatus.PLANNED,
        booking_id: Optional[str] = None,
    ) -> tuple[Trip, Booking]:
        booking_id = booking_id or f"b-{trip_id}"
        dropoff_time = departure + timedelta(minutes=ride_minutes + 2)
        stops = [
            TripStop(
                id=f"{trip_id}-S0",
                location=pickup,
                type=StopType.PICKUP,
                booking_id=booking_id,
                scheduled_time=departure,
                sequence=0,
            ),
            TripStop(
                id=f"{trip_id}-S1",
                location=dropoff,
                type=StopType.DROPOFF,
                booking_id=booking_id,
                scheduled_time=dropoff_time,
                sequence=1,
            ),
        ]
        trip = Trip(
            id=trip_id,
            vehicle_id=vehicle_id,
            status=status,
            stops=stops,
            departure_time=departure,
            estimated_duration=int(ride_minutes * 60),
        )
        booking = Booking(
            id=booking_id,
            booking_number=f"BK-{trip_id}",
            trip_id=trip_id,
            pickup_location=pickup,
            dropoff_location=dropoff,
            requested_pickup_time=departure,
            estimated_pickup_time=departure,
            estimated_dropoff_time=dropoff_time,
            passenger_count=passengers,
            status=BookingStatus.CONFIRMED,
        )
        return trip, booking
    return _make


@pytest.fixture
def make_request() -> Callable[..., BookingRequest]:
    """Фабрика запросов P2 -> D2."""
    def _make(
        minutes: float = 5,
        passengers: int = 1,
        pickup: Coordinates = P2,
        dropoff: Coordinates = D2,
    ) -> BookingRequest:
        return BookingRequest(
            pickup_location=pickup,
            pickup_address="Rue de Rivoli",
            dropoff_location=dropoff,
            dropoff_address="Île de la Cité",
            requested_pickup_time=at(minutes),
            passenger_count=passengers,
        )
    return _make


@pytest.fixture
def pooling_routing(routing: StubRoutingProvider) -> StubRoutingProvider:
    """
    Таблица, в которой запрос P2 -> D2 в 09:05 встраивается
    в рейс P1 (09:00) -> D1 (09:12) между его остановками,
    задерживая высадку первого пассажира на 5 минут.
    """
    routing.set_leg(P1, D1, 600)
    routing.set_leg(P1, P2, 180)
    routing.set_leg(P2, D2, 120)
    routing.set_leg(D2, D1, 360)
    return routing
