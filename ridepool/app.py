# ridepool/app.py
"""
Сборка движка из настроек.
Аллокатор идентификаторов продолжает нумерацию сохранённого снимка,
пустые адреса запроса заполняются обратным геокодированием.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Iterable, Optional

from ridepool.common.constants import TypeMsg
from ridepool.common.diagnostics import DiagnosticSink
from ridepool.common.ids import SequentialIdAllocator
from ridepool.common.logger import log_info
from ridepool.config.loader import Settings
from ridepool.core.bookings import BookingService, default_fleet
from ridepool.core.routing import (
    GoogleDirectionsProvider,
    RoutingProvider,
    StraightLineRoutingProvider,
)
from ridepool.shared.models import BookingRequest, FleetSnapshot


def _max_number(values: Iterable[str], prefix: str) -> int:
    pattern = re.compile(rf"^{re.escape(prefix)}-(\d+)$")
    numbers = [int(m.group(1)) for m in map(pattern.match, values) if m]
    return max(numbers, default=0)


def id_allocator_for(snapshot: FleetSnapshot) -> SequentialIdAllocator:
    """
    Аллокатор, продолжающий нумерацию после сущностей снимка.
    Идентификаторы в чужом формате при подсчёте пропускаются.
    """
    return SequentialIdAllocator.from_counts(
        bookings=_max_number((b.booking_number for b in snapshot.bookings), "BK"),
        trips=_max_number((t.id for t in snapshot.trips), "TRP"),
        stops=_max_number((s.id for t in snapshot.trips for s in t.stops), "STP"),
    )


def load_snapshot(path: Path) -> FleetSnapshot:
    """Читает снимок парка из JSON-файла."""
    with open(path, "r", encoding="utf-8") as f:
        return FleetSnapshot.model_validate(json.load(f))


def create_routing_provider(
    settings: Settings,
    diagnostics: Optional[DiagnosticSink] = None,
) -> RoutingProvider:
    """Google Directions при наличии ключа, иначе оценка по прямой."""
    google = settings.google_maps
    if google.GOOGLE_MAPS_API_KEY:
        return GoogleDirectionsProvider(
            api_key=google.GOOGLE_MAPS_API_KEY,
            language=google.DIRECTIONS_LANGUAGE,
            timeout=google.HTTP_TIMEOUT_SECONDS,
            diagnostics=diagnostics,
        )
    return StraightLineRoutingProvider()


async def create_booking_service(
    settings: Settings,
    snapshot: Optional[FleetSnapshot] = None,
    routing: Optional[RoutingProvider] = None,
    diagnostics: Optional[DiagnosticSink] = None,
) -> BookingService:
    """
    Сервис бронирований, готовый к работе.

    Без снимка создаётся пустой парк из настроек fleet.
    """
    config = settings.matching.to_matching_config()
    if snapshot is None:
        snapshot = FleetSnapshot(vehicles=default_fleet(settings.fleet, config.seats_per_vehicle))

    if routing is None:
        routing = create_routing_provider(settings, diagnostics)

    await log_info(
        f"Парк: {len(snapshot.vehicles)} машин, {len(snapshot.trips)} рейсов, "
        f"маршруты: {type(routing).__name__}",
        type_msg=TypeMsg.DEBUG,
    )

    return BookingService.build(
        routing,
        snapshot=snapshot,
        config=config,
        ids=id_allocator_for(snapshot),
        diagnostics=diagnostics,
    )


async def fill_request_addresses(request: BookingRequest, routing: RoutingProvider) -> BookingRequest:
    """
    Подставляет адреса посадки и высадки, если в запросе их нет.
    Работает только с провайдером, умеющим обратное геокодирование.
    """
    geocode = getattr(routing, "reverse_geocode", None)
    if geocode is None:
        return request

    updates = {}
    if not request.pickup_address:
        updates["pickup_address"] = await geocode(request.pickup_location)
    if not request.dropoff_address:
        updates["dropoff_address"] = await geocode(request.dropoff_location)
    return request.model_copy(update=updates) if updates else request
