# ridepool/core/routing/service.py
"""
Сервис маршрутов.
Построение маршрута через упорядоченные точки (Google Directions API)
и офлайн-оценка по прямой для разработки и тестов.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional, Protocol, Sequence

import httpx

from ridepool.common.constants import DiagnosticCategory, TypeMsg
from ridepool.common.diagnostics import DiagnosticSink, NullDiagnostics
from ridepool.common.logger import log_info, log_error
from ridepool.core.errors import RouteUnavailable
from ridepool.core.routing.geo_utils import calculate_distance
from ridepool.core.routing.polyline import encode_polyline
from ridepool.shared.models.geo import Coordinates
from ridepool.shared.models.route import RouteLeg, RouteResult


class RoutingProvider(Protocol):
    """Строит маршрут origin -> waypoints... -> destination без перестановки точек."""

    async def route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        waypoints: Optional[Sequence[Coordinates]] = None,
    ) -> Optional[RouteResult]: ...


async def fetch_route(
    provider: RoutingProvider,
    origin: Coordinates,
    destination: Coordinates,
    waypoints: Optional[Sequence[Coordinates]] = None,
    *,
    timeout: float,
) -> RouteResult:
    """
    Запрашивает маршрут с ограничением по времени.

    Returns:
        Маршрут с числом участков, равным числу точек минус один

    Raises:
        RouteUnavailable: ошибка провайдера, таймаут, пустой или некорректный ответ
    """
    points = [origin, *(waypoints or []), destination]

    try:
        result = await asyncio.wait_for(
            provider.route(origin, destination, list(waypoints) if waypoints else None),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise RouteUnavailable("Таймаут запроса маршрута", timeout=timeout) from e
    except Exception as e:
        raise RouteUnavailable(f"Ошибка провайдера маршрутов: {e}") from e

    if result is None:
        raise RouteUnavailable("Маршрут не найден", points=len(points))

    if not isinstance(result, RouteResult) or len(result.legs) != len(points) - 1:
        raise RouteUnavailable(
            "Некорректный ответ провайдера маршрутов",
            expected_legs=len(points) - 1,
            received_legs=len(getattr(result, "legs", []) or []),
            received_type=type(result).__name__,
        )

    return result


class GoogleDirectionsProvider:
    """
    Маршруты через Google Maps Directions API.

    Точки посещаются строго в переданном порядке (без optimize),
    каждая промежуточная точка является остановкой.
    """

    DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"
    GEOCODING_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(
        self,
        api_key: str | None = None,
        language: str = "fr",
        timeout: float = 10.0,
        diagnostics: DiagnosticSink | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Инициализация сервиса.

        Args:
            api_key: API ключ Google Maps (берётся из конфига если None)
            language: Язык ответов
            timeout: Таймаут HTTP запроса, сек
            diagnostics: Приёмник событий категории api
            client: Готовый HTTP клиент (для тестов)
        """
        if api_key is None:
            from ridepool.config import settings
            api_key = settings.google_maps.GOOGLE_MAPS_API_KEY
            language = settings.google_maps.DIRECTIONS_LANGUAGE
            timeout = settings.google_maps.HTTP_TIMEOUT_SECONDS

        self._api_key = api_key
        self._language = language
        self._diagnostics = diagnostics or NullDiagnostics()
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Закрывает HTTP клиент."""
        await self._client.aclose()

    def _record(self, action: str, details: dict) -> None:
        self._diagnostics.record(DiagnosticCategory.API, action, details)

    async def route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        waypoints: Optional[Sequence[Coordinates]] = None,
    ) -> Optional[RouteResult]:
        """
        Строит маршрут через точки в заданном порядке.

        Returns:
            Маршрут или None
        """
        if not self._api_key:
            await log_error("Google Maps API key не настроен")
            self._record("directions_error", {"error": "No API key provided"})
            return None

        params = {
            "origin": origin.as_param(),
            "destination": destination.as_param(),
            "mode": "driving",
            "key": self._api_key,
            "language": self._language,
        }
        if waypoints:
            params["waypoints"] = "|".join(p.as_param() for p in waypoints)

        self._record("directions_request", {
            "origin": origin.model_dump(),
            "destination": destination.model_dump(),
            "waypoints": [p.model_dump() for p in waypoints or []],
        })

        started = time.monotonic()
        try:
            response = await self._client.get(self.DIRECTIONS_URL, params=params)
            data = response.json()
            latency_ms = round((time.monotonic() - started) * 1000)

            if data.get("status") != "OK" or not data.get("routes"):
                await log_info(
                    f"Маршрут не найден: {origin.as_param()} -> {destination.as_param()} "
                    f"(status={data.get('status')})",
                    type_msg=TypeMsg.WARNING,
                )
                self._record("directions_error", {
                    "error": data.get("status") or "No routes found",
                    "latencyMs": latency_ms,
                })
                return None

            route = data["routes"][0]
            legs = [
                RouteLeg(
                    duration=leg.get("duration", {}).get("value", 0),
                    distance=leg.get("distance", {}).get("value", 0),
                    start_location=Coordinates(
                        lat=leg["start_location"]["lat"],
                        lng=leg["start_location"]["lng"],
                    ),
                    end_location=Coordinates(
                        lat=leg["end_location"]["lat"],
                        lng=leg["end_location"]["lng"],
                    ),
                )
                for leg in route.get("legs", [])
            ]
            polyline = route.get("overview_polyline", {}).get("points", "")
            result = RouteResult.from_legs(legs, polyline)

            self._record("directions_response", {
                "status": "OK",
                "duration": result.duration,
                "distance": result.distance,
                "latencyMs": latency_ms,
            })
            return result
        except Exception as e:
            await log_error(f"Ошибка расчёта маршрута: {e}")
            self._record("directions_error", {
                "error": str(e),
                "latencyMs": round((time.monotonic() - started) * 1000),
            })
            return None

    async def reverse_geocode(self, location: Coordinates) -> str:
        """
        Обратное геокодирование: координаты -> адрес.
        Без ответа сервиса возвращает координаты строкой.
        """
        if not self._api_key:
            self._record("geocode_error", {"error": "No API key provided"})
            return location.label()

        self._record("geocode_request", {"location": location.model_dump()})
        try:
            response = await self._client.get(
                self.GEOCODING_URL,
                params={
                    "latlng": location.as_param(),
                    "key": self._api_key,
                    "language": self._language,
                },
            )
            data = response.json()

            if data.get("status") != "OK" or not data.get("results"):
                self._record("geocode_response", {"status": data.get("status", "ZERO_RESULTS")})
                return location.label()

            address = data["results"][0].get("formatted_address") or location.label()
            self._record("geocode_response", {"status": "OK", "address": address})
            return address
        except Exception as e:
            await log_error(f"Ошибка обратного геокодирования: {e}")
            self._record("geocode_error", {"error": str(e)})
            return location.label()


class StraightLineRoutingProvider:
    """
    Оценка маршрута по прямой: расстояние Haversine, умноженное на
    коэффициент извилистости, при постоянной средней скорости.
    """

    def __init__(self, speed_kmh: float = 40.0, detour_factor: float = 1.3) -> None:
        if speed_kmh <= 0:
            raise ValueError("speed_kmh должна быть положительной")
        self._speed_mps = speed_kmh * 1000 / 3600
        self._detour_factor = detour_factor

    async def route(
        self,
        origin: Coordinates,
        destination: Coordinates,
        waypoints: Optional[Sequence[Coordinates]] = None,
    ) -> Optional[RouteResult]:
        points = [origin, *(waypoints or []), destination]
        legs = []
        for start, end in zip(points, points[1:]):
            distance = calculate_distance(start, end) * self._detour_factor
            legs.append(RouteLeg(
                duration=round(distance / self._speed_mps),
                distance=round(distance),
                start_location=start,
                end_location=end,
            ))
        return RouteResult.from_legs(legs, encode_polyline(points))
