"""
Маршруты.
Провайдеры маршрутов и вызов с ограничением по времени.
"""

from ridepool.core.routing.service import (
    RoutingProvider,
    GoogleDirectionsProvider,
    StraightLineRoutingProvider,
    fetch_route,
)
from ridepool.core.routing.polyline import decode_polyline, encode_polyline

__all__ = [
    "RoutingProvider",
    "GoogleDirectionsProvider",
    "StraightLineRoutingProvider",
    "fetch_route",
    "decode_polyline",
    "encode_polyline",
]
