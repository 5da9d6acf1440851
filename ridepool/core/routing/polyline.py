# ridepool/core/routing/polyline.py
"""
Кодирование и декодирование Google encoded polyline.
"""

from __future__ import annotations

from ridepool.shared.models.geo import Coordinates


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: list[Coordinates]) -> str:
    """Кодирует точки с точностью 1e-5."""
    result = []
    prev_lat = prev_lng = 0
    for point in points:
        lat = round(point.lat * 1e5)
        lng = round(point.lng * 1e5)
        result.append(_encode_value(lat - prev_lat))
        result.append(_encode_value(lng - prev_lng))
        prev_lat, prev_lng = lat, lng
    return "".join(result)


def _decode_value(encoded: str, index: int) -> tuple[int, int]:
    shift = 0
    result = 0
    while True:
        byte = ord(encoded[index]) - 63
        index += 1
        result |= (byte & 0x1F) << shift
        shift += 5
        if byte < 0x20:
            break
    delta = ~(result >> 1) if result & 1 else result >> 1
    return delta, index


def decode_polyline(encoded: str) -> list[Coordinates]:
    """
    Декодирует polyline в список точек.

    Args:
        encoded: Строка polyline

    Returns:
        Точки маршрута в порядке следования
    """
    points: list[Coordinates] = []
    index = 0
    lat = lng = 0

    while index < len(encoded):
        dlat, index = _decode_value(encoded, index)
        dlng, index = _decode_value(encoded, index)
        lat += dlat
        lng += dlng
        points.append(Coordinates(lat=lat / 1e5, lng=lng / 1e5))

    return points
