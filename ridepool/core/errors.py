# ridepool/core/errors.py
"""
Исключения движка матчинга.

RouteUnavailable, ConstraintViolation и InvariantViolation отбрасывают один
вариант вставки и не прерывают поиск. NoFeasibleOption превращается
в результат "rejected" и наружу не выходит.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


class MatchingError(Exception):
    """Базовое исключение матчинга."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class RouteUnavailable(MatchingError):
    """Маршрут не построен: ошибка, таймаут или пустой ответ."""


class ConstraintViolation(MatchingError):
    """Нарушено ограничение вместимости, объезда или времени подачи."""

    CAPACITY = "capacity"
    DETOUR = "detour"
    NEW_PASSENGER_DETOUR = "new_passenger_detour"
    PICKUP_WINDOW = "pickup_window"

    def __init__(self, kind: str, message: str, **details: Any) -> None:
        super().__init__(message, **details)
        self.kind = kind


class InvariantViolation(MatchingError):
    """Нарушен внутренний инвариант (ошибка в коде)."""


class NoFeasibleOption(MatchingError):
    """Ни один рейс и ни одна машина не подходят."""

    def __init__(self, reason: str, earliest_available_time: Optional[datetime] = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.earliest_available_time = earliest_available_time


# =============================================================================
# ОШИБКИ ВЫЗЫВАЮЩЕЙ СТОРОНЫ
# =============================================================================

class BookingError(Exception):
    """Базовое исключение сервиса бронирований."""


class BookingNotFound(BookingError):
    """Бронирование не найдено."""


class TripNotFound(BookingError):
    """Рейс не найден."""


class InvalidTripTransition(BookingError):
    """Недопустимая смена статуса рейса."""
