# ridepool/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class DiagnosticCategory(str, Enum):
    """Категории диагностических событий."""
    API = "api"
    ALGORITHM = "algorithm"
    BOOKING = "booking"
    TRIP = "trip"

    def __str__(self) -> str:
        return self.value


class TripStatus(str, Enum):
    """Статусы рейса."""
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


# Рейсы в этих статусах больше не занимают машину
TERMINAL_TRIP_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})


class StopType(str, Enum):
    """Тип остановки."""
    PICKUP = "pickup"
    DROPOFF = "dropoff"

    def __str__(self) -> str:
        return self.value


class BookingStatus(str, Enum):
    """Статусы бронирования."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


# Причины отказа
REJECT_NO_ROUTE = "could not calculate route"
REJECT_NO_VEHICLE = "no vehicle available for this time slot"
