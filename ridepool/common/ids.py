# ridepool/common/ids.py
"""
Генерация идентификаторов.
Счётчики живут в экземпляре аллокатора, а не в модуле, поэтому
параллельные тесты и несколько парков не мешают друг другу.
"""

from __future__ import annotations

from typing import Protocol


class IdAllocator(Protocol):
    """Источник идентификаторов для остановок, рейсов, бронирований и логов."""

    def next_stop_id(self) -> str: ...

    def next_trip_id(self) -> str: ...

    def next_booking_number(self) -> str: ...

    def next_log_id(self) -> str: ...


class SequentialIdAllocator:
    """
    Последовательные человекочитаемые идентификаторы:
    STP-0001, TRP-001, BK-001, LOG-00001.
    """

    def __init__(
        self,
        bookings: int = 0,
        trips: int = 0,
        stops: int = 0,
        logs: int = 0,
    ) -> None:
        self._bookings = bookings
        self._trips = trips
        self._stops = stops
        self._logs = logs

    @classmethod
    def from_counts(cls, bookings: int, trips: int, stops: int, logs: int = 0) -> "SequentialIdAllocator":
        """Продолжает нумерацию после уже существующих сущностей."""
        return cls(bookings=bookings, trips=trips, stops=stops, logs=logs)

    def next_stop_id(self) -> str:
        self._stops += 1
        return f"STP-{self._stops:04d}"

    def next_trip_id(self) -> str:
        self._trips += 1
        return f"TRP-{self._trips:03d}"

    def next_booking_number(self) -> str:
        self._bookings += 1
        return f"BK-{self._bookings:03d}"

    def next_log_id(self) -> str:
        self._logs += 1
        return f"LOG-{self._logs:05d}"
