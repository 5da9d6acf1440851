# ridepool/common/diagnostics.py
"""
Диагностический журнал алгоритма.
Запись не блокирует и никогда не бросает исключений: журнал не влияет
на ход матчинга.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from pydantic import BaseModel, Field

from ridepool.common.constants import DiagnosticCategory
from ridepool.common.ids import IdAllocator, SequentialIdAllocator
from ridepool.common.logger import get_logger


DIAGNOSTICS_LOGGER = "ridepool.diagnostics"


class DiagnosticEntry(BaseModel):
    """Запись диагностического журнала."""

    id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    category: DiagnosticCategory
    action: str
    details: dict[str, Any] = Field(default_factory=dict)


class DiagnosticSink(Protocol):
    """Приёмник диагностических событий."""

    def record(self, category: DiagnosticCategory, action: str, details: dict[str, Any]) -> None: ...


class NullDiagnostics:
    """Ничего не записывает."""

    def record(self, category: DiagnosticCategory, action: str, details: dict[str, Any]) -> None:
        return None


class StructuredDiagnostics:
    """
    Пишет события в логгер проекта и хранит их в памяти.

    Журнал в памяти нужен панели отладки: его можно отфильтровать
    по категориям, очистить и выгрузить в JSON.
    """

    def __init__(
        self,
        ids: IdAllocator | None = None,
        max_entries: int | None = 1000,
        logger_name: str = DIAGNOSTICS_LOGGER,
    ) -> None:
        self._ids = ids or SequentialIdAllocator()
        self._max_entries = max_entries
        self._logger_name = logger_name
        self._entries: list[DiagnosticEntry] = []

    @property
    def entries(self) -> list[DiagnosticEntry]:
        return list(self._entries)

    def record(self, category: DiagnosticCategory, action: str, details: dict[str, Any]) -> None:
        try:
            entry = DiagnosticEntry(
                id=self._ids.next_log_id(),
                category=DiagnosticCategory(category),
                action=action,
                details=dict(details),
            )
            self._entries.append(entry)
            if self._max_entries is not None and len(self._entries) > self._max_entries:
                del self._entries[: len(self._entries) - self._max_entries]

            get_logger(self._logger_name).debug(
                f"[{entry.category}] {action}",
                extra={"extra_data": {"diagnostic_id": entry.id, **entry.details}},
            )
        except Exception:
            # Сбой журнала не должен прерывать матчинг
            pass

    def filter(self, categories: Iterable[DiagnosticCategory] = ()) -> list[DiagnosticEntry]:
        """Возвращает записи указанных категорий (все, если список пуст)."""
        wanted = {DiagnosticCategory(c) for c in categories}
        if not wanted:
            return self.entries
        return [e for e in self._entries if e.category in wanted]

    def actions(self, category: DiagnosticCategory | None = None) -> list[str]:
        return [e.action for e in self._entries if category is None or e.category == category]

    def clear(self) -> None:
        self._entries.clear()

    def export_json(self) -> str:
        return json.dumps(
            [e.model_dump(mode="json") for e in self._entries],
            ensure_ascii=False,
            indent=2,
        )
