#!/usr/bin/env python3
# main.py
"""
Запуск движка подбора из командной строки.

    python main.py match request.json [snapshot.json]
    python main.py book request.json [snapshot.json]

match печатает результат подбора, book дополнительно фиксирует бронирование
и, если передан снимок, записывает обновлённый снимок обратно в файл.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

from ridepool.app import create_booking_service, fill_request_addresses, load_snapshot
from ridepool.common.constants import TypeMsg
from ridepool.common.diagnostics import StructuredDiagnostics
from ridepool.common.logger import log_error, log_info, setup_logging
from ridepool.config import settings
from ridepool.shared.models import BookingRequest, match_result_adapter


MODES = ("match", "book")


def print_usage() -> None:
    """Выводит справку по использованию."""
    print(__doc__)


async def main(mode: str, request_path: Path, snapshot_path: Path | None = None) -> int:
    """
    Выполняет один подбор.

    Returns:
        Код выхода: 0 если запрос принят, 2 при отказе
    """
    setup_logging()
    await log_info(
        f"{settings.system.PROJECT_NAME} v{settings.system.VERSION}: режим '{mode}'",
        type_msg=TypeMsg.INFO,
    )

    with open(request_path, "r", encoding="utf-8") as f:
        request = BookingRequest.model_validate(json.load(f))
    snapshot = load_snapshot(snapshot_path) if snapshot_path else None

    diagnostics = StructuredDiagnostics()
    service = await create_booking_service(settings, snapshot=snapshot, diagnostics=diagnostics)
    routing = service.engine.routing

    try:
        request = await fill_request_addresses(request, routing)

        if mode == "match":
            result = await service.engine.find_best_match(request, service.snapshot, service.config)
            print(match_result_adapter.dump_json(result, indent=2).decode())
            return 0 if result.type != "rejected" else 2

        outcome = await service.create_booking(request)
        print(match_result_adapter.dump_json(outcome.result, indent=2).decode())
        if outcome.accepted:
            print(outcome.booking.model_dump_json(indent=2))
            if snapshot_path:
                snapshot_path.write_text(service.snapshot.model_dump_json(indent=2), encoding="utf-8")
                await log_info(f"Снимок сохранён: {snapshot_path}", type_msg=TypeMsg.DEBUG)
        return 0 if outcome.accepted else 2
    finally:
        close = getattr(routing, "close", None)
        if close is not None:
            await close()


if __name__ == "__main__":
    if len(sys.argv) < 3 or sys.argv[1].lower() in ("--help", "-h"):
        print_usage()
        sys.exit(0 if len(sys.argv) > 1 and sys.argv[1].lower() in ("--help", "-h") else 1)

    mode = sys.argv[1].lower()
    if mode not in MODES:
        print(f"Ошибка: неизвестный режим '{mode}'")
        print_usage()
        sys.exit(1)

    snapshot_arg = Path(sys.argv[3]) if len(sys.argv) > 3 else None

    try:
        sys.exit(asyncio.run(main(mode, Path(sys.argv[2]), snapshot_arg)))
    except KeyboardInterrupt:
        pass
    except (OSError, ValueError) as e:
        asyncio.run(log_error(f"Не удалось выполнить подбор: {e}"))
        sys.exit(1)
