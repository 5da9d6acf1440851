# ridepool/common/logger.py
"""
Логирование движка подбора.

Два формата вывода: JSON для продакшена и цветной текст для разработки.
Идентификаторы рейса, машины и бронирования из extra выводятся отдельно,
поэтому по ним удобно искать историю конкретной поездки.
"""

from __future__ import annotations

import inspect
import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from ridepool.common.constants import TypeMsg


DEFAULT_LOGGER_NAME = "ridepool"

# Ключи предметной области, которые выносятся из extra
CONTEXT_KEYS: tuple[str, ...] = ("trip_id", "vehicle_id", "booking_number", "diagnostic_id")

# Один файл на процесс, общий для всех логгеров
_GLOBAL_FILE_HANDLER: logging.Handler | None = None

_LOGGING_INITIALIZED: bool = False

_loggers: dict[str, logging.Logger] = {}


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    extra_data = getattr(record, "extra_data", None) or {}
    return {key: extra_data[key] for key in CONTEXT_KEYS if extra_data.get(key) is not None}


# =============================================================================
# ФОРМАТТЕРЫ
# =============================================================================

class JsonFormatter(logging.Formatter):
    """
    Одна строка JSON на запись.
    Идентификаторы рейса и машины дублируются на верхний уровень,
    чтобы фильтровать по ним без разбора extra.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(_record_context(record))

        extra_data = getattr(record, "extra_data", None)
        if extra_data is not None:
            payload["extra"] = extra_data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Вывод в терминал: уровень цветом, место вызова и контекст поездки серым."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[90m"

    def _origin(self, record: logging.LogRecord) -> str:
        extra_data = getattr(record, "extra_data", None) or {}
        function = extra_data.get("caller_function")
        if not function:
            return ""
        location = f"{extra_data.get('caller_file')}:{extra_data.get('caller_line')}"
        return f" {self.DIM}[{extra_data.get('caller_module')}.{function}() {location}]{self.RESET}"

    def _context(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        if not context:
            return ""
        pairs = " ".join(f"{key}={value}" for key, value in context.items())
        return f" {self.DIM}({pairs}){self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        color = self.LEVEL_COLORS.get(level, self.DIM)
        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        line = f"{stamp} {color}[{level}]{self.RESET}{self._origin(record)} {record.getMessage()}{self._context(record)}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class SizeRotatingFileHandler(RotatingFileHandler):
    """
    Файл с ротацией по размеру.
    Активный файл всегда называется <logger_name>.log, заполненный
    переименовывается в <logger_name>_<дата>_<время>.log.
    """

    def __init__(self, log_dir: str, max_bytes: int, logger_name: str = "ridepool", encoding: str = "utf-8"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.logger_name = logger_name

        super().__init__(
            filename=str(self.log_dir / f"{logger_name}.log"),
            maxBytes=max_bytes,
            backupCount=0,
            encoding=encoding,
        )

    def _archive_path(self) -> Path:
        suffix = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        return self.log_dir / f"{self.logger_name}_{suffix}.log"

    def doRollover(self) -> None:
        if self.stream:
            self.stream.close()
            self.stream = None

        if os.path.exists(self.baseFilename):
            try:
                os.replace(self.baseFilename, self._archive_path())
            except OSError:
                # Не удалось переименовать: дописываем в тот же файл
                pass

        self.stream = self._open()


# =============================================================================
# НАСТРОЙКА
# =============================================================================

@dataclass
class _LoggingOptions:
    level: str = "DEBUG"
    fmt: str = "colored"
    to_file: bool = False
    file_path: str = "logs/ridepool.log"
    max_bytes: int = 10485760


def _resolve_options() -> _LoggingOptions:
    """
    Берёт секцию logging из настроек.
    Если конфиг не загружается, логирование работает на значениях по умолчанию.
    """
    options = _LoggingOptions()
    try:
        from ridepool.config import settings

        section = settings.logging
    except Exception:
        return options

    # В тестах секция может быть MagicMock, берём только значения нужного типа
    for attr, field, kind in (
        ("LOG_LEVEL", "level", str),
        ("LOG_FORMAT", "fmt", str),
        ("LOG_TO_FILE", "to_file", bool),
        ("LOG_FILE_PATH", "file_path", str),
        ("LOG_MAX_BYTES", "max_bytes", int),
    ):
        value = getattr(section, attr, None)
        if isinstance(value, kind):
            setattr(options, field, value)
    return options


def _make_formatter(fmt: str) -> logging.Formatter:
    return JsonFormatter() if fmt == "json" else ColoredFormatter()


def _shared_file_handler(options: _LoggingOptions) -> logging.Handler:
    global _GLOBAL_FILE_HANDLER
    if _GLOBAL_FILE_HANDLER is None:
        path = Path(options.file_path)
        _GLOBAL_FILE_HANDLER = SizeRotatingFileHandler(
            log_dir=str(path.parent),
            max_bytes=options.max_bytes,
            logger_name=path.stem,
        )
        _GLOBAL_FILE_HANDLER.setFormatter(_make_formatter(options.fmt))
    return _GLOBAL_FILE_HANDLER


def setup_logging() -> None:
    """Настраивает корневой логгер проекта и приглушает HTTP-клиент. Повторный вызов ничего не делает."""
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED:
        return
    _LOGGING_INITIALIZED = True

    get_logger(DEFAULT_LOGGER_NAME)

    # Запросы к Directions API логирует сам провайдер маршрутов
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Возвращает логгер с консольным (и при необходимости файловым) выводом.

    Args:
        name: Имя логгера

    Returns:
        Логгер из кэша модуля либо новый настроенный
    """
    cached = _loggers.get(name)
    if cached is not None:
        return cached

    options = _resolve_options()
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, options.level.upper(), logging.DEBUG))

    if not logger.handlers:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_make_formatter(options.fmt))
        logger.addHandler(console)

        if options.to_file:
            logger.addHandler(_shared_file_handler(options))

        logger.propagate = False

    _loggers[name] = logger
    return logger


# =============================================================================
# АСИНХРОННЫЕ ОБЁРТКИ
# =============================================================================

def _get_caller_info() -> dict[str, Any]:
    """
    Описывает код, вызвавший log_*: функция, модуль, файл и строка.
    Пустой словарь, если стек недоступен.
    """
    frame = inspect.currentframe()
    try:
        # Пропускаем _get_caller_info и саму обёртку log_*
        caller = frame.f_back.f_back if frame is not None and frame.f_back is not None else None
        if caller is None:
            return {}

        module = inspect.getmodule(caller)
        filename = caller.f_code.co_filename
        return {
            "caller_function": caller.f_code.co_name,
            "caller_module": module.__name__ if module else "unknown",
            "caller_file": Path(filename).name if filename else "unknown",
            "caller_line": caller.f_lineno,
        }
    except Exception:
        return {}
    finally:
        del frame


def _with_caller(extra: dict[str, Any] | None, caller: dict[str, Any]) -> dict[str, Any]:
    return {"extra_data": {**caller, **(extra or {})}}


async def log_info(
    message: str,
    *,
    type_msg: TypeMsg = TypeMsg.INFO,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Пишет сообщение на уровне type_msg.

    Args:
        message: Текст сообщения
        type_msg: Уровень (INFO по умолчанию)
        logger_name: Имя логгера
        extra: Контекст записи, например trip_id или vehicle_id
    """
    logger = get_logger(logger_name)
    record_extra = _with_caller(extra, _get_caller_info())

    match type_msg:
        case TypeMsg.DEBUG:
            logger.debug(message, extra=record_extra)
        case TypeMsg.WARNING:
            logger.warning(message, extra=record_extra)
        case TypeMsg.ERROR:
            logger.error(message, extra=record_extra)
        case TypeMsg.CRITICAL:
            logger.critical(message, extra=record_extra)
        case _:
            logger.info(message, extra=record_extra)


async def log_debug(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    await log_info(message, type_msg=TypeMsg.DEBUG, logger_name=logger_name, extra=extra)


async def log_warning(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
) -> None:
    await log_info(message, type_msg=TypeMsg.WARNING, logger_name=logger_name, extra=extra)


async def log_error(
    message: str,
    logger_name: str = DEFAULT_LOGGER_NAME,
    extra: dict[str, Any] | None = None,
    exc_info: bool = False,
) -> None:
    """Пишет ошибку; с exc_info=True добавляет трейсбек текущего исключения."""
    logger = get_logger(logger_name)
    logger.error(message, extra=_with_caller(extra, _get_caller_info()), exc_info=exc_info)
