"""
Общие утилиты, константы, логгер и диагностика.
"""

from ridepool.common.logger import get_logger, log_info, log_error, log_warning, log_debug, setup_logging
from ridepool.common.constants import TypeMsg, DiagnosticCategory
from ridepool.common.diagnostics import (
    DiagnosticEntry,
    DiagnosticSink,
    NullDiagnostics,
    StructuredDiagnostics,
)
from ridepool.common.ids import IdAllocator, SequentialIdAllocator

__all__ = [
    "get_logger",
    "log_info",
    "log_error",
    "log_warning",
    "log_debug",
    "setup_logging",
    "TypeMsg",
    "DiagnosticCategory",
    "DiagnosticEntry",
    "DiagnosticSink",
    "NullDiagnostics",
    "StructuredDiagnostics",
    "IdAllocator",
    "SequentialIdAllocator",
]
