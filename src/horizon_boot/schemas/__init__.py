from __future__ import annotations

from .log_record import LogLevel, LogRecord
from .health import CheckResult, HealthReport


__all__ = [
    "LogLevel",
    "LogRecord",
    "CheckResult",
    "HealthReport",
]
