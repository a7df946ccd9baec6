from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3
    FATAL = 4

    @classmethod
    def parse(cls, value: object) -> "LogLevel":
        """
        Resolve a level name (case-insensitive) or a LogLevel.

        Unknown names resolve to INFO rather than raising: a typo in
        LOG_LEVEL must never keep a container from starting.
        """
        if isinstance(value, cls):
            return value
        name = str(value or "").strip().upper()
        if name == "WARNING":
            name = "WARN"
        return cls.__members__.get(name, cls.INFO)


class LogRecord(BaseModel):
    """
    One emitted diagnostic event (one JSON line in the log file).

    line_number refers to a target file being reported on;
    script_line is where the log call itself was made.
    """
    timestamp: str
    level: str
    operation: str
    filename: str = "unknown"
    line_number: int = 0
    script_line: int = 0
    message: str
