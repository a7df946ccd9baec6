from __future__ import annotations

import json
import os
import signal
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from .config import LoggingConfig
from .schemas import LogLevel, LogRecord
from .utils.ui import print_record


_DEFERRED_SIGNALS = {signal.SIGTERM, signal.SIGINT}


def printable(value: object) -> str:
    """str(value) with lone surrogates (undecodable paths, env values) escaped."""
    return str(value).encode("utf-8", "backslashreplace").decode("utf-8")


def utc_timestamp() -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2024-01-01T10:00:00.123Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def caller_info(stacklevel: int = 1) -> Tuple[str, int]:
    """
    Source file name and line of the frame `stacklevel` levels above
    the function calling caller_info().

    Returns ("unknown", 0) when the stack is not that deep.
    """
    try:
        frame = sys._getframe(stacklevel + 1)
    except ValueError:
        return "unknown", 0
    return os.path.basename(frame.f_code.co_filename), frame.f_lineno


class StructuredLogger:
    """
    Structured logger with two channels (JSON Lines).

    - console: one coloured human-readable line per record (stdout)
    - json: one JSON object per line, append-only, at cfg.log_path

    Logging discipline:
    - records below cfg.log_level are dropped from every channel
    - I/O failures never propagate: the JSON channel is switched off
      for the rest of the process and one warning goes to stderr
    - filename/script_line name the caller, not this module
    """

    def __init__(self, cfg: Optional[LoggingConfig] = None):
        self.cfg = cfg or LoggingConfig()
        self.json_enabled = self.cfg.json_logging
        self.console_enabled = self.cfg.console_logging
        self._setup_result: Optional[bool] = None
        self._session_name: Optional[str] = None

    @property
    def log_path(self) -> Path:
        return self.cfg.log_path

    @property
    def min_level(self) -> LogLevel:
        return self.cfg.log_level

    # ---------- session ----------

    def setup(self, component_name: str) -> bool:
        """
        Open a logging session: create the log directory and append the
        session_start marker. Returns False (and disables the JSON
        channel) when either step fails; callers keep running.
        """
        if self._setup_result is not None:
            return self._setup_result

        self._session_name = component_name
        self._setup_result = self._open_session(component_name)
        return self._setup_result

    def _open_session(self, component_name: str) -> bool:
        if not self.json_enabled:
            return True

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            self._disable_json(
                f"Failed to create log directory: {printable(self.log_path.parent)}",
                "JSON logging will be disabled",
            )
            return False

        record = self._record(
            LogLevel.INFO,
            "session_start",
            f"Logging session started for {component_name}",
            filename=component_name,
        )
        try:
            self._append(record)
        except (OSError, ValueError):
            self._disable_json(
                f"Failed to write to log file: {printable(self.log_path)}",
                "JSON logging will be disabled",
            )
            return False
        return True

    def cleanup(self, component_name: Optional[str] = None) -> None:
        """
        Append the session_end marker. No-op when no session was opened,
        the JSON channel is off, or cleanup already ran.
        """
        if not self._setup_result or not self.json_enabled or self._session_name is None:
            return

        name = component_name or self._session_name
        self._session_name = None
        self._write_json(
            self._record(
                LogLevel.INFO,
                "session_end",
                f"Logging session ended for {name}",
                filename=name,
            )
        )

    # ---------- records ----------

    def is_enabled_for(self, level: object) -> bool:
        return LogLevel.parse(level) >= self.min_level

    def log(
        self,
        level: object,
        operation: str,
        message: str,
        line_number: int = 0,
        *,
        stacklevel: int = 1,
    ) -> Optional[LogRecord]:
        """
        Emit one record. `level` may be a LogLevel or a level name;
        unknown names are filtered as INFO.

        stacklevel works like logging.Logger.log: 1 attributes the record
        to the caller of log(), 2 to the caller's caller, and so on.
        """
        lvl = LogLevel.parse(level)
        if lvl < self.min_level:
            return None

        filename, script_line = caller_info(stacklevel)
        record = self._record(lvl, operation, message, line_number, filename, script_line)

        if self.console_enabled:
            print_record(record)
        if self.json_enabled:
            self._write_json(record)
        return record

    def debug(self, operation: str, message: str, line_number: int = 0) -> Optional[LogRecord]:
        return self.log(LogLevel.DEBUG, operation, message, line_number, stacklevel=2)

    def info(self, operation: str, message: str, line_number: int = 0) -> Optional[LogRecord]:
        return self.log(LogLevel.INFO, operation, message, line_number, stacklevel=2)

    def warn(self, operation: str, message: str, line_number: int = 0) -> Optional[LogRecord]:
        return self.log(LogLevel.WARN, operation, message, line_number, stacklevel=2)

    def error(self, operation: str, message: str, line_number: int = 0) -> Optional[LogRecord]:
        return self.log(LogLevel.ERROR, operation, message, line_number, stacklevel=2)

    def fatal(self, operation: str, message: str, line_number: int = 0) -> Optional[LogRecord]:
        return self.log(LogLevel.FATAL, operation, message, line_number, stacklevel=2)

    # ---------- channels ----------

    @staticmethod
    def _record(
        level: LogLevel,
        operation: str,
        message: str,
        line_number: int = 0,
        filename: str = "unknown",
        script_line: int = 0,
    ) -> LogRecord:
        return LogRecord(
            timestamp=utc_timestamp(),
            level=level.name,
            operation=printable(operation),
            filename=printable(filename),
            line_number=int(line_number or 0),
            script_line=script_line,
            message=printable(message),
        )

    def _append(self, record: LogRecord) -> None:
        # SIGTERM/SIGINT handlers log too; hold them until this line is on disk
        previous = signal.pthread_sigmask(signal.SIG_BLOCK, _DEFERRED_SIGNALS)
        try:
            line = json.dumps(record.model_dump(), ensure_ascii=False)
            with self.log_path.open("a", encoding="utf-8", errors="backslashreplace") as f:
                f.write(line + "\n")
        finally:
            signal.pthread_sigmask(signal.SIG_SETMASK, previous)

    def _write_json(self, record: LogRecord) -> None:
        try:
            self._append(record)
        except (OSError, ValueError):
            self._disable_json("Failed to write to log file, disabling JSON logging")

    def _disable_json(self, *warnings: str) -> None:
        self.json_enabled = False
        for w in warnings:
            print(f"[WARNING] {w}", file=sys.stderr)
