"""
Console rendering for log records.
Colours one line per record with rich; rich drops the colour codes when
stdout is not a terminal (docker logs, pipes, test capture).
File: src/horizon_boot/utils/ui.py
"""

from rich.console import Console
from rich.text import Text

from ..schemas import LogRecord

# Global console instance (stdout)
console = Console(highlight=False, soft_wrap=True)

LEVEL_STYLES = {
    "DEBUG": "cyan",
    "INFO": "blue",
    "WARN": "bold yellow",
    "ERROR": "red",
    "FATAL": "magenta",
}


def short_timestamp(timestamp: str) -> str:
    """2024-01-01T10:00:00.123Z -> 2024-01-01T10:00:00Z"""
    head = timestamp.split(".", 1)[0]
    return head if head.endswith("Z") else head + "Z"


def format_console_line(record: LogRecord) -> Text:
    """
    Format: [TIMESTAMP] [LEVEL] [FILENAME] [SCRIPT LINE] [OPERATION] message
    """
    prefix = (
        f"[{short_timestamp(record.timestamp)}] [{record.level}] "
        f"[{record.filename}] [{record.script_line}] [{record.operation}]"
    )
    return Text.assemble((prefix, LEVEL_STYLES.get(record.level, "")), " ", record.message)


def print_record(record: LogRecord) -> None:
    console.print(format_console_line(record))
