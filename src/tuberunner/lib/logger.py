"""Structured JSON logger for workers."""

import json
import sys
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any


class LogLevel(IntEnum):
    """Syslog-style severities, lowest first."""

    DEBUG = 100
    INFO = 200
    NOTICE = 300
    WARNING = 400
    ERROR = 500
    CRITICAL = 600
    ALERT = 700
    EMERGENCY = 800

    @classmethod
    def parse(cls, value: "str | int | LogLevel") -> "LogLevel":
        """Parse a level from its name or numeric value."""
        if isinstance(value, str):
            if value.strip().isdigit():
                return cls(int(value))
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown log level: {value}") from None
        return cls(value)


class Logger:
    """Structured JSON logger.

    Entries below ``level`` are dropped. Entries below ``NOTICE`` go to
    stdout, the others to stderr.
    """

    def __init__(
        self,
        context: dict[str, Any] | None = None,
        level: LogLevel = LogLevel.DEBUG,
    ) -> None:
        """Initialize logger with optional context."""
        self.context = context or {}
        self.level = level

    def child(self, context: dict[str, Any]) -> "Logger":
        """Create child logger with additional context."""
        return Logger({**self.context, **context}, level=self.level)

    def log(self, level: LogLevel, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log structured message."""
        if level < self.level:
            return

        entry = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": level.name.lower(),
            "message": message,
            **self.context,
            **(extra or {}),
        }
        stream = sys.stdout if level < LogLevel.NOTICE else sys.stderr
        print(json.dumps(entry, default=str), file=stream, flush=True)

    def debug(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log debug message."""
        self.log(LogLevel.DEBUG, message, extra)

    def info(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log info message."""
        self.log(LogLevel.INFO, message, extra)

    def notice(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log notice message."""
        self.log(LogLevel.NOTICE, message, extra)

    def warning(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log warning message."""
        self.log(LogLevel.WARNING, message, extra)

    def error(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log error message."""
        self.log(LogLevel.ERROR, message, extra)

    def critical(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log critical message."""
        self.log(LogLevel.CRITICAL, message, extra)

    def alert(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log alert message."""
        self.log(LogLevel.ALERT, message, extra)

    def emergency(self, message: str, extra: dict[str, Any] | None = None) -> None:
        """Log emergency message."""
        self.log(LogLevel.EMERGENCY, message, extra)


logger = Logger()
