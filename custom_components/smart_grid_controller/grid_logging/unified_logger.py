"""Event-style logger for the Smart Grid Controller.

Every message is an event name plus key/value context:

    GRID_DISABLED | reason=Emergency protection: Voltage 63.00V >= 63.00V

Messages always go to the Home Assistant log. A JSON-lines decision journal can
be switched on at runtime; it is written from a background listener thread so
the event loop never blocks on file I/O.
"""

from __future__ import annotations

import json
import logging
import queue
from datetime import datetime
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from typing import Any

_LOGGER = logging.getLogger(__name__)


class _JournalFormatter(logging.Formatter):
    """Render a journal record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).strftime(
                "%Y-%m-%d %H:%M:%S.%f"
            )[:-3],
            "level": record.levelname.lower(),
            "event": getattr(record, "event", record.getMessage()),
            "data": getattr(record, "data", {}),
        }
        return json.dumps(entry, default=str)


class GridLogger:
    """Structured logger with an optional decision journal.

    Features:
    - Event name + context on every line
    - Always logs to the HA logger
    - Rotating JSON-lines journal (max 5MB, 3 backups) when enabled
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    DEBUG = "debug"

    _LEVELS = {
        CRITICAL: logging.CRITICAL,
        ERROR: logging.ERROR,
        WARNING: logging.WARNING,
        INFO: logging.INFO,
        DEBUG: logging.DEBUG,
    }

    def __init__(
        self,
        name: str = "controller",
        log_dir: Path | None = None,
        journal_enabled: bool = False,
        max_file_size_mb: int = 5,
        backup_count: int = 3,
    ) -> None:
        """Initialize the logger.

        Args:
            name: Child logger name
            log_dir: Directory for the journal (default: component directory/log)
            journal_enabled: Start with the decision journal on
            max_file_size_mb: Max size of the journal file
            backup_count: Number of rotated journal files to keep
        """
        self.name = name
        if log_dir is None:
            log_dir = Path(__file__).parent.parent / "log"
        self.log_dir = log_dir
        self.journal_file = log_dir / "decisions.jsonl"
        self._max_file_size_mb = max_file_size_mb
        self._backup_count = backup_count

        self._ha_logger = logging.getLogger(f"custom_components.smart_grid_controller.{name}")

        self._journal_logger = logging.getLogger(
            f"custom_components.smart_grid_controller.{name}.journal"
        )
        self._journal_logger.setLevel(logging.DEBUG)
        self._journal_logger.propagate = False
        self._journal_queue: queue.Queue = queue.Queue(-1)
        self._journal_logger.addHandler(QueueHandler(self._journal_queue))
        self._listener: QueueListener | None = None

        if journal_enabled:
            self._start_journal()

    def _start_journal(self) -> None:
        """Start the background listener that writes the journal file."""
        if self._listener is not None:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            self.journal_file,
            maxBytes=self._max_file_size_mb * 1024 * 1024,
            backupCount=self._backup_count,
            encoding="utf-8",
            delay=True,
        )
        handler.setFormatter(_JournalFormatter())
        self._listener = QueueListener(self._journal_queue, handler)
        self._listener.start()

    def _stop_journal(self) -> None:
        """Flush and stop the journal listener."""
        if self._listener is None:
            return

        listener, self._listener = self._listener, None
        listener.stop()
        for handler in listener.handlers:
            handler.close()

    def log(self, level: str, event: str, **data: Any) -> None:
        """Log an event at the given level.

        Args:
            level: One of critical, error, warning, info, debug
            event: Event name (e.g. "GRID_ENABLED", "PROTECTION_ACTIVATED")
            **data: Context
        """
        message = event
        if data:
            message = f"{event} | " + " | ".join(f"{k}={v}" for k, v in data.items())

        self._ha_logger.log(self._LEVELS.get(level, logging.DEBUG), message)

        if self._listener is not None:
            self._journal_logger.log(
                self._LEVELS.get(level, logging.DEBUG),
                event,
                extra={"event": event, "data": data},
            )

    def critical(self, event: str, **data: Any) -> None:
        """Log critical event."""
        self.log(self.CRITICAL, event, **data)

    def error(self, event: str, **data: Any) -> None:
        """Log error event."""
        self.log(self.ERROR, event, **data)

    def warning(self, event: str, **data: Any) -> None:
        """Log warning event."""
        self.log(self.WARNING, event, **data)

    def info(self, event: str, **data: Any) -> None:
        """Log info event."""
        self.log(self.INFO, event, **data)

    def debug(self, event: str, **data: Any) -> None:
        """Log debug event."""
        self.log(self.DEBUG, event, **data)

    def set_journal(self, enabled: bool) -> None:
        """Enable or disable the decision journal."""
        if enabled:
            self._start_journal()
        else:
            self._stop_journal()
        self.info("DECISION_JOURNAL_CHANGED", enabled=enabled)

    def shutdown(self) -> None:
        """Stop background work (called on unload)."""
        self._stop_journal()

    @property
    def journal_enabled(self) -> bool:
        """Check if the journal is being written."""
        return self._listener is not None

    def get_journal_size_kb(self) -> float:
        """Get total size of journal files in KB.

        Note: This method does blocking I/O - call from executor if in async context.
        """
        total = 0
        try:
            for path in self.log_dir.glob("decisions.jsonl*"):
                total += path.stat().st_size
        except OSError as ex:
            _LOGGER.debug("Could not size decision journal: %s", ex)
        return round(total / 1024, 2)


# Singleton instance
_logger_instance: GridLogger | None = None


def get_logger() -> GridLogger:
    """Get or create the singleton logger instance."""
    global _logger_instance
    if _logger_instance is None:
        _logger_instance = GridLogger()
    return _logger_instance
