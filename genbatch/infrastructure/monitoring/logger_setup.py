"""Centralized logging configuration for the genbatch application.

Sets up standard Python logging with appropriate levels, formatters,
and handlers (console, optional file, and an in-memory buffer of recent
lines served by the status endpoint).
"""

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional

DEFAULT_LOG_LEVEL = logging.INFO
DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_LOG_FILE = None
DEFAULT_BUFFER_SIZE = 200


class RunLogBuffer(logging.Handler):
    """Keeps the most recent formatted log records in memory."""

    def __init__(self, capacity: int = DEFAULT_BUFFER_SIZE, level: int = logging.INFO):
        super().__init__(level)
        self._records: Deque[Dict[str, str]] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        self._records.append({
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "message": message,
        })

    def recent(self, count: int = 10) -> List[Dict[str, str]]:
        return list(self._records)[-count:]

    def clear(self) -> None:
        self._records.clear()


def setup_logging(
    log_level: int = DEFAULT_LOG_LEVEL,
    log_format: str = DEFAULT_LOG_FORMAT,
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    log_buffer: Optional[RunLogBuffer] = None,
) -> None:
    """Configures the root logger for the application.

    Args:
        log_level: The minimum logging level (e.g., logging.DEBUG, logging.INFO).
        log_format: The format string for log messages.
        log_file: Optional path to a file for logging output.
        log_buffer: Optional in-memory handler to attach as well.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            logging.info(f"Logging to file: {log_file}")
        except OSError as e:
            logging.error(f"Failed to set up file logging to {log_file}: {e}", exc_info=True)

    if log_buffer is not None:
        root_logger.addHandler(log_buffer)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    logging.info(f"Logging configured. Level={logging.getLevelName(log_level)}")
