"""Application logging facilities integrating disk persistence and a log view."""

from __future__ import annotations

import logging
import threading
from collections import deque
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Deque, List

from .app_paths import LOG_DIR

LOG_HISTORY_SIZE = 50


class _InMemoryHandler(logging.Handler):
    """Logging handler that keeps an in-memory deque and notifies listeners."""

    def __init__(self, owner: "LoggingManager") -> None:
        super().__init__()
        self._owner = owner

    def emit(self, record: logging.LogRecord) -> None:
        message = self.format(record)
        with self._owner._lock:
            self._owner._history.append(message)
            listeners = list(self._owner._listeners)
        for callback in listeners:
            try:
                callback(message)
            except Exception:
                # Listener failures must never propagate to the logging flow.
                self.handleError(record)


class LoggingManager:
    """Central logging setup for both file persistence and log view integration."""

    def __init__(self, log_dir: Path = LOG_DIR, history_size: int = LOG_HISTORY_SIZE) -> None:
        self._history: Deque[str] = deque(maxlen=history_size)
        self._listeners: List[Callable[[str], None]] = []
        self._lock = threading.Lock()
        self._log_dir = Path(log_dir)
        self.logger = logging.getLogger("tunnlto")
        self.logger.setLevel(logging.DEBUG)
        self._configure_handlers()

    def _configure_handlers(self) -> None:
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        try:
            self._log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                self._log_dir / "application.log", maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
        except OSError as exc:
            # A read-only home must not prevent the store from working.
            logging.getLogger(__name__).warning("File logging unavailable: %s", exc)
        else:
            file_handler.setFormatter(formatter)
            file_handler.setLevel(logging.DEBUG)
            self.logger.addHandler(file_handler)
        memory_handler = _InMemoryHandler(self)
        memory_handler.setFormatter(formatter)
        memory_handler.setLevel(logging.DEBUG)
        self.logger.addHandler(memory_handler)

    def add_listener(self, callback: Callable[[str], None]) -> None:
        """Register a callback that should receive log messages."""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[str], None]) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def set_history_limit(self, limit: int) -> None:
        """Resize the in-memory history, keeping the newest entries."""
        limit = max(1, int(limit))
        with self._lock:
            self._history = deque(self._history, maxlen=limit)

    def history(self) -> Deque[str]:
        """Return the current in-memory log history."""
        return self._history


logging_manager_singleton: LoggingManager | None = None


def get_logging_manager() -> LoggingManager:
    global logging_manager_singleton
    if logging_manager_singleton is None:
        logging_manager_singleton = LoggingManager()
    return logging_manager_singleton
