"""Queue log records now, emit them later.

Profiles are applied before the rest of the application has configured its
logging. Messages produced while applying them are therefore collected here
and handed to the real logger in one batch once the apply sequence is done.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional


@dataclass
class QueuedMessage:
    """A log message waiting to be emitted."""

    level: int
    message: str
    exc_info: Optional[BaseException] = None


class DeferredLogger:
    """Collects log messages and flushes them into a logger on demand."""

    def __init__(self) -> None:
        self._messages: list[QueuedMessage] = []
        self._lock = threading.Lock()

    def debug(self, message: str) -> None:
        self._queue(logging.DEBUG, message)

    def info(self, message: str) -> None:
        self._queue(logging.INFO, message)

    def warning(self, message: str) -> None:
        self._queue(logging.WARNING, message)

    def error(self, message: str, exc_info: Optional[BaseException] = None) -> None:
        self._queue(logging.ERROR, message, exc_info)

    def _queue(
        self, level: int, message: str, exc_info: Optional[BaseException] = None
    ) -> None:
        with self._lock:
            self._messages.append(QueuedMessage(level, message, exc_info))

    @property
    def pending(self) -> list[QueuedMessage]:
        """Snapshot of the messages not flushed yet."""
        with self._lock:
            return list(self._messages)

    def flush(self, logger: logging.Logger) -> int:
        """Emit all queued messages into ``logger`` and clear the queue.

        Returns:
            Number of messages emitted
        """
        with self._lock:
            messages, self._messages = self._messages, []

        for queued in messages:
            if queued.exc_info is not None:
                logger.log(queued.level, queued.message, exc_info=queued.exc_info)
            else:
                logger.log(queued.level, queued.message)
        return len(messages)
