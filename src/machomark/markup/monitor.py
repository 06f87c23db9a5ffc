"""Cancellation token and failure log used during markup."""

import logging
import threading

logger = logging.getLogger(__name__)


class TaskMonitor:
    """Poll-based cancellation flag, safe to set from another thread."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    def clear(self) -> None:
        self._cancelled.clear()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()


class MessageLog:
    """Collects human-readable failure messages."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def append_msg(self, message: str) -> None:
        logger.error(message)
        self.messages.append(message)

    def has_messages(self) -> bool:
        return bool(self.messages)

    def __iter__(self):
        return iter(self.messages)

    def __len__(self) -> int:
        return len(self.messages)
