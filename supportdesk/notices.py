"""
User-visible notices (the dashboard's toasts).

Every failure the read-models absorb ends up here as a short message; views
render the most recent ones and listeners can forward them elsewhere.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List

logger = logging.getLogger(__name__)

LEVEL_ERROR = "error"
LEVEL_SUCCESS = "success"
LEVEL_INFO = "info"


@dataclass(frozen=True)
class Notice:
    level: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    def __init__(self, limit: int = 50):
        self._notices = deque(maxlen=limit)
        self._listeners: List[Callable[[Notice], None]] = []

    @property
    def notices(self) -> List[Notice]:
        return list(self._notices)

    @property
    def last(self):
        return self._notices[-1] if self._notices else None

    def messages(self, level: str = None) -> List[str]:
        return [n.message for n in self._notices if level is None or n.level == level]

    def error(self, message: str) -> Notice:
        return self._push(LEVEL_ERROR, message)

    def success(self, message: str) -> Notice:
        return self._push(LEVEL_SUCCESS, message)

    def info(self, message: str) -> Notice:
        return self._push(LEVEL_INFO, message)

    def clear(self) -> None:
        self._notices.clear()

    def subscribe(self, callback: Callable[[Notice], None]) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[Notice], None]) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def _push(self, level: str, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        self._notices.append(notice)

        if level == LEVEL_ERROR:
            logger.warning(f"Notice: {message}")
        else:
            logger.info(f"Notice: {message}")

        for callback in self._listeners[:]:
            try:
                callback(notice)
            except Exception as e:
                logger.error(f"Error notifying notice listener: {e}")
        return notice
