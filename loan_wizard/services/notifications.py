from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationLog:
    """User-visible messages raised by wizard operations, oldest first."""

    def __init__(self, limit: int = 50) -> None:
        self._items: list[Notification] = []
        self._limit = limit

    def __call__(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._items.append(notification)
        if len(self._items) > self._limit:
            del self._items[: len(self._items) - self._limit]
        return notification

    def success(self, message: str) -> Notification:
        return self(NotificationLevel.SUCCESS, message)

    def error(self, message: str) -> Notification:
        return self(NotificationLevel.ERROR, message)

    def info(self, message: str) -> Notification:
        return self(NotificationLevel.INFO, message)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def errors(self) -> list[Notification]:
        return [item for item in self._items if item.level is NotificationLevel.ERROR]

    def clear(self) -> None:
        self._items.clear()
