"""
Notification and status-change channel.

The engine reports every transition through an EventSink. Sinks are
injected; the default one drops everything, so callers never need to check
whether a reporter exists.
"""

from typing import Any, Deque, Dict, List, Set
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import asyncio
import logging

from flowrunner.engine.node import NodeStatus


class NotificationLevel(str, Enum):
    """Severity of a notification."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    """A human-readable message for the terminal."""
    level: NotificationLevel
    message: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "notification",
            "level": self.level.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class StatusChange:
    """A node's status was mutated."""
    node_id: str
    status: NodeStatus
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "status",
            "node_id": self.node_id,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
        }


class EventSink:
    """Receives engine events. Every method is a no-op by default."""

    def notify(self, notification: Notification) -> None:
        pass

    def status_changed(self, change: StatusChange) -> None:
        pass


class NullSink(EventSink):
    """Sink that discards everything."""


_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class LoggingSink(EventSink):
    """Mirror notifications to the standard logging system."""

    def __init__(self, logger_name: str = "flowrunner.terminal"):
        self._logger = logging.getLogger(logger_name)

    def notify(self, notification: Notification) -> None:
        self._logger.log(_LOG_LEVELS[notification.level], notification.message)

    def status_changed(self, change: StatusChange) -> None:
        self._logger.debug(f"Node {change.node_id} -> {change.status.value}")


class CompositeSink(EventSink):
    """Fan events out to several sinks."""

    def __init__(self, *sinks: EventSink):
        self.sinks: List[EventSink] = list(sinks)

    def notify(self, notification: Notification) -> None:
        for sink in self.sinks:
            sink.notify(notification)

    def status_changed(self, change: StatusChange) -> None:
        for sink in self.sinks:
            sink.status_changed(change)


class EventLog(EventSink):
    """
    Bounded terminal history with live subscribers.

    Notifications are kept (up to `limit`) so late readers can catch up;
    status changes are only pushed to live subscribers. Subscribers get an
    asyncio.Queue each and are fed without blocking.
    """

    def __init__(self, limit: int = 500):
        self._history: Deque[Notification] = deque(maxlen=limit)
        self._subscribers: Set[asyncio.Queue] = set()

    @property
    def history(self) -> List[Notification]:
        return list(self._history)

    def notify(self, notification: Notification) -> None:
        self._history.append(notification)
        self._publish(notification.to_dict())

    def status_changed(self, change: StatusChange) -> None:
        self._publish(change.to_dict())

    def clear(self) -> None:
        """Clear the history and leave a marker, as the terminal does."""
        self._history.clear()
        self.notify(Notification(NotificationLevel.INFO, "Terminal cleared"))

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def _publish(self, message: Dict[str, Any]) -> None:
        for queue in self._subscribers:
            queue.put_nowait(message)

    def __len__(self) -> int:
        return len(self._history)
