"""Progress and log event delivery.

Operations report progress through an :class:`EventSink`. Emission is
best-effort: the default :class:`NullSink` drops everything, and a sink that
raises never fails the operation it reports on.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple

from .types import ProgressUpdate

_LOGGER = logging.getLogger("pdfcomposex.events")


class EventSink(Protocol):
    """Receives progress updates and log lines for a named channel."""

    def progress(self, channel: str, update: ProgressUpdate) -> None:
        """Handle a progress update."""

    def log(self, channel: str, message: str) -> None:
        """Handle a free-text log line."""


class NullSink:
    """Sink that discards all events."""

    def progress(self, channel: str, update: ProgressUpdate) -> None:
        return None

    def log(self, channel: str, message: str) -> None:
        return None


class LoggingSink:
    """Sink forwarding events to a :mod:`logging` logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO) -> None:
        self.logger = logger or logging.getLogger("pdfcomposex.progress")
        self.level = level

    def progress(self, channel: str, update: ProgressUpdate) -> None:
        self.logger.log(self.level, "[%s] %d%% %s", channel, update.percent, update.message)

    def log(self, channel: str, message: str) -> None:
        self.logger.log(self.level, "[%s] %s", channel, message)


class RecordingSink:
    """Sink that keeps every event in memory."""

    def __init__(self) -> None:
        self.updates: List[Tuple[str, ProgressUpdate]] = []
        self.messages: List[Tuple[str, str]] = []

    def progress(self, channel: str, update: ProgressUpdate) -> None:
        self.updates.append((channel, update))

    def log(self, channel: str, message: str) -> None:
        self.messages.append((channel, message))

    def percents(self, channel: str) -> List[int]:
        return [update.percent for name, update in self.updates if name == channel]

    def lines(self, channel: str) -> List[str]:
        return [message for name, message in self.messages if name == channel]


class ProgressReporter:
    """Emits events for one operation on one channel.

    Percent values are clamped to 0-100 and never decrease.
    """

    def __init__(self, sink: Optional[EventSink], channel: str) -> None:
        self.sink: EventSink = sink if sink is not None else NullSink()
        self.channel = channel
        self._percent = 0

    @property
    def percent(self) -> int:
        return self._percent

    def progress(self, percent: int, message: str) -> None:
        self._percent = max(self._percent, min(100, max(0, int(percent))))
        update = ProgressUpdate(percent=self._percent, message=message)
        try:
            self.sink.progress(f"{self.channel}:progress", update)
        except Exception as exc:  # pragma: no cover - sink failures are advisory
            _LOGGER.debug("Dropped progress event for %s: %s", self.channel, exc)

    def log(self, message: str) -> None:
        try:
            self.sink.log(f"{self.channel}:log", message)
        except Exception as exc:  # pragma: no cover - sink failures are advisory
            _LOGGER.debug("Dropped log event for %s: %s", self.channel, exc)


__all__ = ["EventSink", "NullSink", "LoggingSink", "RecordingSink", "ProgressReporter"]
