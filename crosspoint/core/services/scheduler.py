"""Deferred actions with cancellation handles."""

from __future__ import annotations

import logging
from threading import Timer
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ScheduledAction(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, delay_seconds: float, action: Callable[[], None]) -> ScheduledAction: ...


class ThreadTimerScheduler:
    """Runs each action once on a daemon ``threading.Timer`` thread."""

    def __init__(self, name: str = "CrosspointTimer") -> None:
        self._name = name

    def schedule(self, delay_seconds: float, action: Callable[[], None]) -> ScheduledAction:
        if delay_seconds < 0:
            raise ValueError("Delay must not be negative.")

        def run() -> None:
            try:
                action()
            except Exception:
                logger.exception("Scheduled action %s failed", self._name)

        timer = Timer(delay_seconds, run)
        timer.name = self._name
        timer.daemon = True
        timer.start()
        return timer
