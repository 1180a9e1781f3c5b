"""
Repeating timers for the status poll loop.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Protocol


logger = logging.getLogger(__name__)


class PollHandle(Protocol):
    @property
    def active(self) -> bool:
        ...

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def every(self, interval: float, callback: Callable[[], None]) -> PollHandle:
        ...


class _ThreadHandle:
    def __init__(self, interval: float, callback: Callable[[], None], name: str) -> None:
        self._interval = interval
        self._callback = callback
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()

    def start(self) -> None:
        self._thread.start()

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("poller.tick_failed")

    def cancel(self) -> None:
        self._stopped.set()


class ThreadScheduler:
    """Runs each callback on a daemon thread until its handle is cancelled."""

    def __init__(self, name: str = "whatsapp-poller") -> None:
        self.name = name

    def every(self, interval: float, callback: Callable[[], None]) -> _ThreadHandle:
        if interval <= 0:
            raise ValueError("poll interval must be positive")
        handle = _ThreadHandle(interval, callback, self.name)
        handle.start()
        return handle
