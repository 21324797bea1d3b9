from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from crpoll.errors import ClockWentBackwards


class ClockSource(Protocol):
    def now(self) -> int:
        ...


class SystemClock:
    """
    Wall clock in whole seconds.

    Readings never decrease: if the host clock steps backwards the last
    reading is returned until real time catches up.
    """

    def __init__(self, source: Callable[[], float] = time.time) -> None:
        self._source = source
        self._lock = threading.Lock()
        self._last = 0

    def now(self) -> int:
        t = int(self._source())
        with self._lock:
            if t < self._last:
                return self._last
            self._last = t
            return t


class ManualClock:
    """
    Clock driven by hand; used by the scenario runner and tests.
    """

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise ClockWentBackwards(f"clock cannot start before 0 (got {start})")
        self._lock = threading.Lock()
        self._now = int(start)

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, t: int) -> None:
        with self._lock:
            if t < self._now:
                raise ClockWentBackwards(f"cannot move clock from {self._now} back to {t}")
            self._now = int(t)

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ClockWentBackwards(f"cannot advance by a negative amount ({seconds})")
        with self._lock:
            self._now += int(seconds)
            return self._now
