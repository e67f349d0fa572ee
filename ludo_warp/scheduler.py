"""
Cancellable timers used to pace the autonomous player.

``ThreadingScheduler`` runs callbacks on ``threading.Timer`` threads;
``ManualScheduler`` queues them until ``run_pending`` is called, which keeps
tests and headless simulations deterministic and free of recursion.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


@dataclass(slots=True)
class _QueuedCall:
    delay: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(slots=True)
class ManualScheduler:
    _queue: Deque[_QueuedCall] = field(default_factory=deque, init=False, repr=False)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        call = _QueuedCall(delay=delay, callback=callback)
        self._queue.append(call)
        return call

    @property
    def pending(self) -> int:
        return sum(1 for c in self._queue if not c.cancelled)

    def run_next(self) -> bool:
        """Run the oldest live callback. Returns False when nothing is queued."""
        while self._queue:
            call = self._queue.popleft()
            if call.cancelled:
                continue
            call.callback()
            return True
        return False

    def run_pending(self, limit: int = 10_000) -> int:
        ran = 0
        while ran < limit and self.run_next():
            ran += 1
        return ran
