"""
Clock and timer port.

The engine owns no threads: hosts advance a clock from their frame or tick
callback and due timers fire from inside that call.
"""

import heapq
import itertools
import time
from typing import Callable, List, Optional, Set, Tuple


class Clock:
    """Monotonic time plus cancellable one-shot timers"""

    def now(self) -> float:
        raise NotImplementedError

    def schedule(self, delay: float, callback: Callable[[], None]) -> int:
        raise NotImplementedError

    def cancel(self, handle: Optional[int]) -> None:
        raise NotImplementedError


class ManualClock(Clock):
    """Clock advanced explicitly by the host (or a test).

    Timers due at the same moment fire in scheduling order.
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._queue: List[Tuple[float, int, Callable[[], None]]] = []
        self._cancelled: Set[int] = set()
        self._ids = itertools.count(1)

    def now(self) -> float:
        return self._now

    def schedule(self, delay: float, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        due = self._now + max(0.0, float(delay))
        heapq.heappush(self._queue, (due, handle, callback))
        return handle

    def cancel(self, handle: Optional[int]) -> None:
        if handle is not None and any(entry[1] == handle for entry in self._queue):
            self._cancelled.add(handle)

    @property
    def pending(self) -> int:
        """Number of live (scheduled, not cancelled) timers"""
        return sum(1 for _, handle, _ in self._queue if handle not in self._cancelled)

    def next_due(self) -> Optional[float]:
        """Time of the earliest live timer, or None"""
        self._drop_cancelled_head()
        if not self._queue:
            return None
        return self._queue[0][0]

    def advance(self, seconds: float) -> int:
        """Move time forward, firing every timer that falls due. Returns timers fired."""
        return self.advance_to(self._now + max(0.0, float(seconds)))

    def advance_to(self, target: float) -> int:
        fired = 0
        while True:
            self._drop_cancelled_head()
            if not self._queue or self._queue[0][0] > target:
                break
            due, handle, callback = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            fired += 1
            callback()
        self._now = max(self._now, target)
        return fired

    def run_next(self) -> bool:
        """Jump to the earliest live timer and fire it"""
        due = self.next_due()
        if due is None:
            return False
        self.advance_to(due)
        return True

    def _drop_cancelled_head(self) -> None:
        while self._queue and self._queue[0][1] in self._cancelled:
            _, handle, _ = heapq.heappop(self._queue)
            self._cancelled.discard(handle)


class FrameClock(ManualClock):
    """ManualClock that follows time.monotonic(); call update() once per frame"""

    def __init__(self, time_source: Callable[[], float] = time.monotonic):
        self._time_source = time_source
        super().__init__(start=time_source())

    def update(self) -> int:
        return self.advance_to(self._time_source())
