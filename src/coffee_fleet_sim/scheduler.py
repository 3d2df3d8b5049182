"""Timer scheduling for the simulator.

Two implementations share one interface:

- ``ThreadScheduler`` runs callbacks on background daemon threads in real time.
- ``ManualScheduler`` keeps a virtual clock that only moves when ``advance()``
  is called, running due callbacks on the caller's thread. Tests and the
  offline ``simulate`` command use it to step the simulation deterministically.

``TimerHandle.cancel()`` is synchronous for both: once it returns no further
invocation starts, and an invocation already running on another thread has
finished.
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancellable reference to a scheduled callback."""

    def __init__(self, fn: Callable[[], None], interval: Optional[float] = None):
        self._fn = fn
        self.interval = interval
        # Held for the whole invocation so cancel() waits for it to finish.
        # Reentrant so a callback may cancel its own timer.
        self._lock = threading.RLock()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def repeating(self) -> bool:
        return self.interval is not None

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True

    def _run(self) -> bool:
        """Invoke the callback unless cancelled. Returns False once cancelled."""
        with self._lock:
            if self._cancelled:
                return False
            try:
                self._fn()
            except Exception as e:
                logger.exception(f"Error in scheduled callback: {e}")
            return not self._cancelled


class Scheduler:
    """Interface for timer scheduling."""

    def now(self) -> float:
        """Current time in seconds since epoch."""
        raise NotImplementedError

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        """Run ``fn`` once after ``delay`` seconds."""
        raise NotImplementedError

    def call_every(self, interval: float, fn: Callable[[], None]) -> TimerHandle:
        """Run ``fn`` every ``interval`` seconds, first run after one interval."""
        raise NotImplementedError


class _ThreadTimerHandle(TimerHandle):
    def __init__(self, fn, interval=None):
        super().__init__(fn, interval)
        self._wakeup = threading.Event()

    def cancel(self) -> None:
        self._wakeup.set()
        super().cancel()


class ThreadScheduler(Scheduler):
    """Real-time scheduler backed by one daemon thread per timer."""

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        handle = _ThreadTimerHandle(fn)
        self._spawn(handle, delay)
        return handle

    def call_every(self, interval: float, fn: Callable[[], None]) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        handle = _ThreadTimerHandle(fn, interval)
        self._spawn(handle, interval)
        return handle

    def _spawn(self, handle: _ThreadTimerHandle, first_delay: float) -> None:
        thread = threading.Thread(
            target=self._timer_loop, args=(handle, first_delay), daemon=True
        )
        thread.start()

    @staticmethod
    def _timer_loop(handle: _ThreadTimerHandle, delay: float) -> None:
        # Deadline-based so slow callbacks do not accumulate drift
        deadline = time.monotonic() + delay
        while True:
            remaining = deadline - time.monotonic()
            if remaining > 0 and handle._wakeup.wait(remaining):
                return
            if not handle._run() or not handle.repeating:
                return
            deadline = max(deadline + handle.interval, time.monotonic())


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler advanced explicitly by the caller."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of live timers."""
        with self._lock:
            return sum(1 for _, _, handle in self._queue if not handle.cancelled)

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(fn)
        self._push(self._now + max(0.0, delay), handle)
        return handle

    def call_every(self, interval: float, fn: Callable[[], None]) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        handle = TimerHandle(fn, interval)
        self._push(self._now + interval, handle)
        return handle

    def _push(self, when: float, handle: TimerHandle) -> None:
        with self._lock:
            heapq.heappush(self._queue, (when, next(self._counter), handle))

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running every timer that falls due.

        Returns the number of callbacks invoked.
        """
        if seconds < 0:
            raise ValueError(f"cannot move the clock backwards ({seconds})")
        target = self._now + seconds
        invoked = 0
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    break
                when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, when)
            keep = handle._run()
            invoked += 1
            if keep and handle.repeating:
                self._push(when + handle.interval, handle)
        self._now = target
        return invoked
