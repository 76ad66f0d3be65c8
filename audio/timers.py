"""
Timer hosts for the playback scheduler.

Both timers expose call_later(delay, callback, *args) and return a handle
with cancel(). TimerLoop runs callbacks on one background thread in due
order; ManualTimer runs them only when advance() is called.
"""
import heapq
import itertools
import threading
import time
from typing import Callable, List, Optional


class TimerHandle:
    """Cancellable reference to a pending callback."""

    def __init__(self, due: float, callback: Callable, args: tuple):
        self.due = due
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def run(self):
        if not self.cancelled:
            self.callback(*self.args)


class TimerLoop:
    """
    Background thread that runs delayed callbacks.

    All callbacks run on the same thread, one at a time, so state they
    touch needs no extra locking between callbacks.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._queue: List[tuple] = []
        self._seq = itertools.count()
        self._condition = threading.Condition()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self):
        """Start the timer thread (no-op if already running)."""
        with self._condition:
            if self._running:
                return
            self._running = True

        self._thread = threading.Thread(target=self._run, name="zsynth-timer", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0):
        """Stop the thread; pending callbacks are discarded."""
        with self._condition:
            self._running = False
            self._queue.clear()
            self._condition.notify()

        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None

    def call_later(self, delay: float, callback: Callable, *args) -> TimerHandle:
        """
        Run callback(*args) after `delay` seconds.

        Returns:
            Handle whose cancel() prevents the call
        """
        handle = TimerHandle(self._clock() + max(0.0, delay), callback, args)
        with self._condition:
            heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
            self._condition.notify()
        return handle

    def _run(self):
        while True:
            with self._condition:
                while self._running and (not self._queue or
                                         self._queue[0][0] > self._clock()):
                    timeout = self._queue[0][0] - self._clock() if self._queue else None
                    self._condition.wait(timeout)
                if not self._running:
                    return
                _, _, handle = heapq.heappop(self._queue)

            try:
                handle.run()
            except Exception as e:
                print(f"[TIMER] Callback {getattr(handle.callback, '__name__', handle.callback)} failed: {e}")


class ManualTimer:
    """
    Deterministic timer driven by advance().

    Used for tests and offline rendering, where the caller moves time
    forward together with the audio clock.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[tuple] = []
        self._seq = itertools.count()

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def call_later(self, delay: float, callback: Callable, *args) -> TimerHandle:
        handle = TimerHandle(self.now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, seconds: float):
        """Move time forward, running every callback that falls due."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            handle.run()
        self.now = target
