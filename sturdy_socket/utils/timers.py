"""
Timer scheduling for reconnect delays and connect timeouts.

A scheduler is any object offering::

    handle = scheduler.call_later(delay_seconds, callback, *args)
    handle.cancel()

``ThreadingScheduler`` below is the default and runs each callback on a
``threading.Timer``.  An ``asyncio`` event loop already has this exact
shape, so ``SturdySocket(url, scheduler=loop)`` keeps every timer on the
loop thread instead.  Tests pass a fake-clock scheduler.

Live timers are tracked so that shutdown can cancel whatever is still
pending instead of leaving stray threads behind.
"""
import logging
import threading
from typing import Callable, List, Set

log = logging.getLogger("timers")


class TimerHandle:
    """Cancellable handle for one scheduled callback."""

    def __init__(self, scheduler: 'ThreadingScheduler', delay: float,
                 callback: Callable, args: tuple):
        self._scheduler = scheduler
        self._callback = callback
        self._args = args
        self._cancelled = False
        self.delay = delay
        self._timer = threading.Timer(delay, self._run)
        self._timer.daemon = True
        self._timer.name = f"timer-{getattr(callback, '__name__', 'callback')}"

    def _run(self) -> None:
        self._scheduler._forget(self)
        if self._cancelled:
            return
        try:
            self._callback(*self._args)
        except Exception:
            log.exception("Timer callback %r failed", self._callback)

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()
        self._scheduler._forget(self)

    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler:
    """Runs delayed callbacks on daemon timer threads."""

    def __init__(self):
        self._live: Set[TimerHandle] = set()
        self._lock = threading.Lock()

    def call_later(self, delay: float, callback: Callable, *args) -> TimerHandle:
        """Schedule *callback(*args)* to run after *delay* seconds."""
        handle = TimerHandle(self, max(0.0, delay), callback, args)
        with self._lock:
            self._live.add(handle)
        handle._timer.start()
        return handle

    def _forget(self, handle: TimerHandle) -> None:
        with self._lock:
            self._live.discard(handle)

    def shutdown(self) -> int:
        """Cancel every pending timer.

        Returns:
            Number of timers that were still pending.
        """
        with self._lock:
            handles: List[TimerHandle] = list(self._live)
            self._live.clear()
        for handle in handles:
            handle.cancel()
        if handles:
            log.debug("Cancelled %d pending timer(s)", len(handles))
        return len(handles)

    @property
    def pending(self) -> int:
        """Number of timers scheduled but not yet fired or cancelled."""
        with self._lock:
            return len(self._live)
