"""
Reconnect decision gate.

Wraps the user's ``should_reconnect(close_event)`` predicate, which may
answer right away with a bool or later through a future.  Every call to
``decide()`` is stamped with a version number; ``invalidate()`` moves
the version on, so an answer that arrives after a manual reconnect or a
close is recognised as stale and dropped.

Accepted predicate results:
    bool (or anything truthy/falsy)    decided synchronously
    concurrent.futures.Future          decided when the future completes
    asyncio.Future / asyncio.Task      decided on the loop when it completes
    coroutine                          run on the gate's loop (thread-safe), else
                                       wrapped in a task on the running loop
"""
import asyncio
import functools
import inspect
import itertools
import logging
import threading
from typing import Any, Callable, Optional

log = logging.getLogger("gate")

DecisionCallback = Callable[[bool, int], None]


def always_reconnect(close_event: Any) -> bool:
    """Default predicate: never veto."""
    return True


class ReconnectGate:
    """Normalises a synchronous-or-deferred reconnect veto."""

    def __init__(self, predicate: Optional[Callable[[Any], Any]] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self._predicate = predicate or always_reconnect
        self._loop = loop
        self._versions = itertools.count(1)
        self._version = 0
        self._lock = threading.Lock()
        self._pending: Optional[int] = None

    def decide(self, close_event: Any, on_decision: DecisionCallback) -> Optional[bool]:
        """Ask the predicate whether to reconnect after *close_event*.

        *on_decision(approved, version)* is called exactly once unless
        the decision goes stale first.  Returns the answer when it was
        immediate, or None while a deferred answer is outstanding.
        """
        with self._lock:
            version = next(self._versions)
            self._version = version

        try:
            result = self._predicate(close_event)
        except Exception:
            log.exception("should_reconnect raised; treating as a veto")
            result = False

        if inspect.iscoroutine(result):
            result = self._wrap_coroutine(result)

        if hasattr(result, "add_done_callback"):
            with self._lock:
                self._pending = version
            result.add_done_callback(
                functools.partial(self._resolved, version, on_decision))
            return None

        approved = bool(result)
        on_decision(approved, version)
        return approved

    def _wrap_coroutine(self, coro):
        if self._loop is not None:
            # decide() may run on a reader or timer thread rather than the loop's own
            if self._loop.is_closed():
                coro.close()
                log.error("should_reconnect returned a coroutine but its event loop "
                          "is closed; treating as a veto")
                return False
            return asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            log.error("should_reconnect returned a coroutine but no event loop "
                      "is running in this thread; treating as a veto")
            return False
        return loop.create_task(coro)

    def _resolved(self, version: int, on_decision: DecisionCallback, future) -> None:
        with self._lock:
            if self._pending == version:
                self._pending = None
        if not self.is_current(version):
            log.debug("Discarding stale reconnect decision (version %d)", version)
            return

        if future.cancelled():
            log.warning("Reconnect decision was cancelled; treating as a veto")
            approved = False
        else:
            error = future.exception()
            if error is not None:
                log.error("Reconnect decision failed (%s: %s); treating as a veto",
                          type(error).__name__, error)
                approved = False
            else:
                approved = bool(future.result())
        on_decision(approved, version)

    def is_current(self, version: int) -> bool:
        """True if *version* belongs to the most recent decision."""
        with self._lock:
            return version == self._version

    def invalidate(self) -> None:
        """Make every outstanding decision stale."""
        with self._lock:
            self._version = next(self._versions)
            self._pending = None

    @property
    def pending(self) -> bool:
        """True while a deferred decision is outstanding and still current."""
        with self._lock:
            return self._pending is not None and self._pending == self._version
