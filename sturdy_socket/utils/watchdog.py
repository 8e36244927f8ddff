"""
Connect-timeout watchdog: a single-shot timer guarding one connection attempt.
"""
import itertools
import logging
from typing import Callable, Optional

log = logging.getLogger("watchdog")


class ConnectWatchdog:
    """Fires *on_timeout* if a connection attempt does not open in time.

    Only one timer is ever live; arming again replaces the previous one.
    A timer that was already firing when it got replaced is ignored.

    Args:
        scheduler: Object with ``call_later(delay, callback, *args)``
            returning a cancellable handle.
    """

    def __init__(self, scheduler):
        self._scheduler = scheduler
        self._handle = None
        self._on_timeout: Optional[Callable[[], None]] = None
        self._tokens = itertools.count(1)
        self._token = 0

    def arm(self, timeout: float, on_timeout: Callable[[], None]) -> None:
        """Start guarding a new attempt for *timeout* seconds."""
        self.disarm()
        self._token = next(self._tokens)
        self._on_timeout = on_timeout
        self._handle = self._scheduler.call_later(timeout, self._fire, self._token)

    def disarm(self) -> None:
        """Cancel the pending timer, if any."""
        handle, self._handle = self._handle, None
        self._on_timeout = None
        self._token = 0
        if handle is not None:
            handle.cancel()

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def _fire(self, token: int) -> None:
        if token != self._token:
            return
        callback = self._on_timeout
        self._handle = None
        self._on_timeout = None
        self._token = 0
        log.debug("Connect timeout expired")
        if callback is not None:
            callback()
