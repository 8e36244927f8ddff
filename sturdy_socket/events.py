"""
Event types and listener dispatch for SturdySocket.

Each event type keeps an ordered list of listeners.  The ``on_<type>``
handler slot on the socket is simply one more listener in that list,
so ``sock.on_message = fn`` and ``sock.add_event_listener("message", fn)``
can be mixed freely and both fire.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

log = logging.getLogger("events")

OPEN = "open"
MESSAGE = "message"
CLOSE = "close"
ERROR = "error"
DOWN = "down"
REOPEN = "reopen"

EVENT_TYPES = (OPEN, MESSAGE, CLOSE, ERROR, DOWN, REOPEN)

# Close status codes (RFC 6455 section 7.4)
CLOSE_NORMAL = 1000
CLOSE_ABNORMAL = 1006


@dataclass(frozen=True)
class CloseEvent:
    """Diagnostics of one transport closure."""

    code: int = CLOSE_ABNORMAL
    reason: str = ""
    was_clean: bool = False

    def __str__(self):
        clean = "clean" if self.was_clean else "unclean"
        if self.reason:
            return f"{self.code} {self.reason!r} ({clean})"
        return f"{self.code} ({clean})"


Listener = Callable[..., Any]


class EventEmitter:
    """Multi-subscriber publish mechanism, one listener list per event type."""

    def __init__(self, event_types=EVENT_TYPES):
        self._listeners: Dict[str, List[Listener]] = {t: [] for t in event_types}
        self._slots: Dict[str, Optional[Listener]] = {t: None for t in event_types}
        # False when the slot handler is also an explicit listener; clearing the slot keeps it
        self._slot_owned: Dict[str, bool] = {t: False for t in event_types}
        self._lock = threading.Lock()

    def _check_type(self, event_type: str) -> None:
        if event_type not in self._listeners:
            raise ValueError(
                f"Unknown event type {event_type!r}; expected one of "
                f"{', '.join(self._listeners)}"
            )

    def add_listener(self, event_type: str, listener: Listener) -> None:
        """Subscribe *listener*.  Adding the same listener twice is a no-op."""
        self._check_type(event_type)
        with self._lock:
            if self._slots[event_type] is listener:
                self._slot_owned[event_type] = False
            if listener not in self._listeners[event_type]:
                self._listeners[event_type].append(listener)

    def remove_listener(self, event_type: str, listener: Listener) -> bool:
        """Unsubscribe *listener*.  Returns False if it was not subscribed."""
        self._check_type(event_type)
        with self._lock:
            try:
                self._listeners[event_type].remove(listener)
            except ValueError:
                return False
            if self._slots[event_type] is listener:
                self._slots[event_type] = None
                self._slot_owned[event_type] = False
            return True

    def get_slot(self, event_type: str) -> Optional[Listener]:
        self._check_type(event_type)
        with self._lock:
            return self._slots[event_type]

    def set_slot(self, event_type: str, listener: Optional[Listener]) -> None:
        """Replace the single-slot handler for *event_type* (None clears it).

        A handler that is already subscribed as a listener is not added a
        second time, so it still runs once per event.
        """
        self._check_type(event_type)
        with self._lock:
            listeners = self._listeners[event_type]
            previous = self._slots[event_type]
            if previous is not None and self._slot_owned[event_type] and previous in listeners:
                listeners.remove(previous)
            self._slots[event_type] = listener
            self._slot_owned[event_type] = False
            if listener is not None and listener not in listeners:
                listeners.append(listener)
                self._slot_owned[event_type] = True

    def listeners(self, event_type: str) -> List[Listener]:
        self._check_type(event_type)
        with self._lock:
            return list(self._listeners[event_type])

    def emit(self, event_type: str, *args) -> int:
        """Call every listener of *event_type* with *args*.

        A listener that raises is logged and skipped; the others still run.

        Returns:
            Number of listeners called.
        """
        listeners = self.listeners(event_type)
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                log.exception("Unhandled error in %r listener %r", event_type, listener)
        return len(listeners)
