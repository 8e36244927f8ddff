"""
Outbound transmit queue for messages sent while the socket is down.

Payloads wait here in FIFO order until the next transport opens, at
which point the socket drains the whole queue in one step before any
newer send can reach the wire.  There is no size bound; backpressure
belongs to the caller.
"""
import collections
import logging
import threading
from typing import Any, Iterable, List

log = logging.getLogger("tx_queue")


def payload_size(payload: Any) -> int:
    """Length of a payload in bytes or characters, 0 if it has none."""
    try:
        return len(payload)
    except TypeError:
        return 0


class TxQueue:
    """Thread-safe unbounded FIFO of pending payloads."""

    def __init__(self):
        self._items = collections.deque()
        self._lock = threading.Lock()
        self._dropped = 0

    def enqueue(self, payload: Any) -> int:
        """Append a payload.  Returns the number of payloads now pending."""
        with self._lock:
            self._items.append(payload)
            return len(self._items)

    def drain(self) -> List[Any]:
        """Remove and return every pending payload in insertion order.

        Anything enqueued after this call returns stays queued for the
        next drain; nothing is handed out twice.
        """
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items

    def restore(self, payloads: Iterable[Any]) -> None:
        """Put undelivered payloads back at the head, keeping their order."""
        payloads = list(payloads)
        if not payloads:
            return
        with self._lock:
            self._items.extendleft(reversed(payloads))
        log.debug("Restored %d undelivered payload(s) to the TX queue", len(payloads))

    def clear(self) -> int:
        """Discard every pending payload.  Returns how many were dropped."""
        with self._lock:
            count = len(self._items)
            self._items.clear()
            self._dropped += count
        if count:
            log.warning("TX queue cleared: %d payload(s) dropped", count)
        return count

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def buffered_amount(self) -> int:
        """Total size of pending payloads."""
        with self._lock:
            return sum(payload_size(p) for p in self._items)

    def __len__(self) -> int:
        return self.pending
