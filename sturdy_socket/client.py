"""
SturdySocket: a message socket that survives transport disconnections.

Presents the surface of a plain full-duplex socket (send, close, open /
message / close / error events) while transparently:

- reconnecting after unexpected closes, with exponential backoff
- aborting connection attempts that exceed ``connect_timeout``
- queueing sends made while disconnected and flushing them in order
  on the next open
- asking ``should_reconnect(close_event)`` before every retry, so the
  caller can veto reconnection (synchronously or via a future)

Two extra events describe outages: ``down`` fires once when a working
connection is lost, ``reopen`` fires once when it comes back.  ``close``
fires only once, when the socket gives up for good.

Every state transition happens under one re-entrant lock, so events
arriving from timer threads, the transport's reader thread and future
callbacks are processed one at a time.
"""
import asyncio
import enum
import functools
import logging
import threading
from typing import Any, Callable, Optional, Sequence, Union

from . import events
from .config import SocketConfig
from .events import CLOSE_ABNORMAL, CLOSE_NORMAL, CloseEvent, EventEmitter
from .transport import TransportError, normalize_protocols, resolve_transport_factory
from .utils.gate import ReconnectGate
from .utils.log import SocketLogger
from .utils.reconnect import ReconnectStrategy
from .utils.timers import ThreadingScheduler
from .utils.tx_queue import TxQueue
from .utils.watchdog import ConnectWatchdog

log = logging.getLogger("sturdy_socket")


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    DOWN = "down"
    CLOSED = "closed"


class SocketClosedError(RuntimeError):
    """Operation attempted on a permanently closed socket."""


def _handler_slot(event_type: str) -> property:
    def getter(self) -> Optional[Callable]:
        return self._events.get_slot(event_type)

    def setter(self, handler: Optional[Callable]) -> None:
        self._events.set_slot(event_type, handler)

    return property(getter, setter, doc=f"Single-slot handler for {event_type!r} events.")


class SturdySocket:
    """Reconnecting wrapper around a full-duplex message transport.

    Args:
        url: Endpoint passed to the transport factory.
        protocols: Optional sub-protocol or list of sub-protocols.
        config: SocketConfig; defaults to ``SocketConfig()``.
        **options: SocketConfig fields overriding *config*, and/or
            ``on_<event>`` handlers to install before the first
            connection attempt starts.

    Raises:
        ConfigError: Invalid options, or no transport factory available.

    Example:
        >>> sock = SturdySocket("wss://example.org/feed", max_reconnect_attempts=10,
        ...                     on_message=print)
        >>> sock.send("subscribe")
    """

    # ready_state values, as on a standard WebSocket
    CONNECTING = 0
    OPEN = 1
    CLOSED = 3

    on_open = _handler_slot(events.OPEN)
    on_message = _handler_slot(events.MESSAGE)
    on_close = _handler_slot(events.CLOSE)
    on_error = _handler_slot(events.ERROR)
    on_down = _handler_slot(events.DOWN)
    on_reopen = _handler_slot(events.REOPEN)

    def __init__(self, url: str, protocols: Union[None, str, Sequence[str]] = None,
                 config: Optional[SocketConfig] = None, **options: Any):
        handlers = {
            name[3:]: options.pop(name)
            for name in list(options)
            if name.startswith("on_") and name[3:] in events.EVENT_TYPES
        }
        config = config or SocketConfig()
        if options:
            config = config.with_options(**options)
        config.validate()

        self.config = config
        self.url = url
        self.protocols = normalize_protocols(protocols)
        self._factory = resolve_transport_factory(config.transport_factory)
        self._scheduler = config.scheduler or ThreadingScheduler()
        self._strategy = ReconnectStrategy.from_config(config)
        self._queue = TxQueue()
        self._watchdog = ConnectWatchdog(self._scheduler)
        loop = self._scheduler if isinstance(self._scheduler, asyncio.AbstractEventLoop) else None
        self._gate = ReconnectGate(config.should_reconnect, loop=loop)
        self._events = EventEmitter()
        self._lock = threading.RLock()
        self._log = SocketLogger(log, url)
        self._log_level = logging.INFO if config.debug else logging.DEBUG

        self._state = ConnectionState.CONNECTING
        self._transport = None
        self._generation = 0
        self._pending_open = False
        self._retry_timer = None
        self._has_been_opened = False
        self._in_episode = False
        self._last_close: Optional[CloseEvent] = None

        for event_type, handler in handlers.items():
            self._events.set_slot(event_type, handler)

        with self._lock:
            self._connect()

    # ── Public API ───────────────────────────────────────────
    def send(self, payload: Any) -> None:
        """Send now if connected, otherwise queue until the next open.

        Raises:
            SocketClosedError: The socket has been permanently closed.
        """
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                raise SocketClosedError("Cannot send after the socket has been permanently closed")
            if (self._state is ConnectionState.OPEN and self._transport is not None
                    and not self._queue.pending):
                try:
                    self._transport.send(payload)
                    return
                except TransportError as e:
                    self._log.warning("Send failed, queueing for next connection: %s", e)
            pending = self._queue.enqueue(payload)
            self._debug("Queued message (%d pending)", pending)

    def reconnect(self) -> None:
        """Drop the current connection and start a fresh one immediately.

        Resets the attempt counter and skips the backoff delay.

        Raises:
            SocketClosedError: The socket has been permanently closed.
        """
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                raise SocketClosedError("Cannot reconnect: socket is already closed")
            self._log.info("Manual reconnect requested")
            self._cancel_timers()
            self._gate.invalidate()
            self._strategy.reset()
            stale = self._detach()
            self._state = ConnectionState.DOWN
            self._restart()
        # The old transport may block for close_timeout; its callbacks are already stale
        self._close_transport(stale, CLOSE_NORMAL, "Manual reconnect")

    def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        """Close permanently.  Fires the terminal ``close`` event once."""
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return
            self._cancel_timers()
            self._gate.invalidate()
            stale = self._detach()
            self._terminate(CloseEvent(code, reason, True))
        self._close_transport(stale, code, reason)

    def add_event_listener(self, event_type: str, listener: Callable) -> None:
        """Subscribe *listener* to *event_type* (open, message, close, error, down, reopen)."""
        self._events.add_listener(event_type, listener)

    def remove_event_listener(self, event_type: str, listener: Callable) -> bool:
        """Unsubscribe *listener*.  Returns False if it was not subscribed."""
        return self._events.remove_listener(event_type, listener)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def ready_state(self) -> int:
        """WebSocket-style ready state; a socket that is down reports CONNECTING."""
        if self._state is ConnectionState.OPEN:
            return self.OPEN
        if self._state is ConnectionState.CLOSED:
            return self.CLOSED
        return self.CONNECTING

    @property
    def protocol(self) -> str:
        """Sub-protocol negotiated by the current transport, or ''."""
        with self._lock:
            if self._state is not ConnectionState.OPEN or self._transport is None:
                return ""
            return getattr(self._transport, "protocol", "") or ""

    @property
    def buffered_amount(self) -> int:
        """Size of messages queued while disconnected."""
        return self._queue.buffered_amount

    @property
    def attempts(self) -> int:
        """Reconnection attempts since the last successful open."""
        return self._strategy.attempts

    @property
    def last_close(self) -> Optional[CloseEvent]:
        """Diagnostics of the most recent transport closure."""
        return self._last_close

    # ── Connect cycle ────────────────────────────────────────
    def _restart(self) -> None:
        generation = self._generation
        if self._has_been_opened and not self._in_episode:
            self._in_episode = True
            self._events.emit(events.DOWN, None)
            if generation != self._generation or self._state is not ConnectionState.DOWN:
                return
        self._connect()

    def _connect(self) -> None:
        self._state = ConnectionState.CONNECTING
        self._generation += 1
        generation = self._generation
        self._pending_open = False
        self._debug("Connecting (attempt %d)", self._strategy.attempts)

        if self.config.connect_timeout is not None:
            self._watchdog.arm(self.config.connect_timeout,
                               functools.partial(self._connect_timed_out, generation))
        try:
            transport = self._factory(
                self.url,
                self.protocols,
                on_open=functools.partial(self._transport_opened, generation),
                on_message=functools.partial(self._transport_message, generation),
                on_close=functools.partial(self._transport_closed, generation),
                on_error=functools.partial(self._transport_error, generation),
            )
        except Exception as e:
            self._log.error("Transport factory failed: %s", e)
            self._events.emit(events.ERROR, e)
            if generation == self._generation:
                self._handle_close(CloseEvent(CLOSE_ABNORMAL, str(e), False))
            return

        if generation != self._generation:
            # Superseded while the factory ran (closed synchronously, or a listener acted)
            return
        self._transport = transport
        if self._pending_open:
            self._opened()

    def _transport_opened(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            if self._transport is None:
                # Opened before the factory returned; finish in _connect
                self._pending_open = True
                return
            self._opened()

    def _opened(self) -> None:
        self._pending_open = False
        self._watchdog.disarm()
        self._state = ConnectionState.OPEN
        self._strategy.record_success()
        reopened = self._in_episode
        first_open = not self._has_been_opened
        self._has_been_opened = True
        self._in_episode = False
        self._debug("Connection open")

        self._flush_queue()
        if reopened:
            self._log.info("Connection re-established")
            self._events.emit(events.REOPEN)
        elif first_open:
            self._events.emit(events.OPEN)

    def _flush_queue(self) -> None:
        payloads = self._queue.drain()
        for index, payload in enumerate(payloads):
            try:
                self._transport.send(payload)
            except TransportError as e:
                self._log.warning("Flush interrupted after %d of %d message(s): %s",
                                  index, len(payloads), e)
                self._queue.restore(payloads[index:])
                return
        if payloads:
            self._debug("Flushed %d queued message(s)", len(payloads))

    def _transport_message(self, generation: int, payload: Any) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._events.emit(events.MESSAGE, payload)

    def _transport_error(self, generation: int, error: Any) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._debug("Transport error: %s", error)
            self._events.emit(events.ERROR, error)

    def _transport_closed(self, generation: int, code: int, reason: str, was_clean: bool) -> None:
        with self._lock:
            if generation != self._generation or self._state is ConnectionState.CLOSED:
                return
            self._handle_close(CloseEvent(code, reason or "", bool(was_clean)))

    def _connect_timed_out(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not ConnectionState.CONNECTING:
                return
            self._log.warning("Connection not established within %ss; aborting attempt",
                              self.config.connect_timeout)
            stale = self._detach()
            self._handle_close(CloseEvent(CLOSE_ABNORMAL, "Connection timed out", False))
        self._close_transport(stale)

    def _handle_close(self, event: CloseEvent) -> None:
        self._detach()
        self._watchdog.disarm()
        self._last_close = event
        self._state = ConnectionState.DOWN
        generation = self._generation
        self._debug("Connection closed: %s", event)

        if self._has_been_opened and not self._in_episode:
            self._in_episode = True
            self._log.info("Connection down: %s", event)
            self._events.emit(events.DOWN, event)
            if generation != self._generation or self._state is not ConnectionState.DOWN:
                return

        self._gate.decide(event, functools.partial(self._reconnect_decided, event))

    def _reconnect_decided(self, event: CloseEvent, approved: bool, version: int) -> None:
        with self._lock:
            if self._state is not ConnectionState.DOWN or not self._gate.is_current(version):
                return
            if not approved:
                self._log.info("Reconnect vetoed after close %s", event)
                self._terminate(event)
                return
            self._schedule_retry()

    def _schedule_retry(self) -> None:
        if not self._strategy.should_retry():
            self._log.warning("Giving up after %d reconnect attempt(s)",
                              self._strategy.attempts)
            self._terminate(self._last_close)
            return
        delay = self._strategy.next_delay()
        self._debug("Reconnecting in %ss (attempt %d)", delay, self._strategy.attempts)
        self._retry_timer = self._scheduler.call_later(delay, self._retry, self._generation)

    def _retry(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state is not ConnectionState.DOWN:
                return
            self._retry_timer = None
            self._connect()

    def _terminate(self, event: Optional[CloseEvent]) -> None:
        self._cancel_timers()
        self._gate.invalidate()
        self._detach()
        self._state = ConnectionState.CLOSED
        self._queue.clear()
        event = event or CloseEvent()
        self._log.info("Socket closed: %s", event)
        self._events.emit(events.CLOSE, event)

    # ── Helpers ──────────────────────────────────────────────
    def _detach(self):
        """Forget the current transport; its late callbacks become no-ops."""
        self._generation += 1
        self._pending_open = False
        transport, self._transport = self._transport, None
        return transport

    def _close_transport(self, transport, *args) -> None:
        if transport is None:
            return
        try:
            transport.close(*args)
        except TransportError as e:
            self._log.warning("Error closing transport: %s", e)

    def _cancel_timers(self) -> None:
        timer, self._retry_timer = self._retry_timer, None
        if timer is not None:
            timer.cancel()
        self._watchdog.disarm()

    def _debug(self, msg: str, *args) -> None:
        self._log.log(self._log_level, msg, *args)

    def __repr__(self):
        return (
            f"<SturdySocket url={self.url!r} state={self._state.value} "
            f"attempts={self._strategy.attempts} queued={self._queue.pending}>"
        )
