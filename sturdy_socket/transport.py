"""
Transport boundary for SturdySocket.

A transport factory is any callable shaped like::

    transport = factory(url, protocols,
                        on_open=on_open,          # ()
                        on_message=on_message,    # (payload)
                        on_close=on_close,        # (code, reason, was_clean)
                        on_error=on_error)        # (error)

returning an object with ``send(payload)`` and ``close(code, reason)``
that starts connecting on its own and reports through the callbacks.
Failures to send or close are raised as TransportError.

The package installs a default factory built on the ``websockets``
library's synchronous client.  Applications can swap it process-wide
with ``set_default_transport_factory()`` or per socket through
``SocketConfig.transport_factory``.
"""
import itertools
import logging
import threading
from typing import Any, Callable, List, Optional, Sequence, Union

from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.sync.client import connect

from .config import ConfigError
from .events import CLOSE_ABNORMAL, CLOSE_NORMAL
from .utils.log import SocketLogger
from .utils.threads import get_thread_manager

log = logging.getLogger("transport")

TransportFactory = Callable[..., Any]

_reader_ids = itertools.count(1)

# 1006 may not be sent on the wire; a crashed reader closes with this instead
CLOSE_INTERNAL_ERROR = 1011


class TransportError(Exception):
    """The underlying transport failed to send or close."""


def normalize_protocols(protocols: Union[None, str, Sequence[str]]) -> Optional[List[str]]:
    """Accept a single sub-protocol or a sequence of them."""
    if protocols is None:
        return None
    if isinstance(protocols, str):
        return [protocols]
    protocols = list(protocols)
    for protocol in protocols:
        if not isinstance(protocol, str) or not protocol:
            raise ValueError(f"Invalid sub-protocol: {protocol!r}")
    return protocols or None


class WebSocketTransport:
    """One ``websockets`` client connection driven on a managed reader thread.

    The reader thread performs the opening handshake, then receives until
    the connection closes.  It never reconnects; that is the socket's job.

    Args:
        url: ``ws://`` or ``wss://`` endpoint.
        protocols: Optional list of sub-protocols to offer.
        on_open, on_message, on_close, on_error: Transport callbacks.
        open_timeout: Seconds the handshake may take before the reader gives up.
        close_timeout: Seconds to wait for the peer's close frame.
        **connect_options: Passed to ``websockets.sync.client.connect``
            (``additional_headers``, ``ssl``, ``max_size``, ...).
    """

    def __init__(self, url: str, protocols: Optional[Sequence[str]] = None, *,
                 on_open: Callable[[], None],
                 on_message: Callable[[Any], None],
                 on_close: Callable[[int, str, bool], None],
                 on_error: Callable[[Exception], None],
                 open_timeout: Optional[float] = 10,
                 close_timeout: Optional[float] = 1.0,
                 **connect_options: Any):
        self.url = url
        self.protocols = list(protocols) if protocols else None
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close
        self._on_error = on_error
        self._open_timeout = open_timeout
        self._close_timeout = close_timeout
        self._connect_options = connect_options
        self._conn = None
        self._close_reported = False
        self._closing = False
        self._close_args = (CLOSE_NORMAL, "")
        self._lock = threading.Lock()
        self._log = SocketLogger(log, url)

        self._thread = get_thread_manager().start_thread(
            f"ws-reader-{next(_reader_ids)}", self._run,
        )

    def _run(self) -> None:
        try:
            with connect(
                self.url,
                subprotocols=self.protocols,
                open_timeout=self._open_timeout,
                close_timeout=self._close_timeout,
                **self._connect_options,
            ) as conn:
                self._attach(conn)
                self._receive(conn)
        except Exception as e:
            self._log.debug("Connection failed: %s", e)
            self._on_error(e)
        finally:
            self._report_close(None, None)

    def _attach(self, conn) -> None:
        with self._lock:
            self._conn = conn
            closing = self._closing
        if closing:
            # close() ran while the handshake was still in progress
            self._shutdown(conn, *self._close_args)
        else:
            self._on_open()

    def _receive(self, conn) -> None:
        try:
            while True:
                message = conn.recv()
                self._on_message(message)
        except ConnectionClosed as e:
            if e.rcvd is not None:
                self._report_close(e.rcvd.code, e.rcvd.reason)
        except Exception as e:
            self._log.error("Reader loop failed: %s", e)
            self._on_error(e)
            self._shutdown(conn, CLOSE_INTERNAL_ERROR, "")

    def _report_close(self, code, reason) -> None:
        with self._lock:
            if self._close_reported:
                return
            self._close_reported = True
        # A status code means the peer's close frame arrived
        was_clean = code is not None
        self._on_close(code if code is not None else CLOSE_ABNORMAL, reason or "", was_clean)

    def _shutdown(self, conn, code: int, reason: str) -> None:
        try:
            conn.close(code, reason)
        except (WebSocketException, OSError) as e:
            self._log.debug("Close during shutdown failed: %s", e)

    # ── transport interface ────────────────────────────────────
    def send(self, payload: Any) -> None:
        """Send a text (``str``) or binary (bytes-like) message."""
        conn = self._conn
        if conn is None:
            raise TransportError("send failed: connection is not open")
        if isinstance(payload, (bytearray, memoryview)):
            payload = bytes(payload)
        try:
            conn.send(payload)
        except (WebSocketException, OSError) as e:
            raise TransportError(f"send failed: {e}") from e

    def close(self, code: int = CLOSE_NORMAL, reason: str = "") -> None:
        with self._lock:
            self._closing = True
            self._close_args = (code, reason)
            conn = self._conn
        if conn is None:
            return
        try:
            conn.close(code, reason)
        except (WebSocketException, OSError) as e:
            raise TransportError(f"close failed: {e}") from e

    @property
    def protocol(self) -> str:
        """Sub-protocol selected by the server, or ''."""
        conn = self._conn
        if conn is None:
            return ""
        return conn.subprotocol or ""


def websockets_factory(url: str, protocols: Optional[Sequence[str]] = None,
                       **callbacks) -> WebSocketTransport:
    """Default transport factory backed by ``websockets``."""
    return WebSocketTransport(url, protocols, **callbacks)


# ── Default factory registry ─────────────────────────────────
_default_factory: Optional[TransportFactory] = websockets_factory


def get_default_transport_factory() -> Optional[TransportFactory]:
    """Return the process-wide default transport factory, if any."""
    return _default_factory


def set_default_transport_factory(factory: Optional[TransportFactory]) -> Optional[TransportFactory]:
    """Install (or with None, remove) the process-wide default factory.

    Returns:
        The previously installed factory.
    """
    global _default_factory
    if factory is not None and not callable(factory):
        raise ConfigError("transport factory must be callable")
    previous, _default_factory = _default_factory, factory
    return previous


def resolve_transport_factory(explicit: Optional[TransportFactory] = None) -> TransportFactory:
    """Pick the explicit factory, else the default; fail if neither exists."""
    if explicit is not None:
        return explicit
    if _default_factory is not None:
        return _default_factory
    raise ConfigError(
        "No transport_factory was given and no default transport factory is "
        "installed; pass transport_factory=... or call set_default_transport_factory()"
    )
