"""
sturdy-socket - a message socket that rides out network failures.

SturdySocket wraps a full-duplex message transport (a `websockets`
connection by default) and presents it as an always-available channel:

- automatic reconnection with deterministic exponential backoff
- connect-timeout watchdog for attempts that hang
- outbound queue for messages sent while disconnected
- caller-controlled reconnect veto, immediate or deferred
- down / reopen events for outage instrumentation

Version: 1.0.0
License: GPL-3.0
"""

__version__ = "1.0.0"
__author__ = "nursedude"
__license__ = "GPL-3.0"

from .client import ConnectionState, SocketClosedError, SturdySocket
from .config import ConfigError, SocketConfig
from .events import CloseEvent
from .transport import (
    TransportError,
    WebSocketTransport,
    get_default_transport_factory,
    set_default_transport_factory,
)

__all__ = [
    "SturdySocket",
    "ConnectionState",
    "SocketClosedError",
    "SocketConfig",
    "ConfigError",
    "CloseEvent",
    "TransportError",
    "WebSocketTransport",
    "get_default_transport_factory",
    "set_default_transport_factory",
]
