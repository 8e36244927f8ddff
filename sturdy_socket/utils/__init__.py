"""
Building blocks for sturdy-socket.

Backoff strategy, transmit queue, connect watchdog, reconnect gate,
timer scheduling, thread management and logging setup.
"""

from .gate import ReconnectGate
from .log import setup_logging
from .reconnect import ReconnectStrategy
from .threads import ThreadManager, get_thread_manager, shutdown_all_threads
from .timers import ThreadingScheduler
from .tx_queue import TxQueue
from .watchdog import ConnectWatchdog

__all__ = [
    "ReconnectGate",
    "ReconnectStrategy",
    "TxQueue",
    "ConnectWatchdog",
    "ThreadingScheduler",
    "ThreadManager",
    "get_thread_manager",
    "shutdown_all_threads",
    "setup_logging",
]
