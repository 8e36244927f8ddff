"""
Thread management for transport reader threads.

Every websocket transport runs its receive loop on its own
thread, and a socket that keeps reconnecting keeps starting new ones.
The manager records them, forgets the ones that have finished, and lets
the process join whatever is still running at shutdown.

Usage:
    from sturdy_socket.utils.threads import get_thread_manager, shutdown_all_threads

    get_thread_manager().start_thread("ws-reader", transport._run)

    # On shutdown
    shutdown_all_threads(timeout=5)
"""
import logging
import threading
from typing import Callable, List, Optional

log = logging.getLogger("threads")


class ThreadManager:
    """Starts, tracks and joins transport threads."""

    def __init__(self):
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()

    def start_thread(
        self,
        name: str,
        target: Callable,
        args: tuple = (),
        kwargs: Optional[dict] = None,
        daemon: bool = True,
    ) -> threading.Thread:
        """Start a managed thread.

        Args:
            name:   Thread name for identification.
            target: Function to run in thread.
            args:   Positional arguments for *target*.
            kwargs: Keyword arguments for *target*.
            daemon: Daemon threads do not keep the interpreter alive.

        Returns:
            The started thread.
        """
        thread = threading.Thread(
            target=target, args=args, kwargs=kwargs or {}, name=name, daemon=daemon,
        )

        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)

        thread.start()
        log.debug("Started managed thread: %s", name)
        return thread

    def shutdown(self, timeout: float = 5.0) -> int:
        """Join all managed threads.

        Callers close their transports first so the receive loops end.

        Args:
            timeout: Seconds to wait for each thread.

        Returns:
            Number of threads that didn't stop in time.
        """
        with self._lock:
            threads = list(self._threads)

        current = threading.current_thread()
        still_running = 0
        for thread in threads:
            if thread is current:
                continue
            thread.join(timeout=timeout)
            if thread.is_alive():
                log.warning("Thread %s still running after shutdown", thread.name)
                still_running += 1

        with self._lock:
            self._threads = [t for t in self._threads if t.is_alive()]

        if still_running:
            log.warning("%d thread(s) still running after shutdown", still_running)
        else:
            log.debug("All managed threads stopped")
        return still_running

    @property
    def running_threads(self) -> List[str]:
        """Get names of currently running threads."""
        with self._lock:
            return [t.name for t in self._threads if t.is_alive()]


# ── Module-level singleton ───────────────────────────────────
_global_manager: Optional[ThreadManager] = None


def get_thread_manager() -> ThreadManager:
    """Get the global thread manager instance."""
    global _global_manager
    if _global_manager is None:
        _global_manager = ThreadManager()
    return _global_manager


def shutdown_all_threads(timeout: float = 5.0) -> int:
    """Convenience function to join all globally managed threads."""
    if _global_manager is not None:
        return _global_manager.shutdown(timeout)
    return 0
