"""Tests for sturdy_socket/utils/timers.py — ThreadingScheduler."""
import threading

from sturdy_socket.utils.timers import ThreadingScheduler


class TestThreadingScheduler:
    def test_callback_runs_with_args(self):
        scheduler = ThreadingScheduler()
        done = threading.Event()
        received = []

        def callback(a, b):
            received.append((a, b))
            done.set()

        scheduler.call_later(0.01, callback, 1, "two")
        assert done.wait(2.0)
        assert received == [(1, "two")]

    def test_cancel_prevents_callback(self):
        scheduler = ThreadingScheduler()
        fired = threading.Event()
        handle = scheduler.call_later(0.2, fired.set)
        handle.cancel()
        assert handle.cancelled()
        assert not fired.wait(0.4)
        assert scheduler.pending == 0

    def test_fired_timer_is_forgotten(self):
        scheduler = ThreadingScheduler()
        done = threading.Event()
        scheduler.call_later(0, done.set)
        assert done.wait(2.0)
        # _forget runs before the callback, so the count is already down
        assert scheduler.pending == 0

    def test_negative_delay_clamped(self):
        scheduler = ThreadingScheduler()
        done = threading.Event()
        handle = scheduler.call_later(-5, done.set)
        assert handle.delay == 0.0
        assert done.wait(2.0)

    def test_shutdown_cancels_pending(self):
        scheduler = ThreadingScheduler()
        fired = threading.Event()
        scheduler.call_later(5, fired.set)
        scheduler.call_later(5, fired.set)
        assert scheduler.pending == 2
        assert scheduler.shutdown() == 2
        assert scheduler.pending == 0
        assert not fired.is_set()

    def test_callback_exception_is_logged(self, caplog):
        scheduler = ThreadingScheduler()
        done = threading.Event()

        def boom():
            done.set()
            raise RuntimeError("timer bug")

        handle = scheduler.call_later(0, boom)
        assert done.wait(2.0)
        handle._timer.join(2.0)
        assert "timer bug" in caplog.text
