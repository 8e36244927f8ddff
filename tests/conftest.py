import os
import sys

import pytest

# Ensure project root is on sys.path so sturdy_socket.* imports work
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from sturdy_socket.transport import TransportError  # noqa: E402

# Detect CI environment
CI = os.environ.get('CI', 'false').lower() == 'true'

URL = "ws://localhost:9327"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "network: mark test as requiring network access"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip network tests in CI environment."""
    if not CI:
        return

    skip_network = pytest.mark.skip(reason="Network tests skipped in CI")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip_network)


class ManualHandle:
    def __init__(self, when, seq, callback, args):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Fake-clock scheduler: timers only fire inside advance()."""

    def __init__(self):
        self.now = 0.0
        self.requested = []
        self._timers = []
        self._seq = 0

    def call_later(self, delay, callback, *args):
        self.requested.append(delay)
        self._seq += 1
        handle = ManualHandle(self.now + delay, self._seq, callback, args)
        self._timers.append(handle)
        return handle

    def advance(self, seconds=0.0):
        target = self.now + seconds
        while True:
            due = [h for h in self._timers if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._timers.remove(handle)
            self.now = handle.when
            handle.callback(*handle.args)
        self.now = target
        self._timers = [h for h in self._timers if not h.cancelled]

    @property
    def pending(self):
        return sum(1 for h in self._timers if not h.cancelled)


class FakeTransport:
    """Transport double driven by the test: open(), receive(), drop(), fail()."""

    def __init__(self, url, protocols, *, on_open, on_message, on_close, on_error,
                 close_fires_callback=False):
        self.url = url
        self.protocols = protocols
        self.protocol = protocols[0] if protocols else ""
        self._on_open = on_open
        self._on_message = on_message
        self._on_close = on_close
        self._on_error = on_error
        self.close_fires_callback = close_fires_callback
        self.sent = []
        self.close_calls = []
        self.fail_sends_after = None

    def send(self, payload):
        if self.fail_sends_after is not None and len(self.sent) >= self.fail_sends_after:
            raise TransportError("connection reset")
        self.sent.append(payload)

    def close(self, code=None, reason=None):
        self.close_calls.append((code, reason))
        if self.close_fires_callback:
            self._on_close(code or 1006, reason or "", False)

    @property
    def closed(self):
        return bool(self.close_calls)

    def open(self):
        self._on_open()

    def receive(self, payload):
        self._on_message(payload)

    def drop(self, code=1006, reason="", was_clean=False):
        self._on_close(code, reason, was_clean)

    def fail(self, error):
        self._on_error(error)


class FakeTransportFactory:
    """Records every transport it builds."""

    def __init__(self, auto_open=False, auto_drop=False, close_fires_callback=False):
        self.transports = []
        self.auto_open = auto_open
        self.auto_drop = auto_drop
        self.close_fires_callback = close_fires_callback

    def __call__(self, url, protocols, **callbacks):
        transport = FakeTransport(url, protocols,
                                  close_fires_callback=self.close_fires_callback,
                                  **callbacks)
        self.transports.append(transport)
        if self.auto_open:
            transport.open()
        elif self.auto_drop:
            transport.drop(1006, "refused")
        return transport

    @property
    def latest(self):
        return self.transports[-1]

    @property
    def count(self):
        return len(self.transports)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def factory():
    return FakeTransportFactory()


@pytest.fixture
def make_socket(scheduler, factory):
    """Build a SturdySocket wired to the fake factory and fake clock."""
    from sturdy_socket.client import SturdySocket

    created = []

    def _make(url=URL, protocols=None, **options):
        options.setdefault("transport_factory", factory)
        options.setdefault("scheduler", scheduler)
        sock = SturdySocket(url, protocols, **options)
        created.append(sock)
        return sock

    yield _make

    for sock in created:
        sock.close()


@pytest.fixture
def recorder():
    """Callable that records the arguments of every call."""

    class Recorder:
        def __init__(self):
            self.calls = []

        def __call__(self, *args):
            self.calls.append(args)

        @property
        def count(self):
            return len(self.calls)

    return Recorder
