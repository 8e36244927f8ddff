"""
Reconnect strategy with deterministic exponential backoff.

Owns the attempt counter for one socket and maps each attempt index to
a delay.  The very first retry after a failure is immediate; later ones
grow by ``backoff_factor`` until ``max_delay`` caps them.  There is no
jitter, so a schedule is reproducible and can be asserted in tests.

Schedule for min_delay=1, max_delay=9, backoff_factor=2:

    attempt  0  1  2  3  4  5  6 ...
    delay    0  1  2  4  8  9  9 ...
"""
from dataclasses import dataclass, field
from typing import Iterator, Optional


@dataclass
class ReconnectStrategy:
    """Tracks reconnection attempts and computes the backoff delay.

    Usage:
        strategy = ReconnectStrategy(min_delay=1.0, max_delay=30.0)

        # on every unexpected close
        if not strategy.should_retry():
            give_up()
        else:
            schedule(strategy.next_delay(), reconnect)

        # on every successful open
        strategy.record_success()
    """
    min_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 1.5
    max_attempts: Optional[int] = None

    # Mutable state (not part of __init__ comparison)
    _attempts: int = field(default=0, repr=False, compare=False)

    def get_delay(self, attempt: int = -1) -> float:
        """Delay in seconds before reconnection attempt *attempt*.

        Args:
            attempt: Attempt number (0-based). Defaults to current internal count.
        """
        if attempt < 0:
            attempt = self._attempts
        if attempt == 0:
            return 0
        return min(self.min_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)

    def should_retry(self) -> bool:
        """Check whether another attempt fits under ``max_attempts``."""
        if self.max_attempts is None:
            return True
        return self._attempts < self.max_attempts

    def next_delay(self) -> float:
        """Consume one attempt and return its delay.

        The delay is computed from the attempt index *before* the
        increment, so the first call after a reset always returns 0.
        """
        delay = self.get_delay(self._attempts)
        self._attempts += 1
        return delay

    def record_success(self) -> None:
        """Connection opened: start counting from zero again."""
        self._attempts = 0

    def reset(self) -> None:
        """Explicitly reset the attempt counter (manual reconnect)."""
        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Current attempt count."""
        return self._attempts

    def schedule(self) -> Iterator[float]:
        """Yield every delay this strategy would allow, in order.

        Unbounded when ``max_attempts`` is None.
        """
        attempt = 0
        while self.max_attempts is None or attempt < self.max_attempts:
            yield self.get_delay(attempt)
            attempt += 1

    @classmethod
    def from_config(cls, config) -> 'ReconnectStrategy':
        """Factory: build a strategy from a SocketConfig's backoff fields."""
        return cls(
            min_delay=config.min_reconnect_delay,
            max_delay=config.max_reconnect_delay,
            backoff_factor=config.reconnect_backoff_factor,
            max_attempts=config.max_reconnect_attempts,
        )
