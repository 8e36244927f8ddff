"""
Socket configuration for sturdy-socket.

Backoff tuning, connect timeout and the injectable collaborators
(transport factory, reconnect predicate, scheduler) live in one
dataclass.  The numeric settings can be persisted as JSON; callables
are never serialized.
"""

import asyncio
import dataclasses
import inspect
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

log = logging.getLogger("config")

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "sturdy-socket"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "socket.json"

# Fields holding callables or live objects; excluded from JSON
RUNTIME_FIELDS = ("transport_factory", "should_reconnect", "scheduler")


class ConfigError(ValueError):
    """Invalid or incomplete socket configuration."""


def _is_async(predicate: Any) -> bool:
    if predicate is None:
        return False
    return (inspect.iscoroutinefunction(predicate)
            or inspect.iscoroutinefunction(getattr(predicate, "__call__", None)))


@dataclass
class SocketConfig:
    """
    Configuration for one SturdySocket.

    All durations are in seconds.  ``max_reconnect_attempts=None`` retries
    forever; ``connect_timeout=None`` disables the connect watchdog.
    """

    # Backoff
    min_reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    reconnect_backoff_factor: float = 1.5
    max_reconnect_attempts: Optional[int] = None

    # Connection
    connect_timeout: Optional[float] = None
    debug: bool = False

    # Collaborators
    transport_factory: Optional[Callable[..., Any]] = None
    should_reconnect: Optional[Callable[[Any], Any]] = None
    scheduler: Any = None

    def validate(self) -> "SocketConfig":
        """Raise ConfigError on any inconsistent setting.  Returns self."""
        if self.min_reconnect_delay < 0:
            raise ConfigError(
                f"min_reconnect_delay must be >= 0, got {self.min_reconnect_delay}")
        if self.max_reconnect_delay < self.min_reconnect_delay:
            raise ConfigError(
                f"max_reconnect_delay ({self.max_reconnect_delay}) must not be "
                f"less than min_reconnect_delay ({self.min_reconnect_delay})")
        if self.reconnect_backoff_factor <= 0:
            raise ConfigError(
                f"reconnect_backoff_factor must be > 0, got {self.reconnect_backoff_factor}")
        attempts = self.max_reconnect_attempts
        if attempts is not None:
            if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 0:
                raise ConfigError(
                    f"max_reconnect_attempts must be a non-negative integer or None, "
                    f"got {attempts!r}")
        if self.connect_timeout is not None and self.connect_timeout <= 0:
            raise ConfigError(
                f"connect_timeout must be > 0 or None, got {self.connect_timeout}")
        if self.transport_factory is not None and not callable(self.transport_factory):
            raise ConfigError("transport_factory must be callable")
        if self.should_reconnect is not None and not callable(self.should_reconnect):
            raise ConfigError("should_reconnect must be callable")
        if self.scheduler is not None and not callable(getattr(self.scheduler, "call_later", None)):
            raise ConfigError("scheduler must provide call_later(delay, callback, *args)")
        if (_is_async(self.should_reconnect)
                and not isinstance(self.scheduler, asyncio.AbstractEventLoop)):
            raise ConfigError(
                "an async should_reconnect needs an asyncio event loop as scheduler "
                "to run on")
        return self

    def with_options(self, **options: Any) -> "SocketConfig":
        """Return a copy with *options* applied (unknown names are rejected)."""
        unknown = set(options) - set(self.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown socket option(s): {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the serializable settings to a dictionary."""
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if name not in RUNTIME_FIELDS
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SocketConfig":
        """Create configuration from dictionary."""
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown socket option(s): {', '.join(sorted(unknown))}")
        runtime = set(data) & set(RUNTIME_FIELDS)
        if runtime:
            raise ConfigError(
                f"Option(s) {', '.join(sorted(runtime))} cannot be loaded from a file")
        return cls(**data)

    def save(self, config_file: Optional[Path] = None) -> bool:
        """
        Save configuration to file.

        Args:
            config_file: Path to config file

        Returns:
            True if successful
        """
        if config_file is None:
            config_file = DEFAULT_CONFIG_FILE
        config_file = Path(config_file)

        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, "w") as f:
                json.dump(self.to_dict(), f, indent=2)
            log.debug("Saved socket configuration to %s", config_file)
            return True
        except OSError as e:
            log.error("Error saving config %s: %s", config_file, e)
            return False

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "SocketConfig":
        """
        Load configuration from file.

        A missing file yields the defaults; an unreadable or malformed
        one raises ConfigError.

        Args:
            config_file: Path to config file

        Returns:
            SocketConfig instance
        """
        if config_file is None:
            config_file = DEFAULT_CONFIG_FILE
        config_file = Path(config_file)

        if not config_file.exists():
            log.debug("No config file at %s, using defaults", config_file)
            return cls()

        try:
            with open(config_file) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid config file {config_file}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Cannot read config file {config_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_file} must contain a JSON object")
        return cls.from_dict(data).validate()
