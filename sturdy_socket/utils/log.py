"""
Logging helpers for sturdy-socket.

Library modules only create named loggers; ``setup_logging()`` is for
applications such as the ``sturdy-ws`` launcher.

Messages about one socket go through ``SocketLogger``, which prefixes
them with the endpoint (``[wss://host/path] Connection down: ...``) and
attaches it to the record as ``url``, so ``JsonFormatter`` can emit it as
a separate field.
"""
import json
import logging
import logging.handlers
import os
import time

# Every logger the package creates; setup_logging(package_level=...) tunes them together
PACKAGE_LOGGERS = (
    "sturdy_socket", "transport", "gate", "events", "config",
    "tx_queue", "timers", "threads", "watchdog",
)

_configured = False


class SocketLogger(logging.LoggerAdapter):
    """Logger adapter bound to one endpoint URL."""

    def __init__(self, logger, url):
        super().__init__(logger, {"url": url})

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return f"[{self.extra['url']}] {msg}", kwargs


class JsonFormatter(logging.Formatter):
    """One JSON object per line::

        {"ts":"2025-01-15T12:00:00Z","level":"INFO","logger":"sturdy_socket",
         "url":"wss://example.org/feed","msg":"[wss://example.org/feed] Connection restored"}
    """

    def format(self, record):
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
        }
        url = getattr(record, "url", None)
        if url is not None:
            entry["url"] = url
        entry["msg"] = record.getMessage()
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level=logging.INFO, log_file=None, console_level=None,
                  structured=False, package_level=None):
    """Configure the root logger once; later calls are no-ops.

    Args:
        level: Root logger level.
        log_file: Optional path of a rotating log file (1 MB x 3).
        console_level: Stricter level for the stderr handler only.
        structured: Format records with ``JsonFormatter``.
        package_level: Level for the sturdy-socket loggers, e.g. DEBUG to
            trace reconnects without turning on DEBUG for everything else.
    """
    global _configured
    if _configured:
        return
    _configured = True

    if structured:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handlers = [logging.StreamHandler()]
    if console_level is not None:
        handlers[0].setLevel(console_level)
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=3, delay=True,
        ))

    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if package_level is not None:
        for name in PACKAGE_LOGGERS:
            logging.getLogger(name).setLevel(package_level)
