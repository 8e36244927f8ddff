#!/usr/bin/env python3
"""
sturdy-ws: line-oriented websocket client that rides out disconnections.

Every line read from stdin is sent as a text message; every message
received is printed to stdout.  Connection loss, recovery and the final
close are logged to stderr.  Lines typed while the connection is down
are queued and delivered once it comes back.

Usage:
    sturdy-ws wss://example.org/feed [--protocol chat] [--max-attempts 10]
    echo '{"op": "ping"}' | sturdy-ws ws://localhost:9000 --connect-timeout 5

Exit status:
    0  stdin reached EOF or Ctrl+C was pressed
    1  the socket closed for good (reconnect vetoed or attempts exhausted)
    2  invalid configuration
"""
import argparse
import logging
import sys
import threading
import time

from sturdy_socket import ConfigError, SocketClosedError, SocketConfig, SturdySocket
from sturdy_socket.utils.log import setup_logging
from sturdy_socket.utils.threads import shutdown_all_threads
from sturdy_socket.utils.timers import ThreadingScheduler
from version import get_version

log = logging.getLogger("sturdy_ws")

# argparse dest -> SocketConfig field
OVERRIDES = {
    "connect_timeout": "connect_timeout",
    "min_delay": "min_reconnect_delay",
    "max_delay": "max_reconnect_delay",
    "backoff_factor": "reconnect_backoff_factor",
    "max_attempts": "max_reconnect_attempts",
}


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sturdy-ws",
        description="Websocket client that reconnects automatically",
    )
    parser.add_argument("url", help="ws:// or wss:// endpoint")
    parser.add_argument(
        "--protocol", action="append", default=[], metavar="NAME",
        help="Sub-protocol to offer (repeatable)",
    )
    parser.add_argument(
        "--config", default=None, metavar="FILE",
        help="JSON socket config (default: ~/.config/sturdy-socket/socket.json)",
    )
    parser.add_argument("--connect-timeout", type=float, metavar="S",
                        help="Abort a connection attempt after S seconds")
    parser.add_argument("--min-delay", type=float, metavar="S",
                        help="First backoff delay in seconds")
    parser.add_argument("--max-delay", type=float, metavar="S",
                        help="Upper bound on the backoff delay in seconds")
    parser.add_argument("--backoff-factor", type=float, metavar="F",
                        help="Growth factor between consecutive delays")
    parser.add_argument("--max-attempts", type=int, metavar="N",
                        help="Give up after N reconnection attempts (default: never)")
    parser.add_argument(
        "--drain-timeout", type=float, default=5.0, metavar="S",
        help="On EOF, wait up to S seconds for queued lines to go out (default: 5)",
    )
    parser.add_argument(
        "--stay", action="store_true",
        help="Keep printing messages after stdin is exhausted, until Ctrl+C",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose connection logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    parser.add_argument("--log-file", default=None, metavar="PATH",
                        help="Also write logs to a rotating file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    return parser


def build_config(args):
    """Load the JSON config, then apply command-line overrides on top."""
    config = SocketConfig.load(args.config)
    overrides = {
        field: getattr(args, dest)
        for dest, field in OVERRIDES.items()
        if getattr(args, dest) is not None
    }
    if args.debug:
        overrides["debug"] = True
    return config.with_options(**overrides).validate()


def _format_payload(payload):
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return str(payload)


def _wait_for_drain(sock, finished, timeout):
    deadline = time.monotonic() + timeout
    while sock.buffered_amount and not finished.is_set():
        if time.monotonic() >= deadline:
            log.warning("Giving up with %d byte(s) still queued", sock.buffered_amount)
            return
        time.sleep(0.05)


def run(args, stdin=None, stdout=None, transport_factory=None):
    """Pump stdin to the socket and the socket to stdout.

    Returns:
        Process exit status.
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    config = build_config(args)

    scheduler = ThreadingScheduler()
    options = {"scheduler": scheduler}
    if transport_factory is not None:
        options["transport_factory"] = transport_factory

    finished = threading.Event()

    def on_message(payload):
        print(_format_payload(payload), file=stdout, flush=True)

    def on_down(event):
        if event is None:
            log.warning("Connection dropped for manual reconnect")
        else:
            log.warning("Connection lost (%s); reconnecting", event)

    def on_reopen():
        log.info("Connection restored")

    def on_close(event):
        log.info("Socket closed: %s", event)
        finished.set()

    sock = SturdySocket(
        args.url, args.protocol or None, config=config.with_options(**options),
        on_message=on_message, on_down=on_down, on_reopen=on_reopen, on_close=on_close,
    )

    gave_up = False
    try:
        for line in stdin:
            if finished.is_set():
                break
            line = line.rstrip("\r\n")
            if not line:
                continue
            try:
                sock.send(line)
            except SocketClosedError:
                break
        if args.stay:
            while not finished.wait(0.5):
                pass
        else:
            _wait_for_drain(sock, finished, args.drain_timeout)
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        gave_up = finished.is_set()
        sock.close()
        scheduler.shutdown()
        shutdown_all_threads(timeout=2)

    return 1 if gave_up else 0


def main(argv=None):
    args = build_parser().parse_args(argv)

    setup_logging(
        level=logging.INFO,
        package_level=logging.DEBUG if args.debug else None,
        log_file=args.log_file,
        structured=args.json_logs,
    )

    try:
        return run(args)
    except ConfigError as e:
        log.error("Configuration error: %s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
