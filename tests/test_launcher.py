"""Tests for launcher.py — sturdy-ws command-line client."""
import io
import json
import logging
from unittest.mock import patch

import pytest

import launcher
import sturdy_socket
from conftest import URL, FakeTransportFactory
from sturdy_socket.config import ConfigError


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "socket.json"
    path.write_text(json.dumps({"min_reconnect_delay": 0.25, "max_reconnect_attempts": 4}))
    return str(path)


def parse(*argv):
    return launcher.build_parser().parse_args(list(argv))


class TestBuildParser:
    def test_defaults(self):
        args = parse(URL)
        assert args.url == URL
        assert args.protocol == []
        assert args.max_attempts is None
        assert args.drain_timeout == 5.0
        assert not args.stay

    def test_repeatable_protocol(self):
        args = parse(URL, "--protocol", "chat", "--protocol", "superchat")
        assert args.protocol == ["chat", "superchat"]


class TestBuildConfig:
    def test_file_values_used(self, config_file):
        config = launcher.build_config(parse(URL, "--config", config_file))
        assert config.min_reconnect_delay == 0.25
        assert config.max_reconnect_attempts == 4

    def test_flags_override_file(self, config_file):
        args = parse(URL, "--config", config_file, "--max-attempts", "0",
                     "--connect-timeout", "2.5", "--debug")
        config = launcher.build_config(args)
        assert config.max_reconnect_attempts == 0
        assert config.connect_timeout == 2.5
        assert config.min_reconnect_delay == 0.25
        assert config.debug is True

    def test_invalid_combination(self, config_file):
        args = parse(URL, "--config", config_file, "--max-delay", "0.1")
        with pytest.raises(ConfigError):
            launcher.build_config(args)


class TestRun:
    def test_sends_stdin_lines_and_exits_cleanly(self, config_file):
        factory = FakeTransportFactory(auto_open=True)
        args = parse(URL, "--config", config_file)
        stdin = io.StringIO("hello\n\nworld\n")

        assert launcher.run(args, stdin=stdin, stdout=io.StringIO(),
                            transport_factory=factory) == 0
        assert factory.latest.sent == ["hello", "world"]
        assert factory.latest.close_calls == [(1000, "")]

    def test_prints_received_messages(self, config_file):
        factory = FakeTransportFactory(auto_open=True)
        stdout = io.StringIO()

        class Stdin:
            def __iter__(self):
                factory.latest.receive("from server")
                factory.latest.receive(b"raw bytes")
                return iter([])

        launcher.run(parse(URL, "--config", config_file), stdin=Stdin(),
                     stdout=stdout, transport_factory=factory)
        assert stdout.getvalue().splitlines() == ["from server", "raw bytes"]

    def test_terminal_close_exits_with_failure(self, config_file):
        factory = FakeTransportFactory(auto_drop=True)
        args = parse(URL, "--config", config_file, "--max-attempts", "0")

        assert launcher.run(args, stdin=io.StringIO("lost\n"), stdout=io.StringIO(),
                            transport_factory=factory) == 1
        assert factory.count == 1
        assert factory.latest.sent == []

    def test_drain_timeout_with_unopened_socket(self, config_file):
        factory = FakeTransportFactory()
        args = parse(URL, "--config", config_file, "--drain-timeout", "0.1")

        assert launcher.run(args, stdin=io.StringIO("queued\n"), stdout=io.StringIO(),
                            transport_factory=factory) == 0
        assert factory.latest.sent == []


class TestMain:
    def test_config_error_exit_code(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{broken")
        with patch.object(launcher, "setup_logging"):
            assert launcher.main([URL, "--config", str(bad)]) == 2

    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc:
            launcher.main(["--version"])
        assert exc.value.code == 0
        assert "sturdy-ws" in capsys.readouterr().out

    def test_debug_flag_raises_package_loggers_only(self, tmp_path):
        missing = tmp_path / "none.json"
        with patch.object(launcher, "setup_logging") as setup, \
                patch.object(launcher, "run", return_value=0):
            assert launcher.main([URL, "--config", str(missing), "--debug"]) == 0
        kwargs = setup.call_args.kwargs
        assert kwargs["level"] == logging.INFO
        assert kwargs["package_level"] == logging.DEBUG

    def test_version_matches_package(self):
        assert launcher.get_version() == sturdy_socket.__version__
