"""
Unit tests for ServerConfig and the command-line launcher.
"""

import pytest

from replserver import ServerConfig, __version__
from replserver.__main__ import build_parser, config_from_args, main


class TestValidate:
    """Tests for ServerConfig.validate()."""

    def test_defaults_are_valid(self):
        config = ServerConfig()
        config.validate()

        assert config.host == "127.0.0.1"
        assert config.port == 7000
        assert config.backlog == 5
        assert config.inline_buffer_size == 256
        assert config.max_buffer_size is None
        assert config.close_on_write_failure is False

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 65536},
        {"backlog": -1},
        {"inline_buffer_size": 1},
        {"inline_buffer_size": 64, "max_buffer_size": 32},
        {"poll_interval": 0},
        {"log_format": "xml"},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            ServerConfig(**overrides).validate()


class TestFromEnv:
    """Tests for ServerConfig.from_env()."""

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("REPL_HOST", "0.0.0.0")
        monkeypatch.setenv("REPL_PORT", "7100")
        monkeypatch.setenv("REPL_BACKLOG", "16")
        monkeypatch.setenv("REPL_BUFFER_SIZE", "512")
        monkeypatch.setenv("REPL_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("REPL_LOG_FORMAT", "json")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 7100
        assert config.backlog == 16
        assert config.inline_buffer_size == 512
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_defaults_when_unset(self, monkeypatch):
        for name in ("REPL_HOST", "REPL_PORT", "REPL_BACKLOG", "REPL_BUFFER_SIZE",
                     "REPL_LOG_LEVEL", "REPL_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)

        assert ServerConfig.from_env() == ServerConfig()

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("REPL_PORT", "seven")

        with pytest.raises(ValueError):
            ServerConfig.from_env()


class TestCommandLine:
    """Tests for the argparse launcher."""

    def test_arguments_override_defaults(self):
        base = ServerConfig(max_buffer_size=4096)
        args = build_parser(base).parse_args([
            "--host", "10.0.0.1", "-p", "7200", "--backlog", "3",
            "--buffer-size", "128", "-s", "echo", "-l", "DEBUG",
            "--log-format", "json",
        ])

        config = config_from_args(args, base)

        assert args.session == "echo"
        assert config.host == "10.0.0.1"
        assert config.port == 7200
        assert config.backlog == 3
        assert config.inline_buffer_size == 128
        assert config.max_buffer_size == 4096
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_defaults_come_from_base(self):
        base = ServerConfig(port=7300)
        args = build_parser(base).parse_args([])

        assert args.port == 7300
        assert args.session == "python"

    def test_unknown_session_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--session", "cobol"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--version"])

        assert __version__ in capsys.readouterr().out

    def test_main_reports_startup_error(self, capsys):
        assert main(["--host", "not-an-address", "--log-level", "ERROR"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_main_reports_bad_environment(self, monkeypatch, capsys):
        monkeypatch.setenv("REPL_PORT", "seven")

        assert main([]) == 1
        assert "invalid environment" in capsys.readouterr().err
