"""Tests for configuration loading and the CLI entry point."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from sre_checker.config import ConfigError, Settings, load_settings, read_config_file
from sre_checker.health.tracker import Thresholds
from sre_checker.main import build_parser, main, overrides_from_args
from sre_checker.monitor import build_channels, build_scheduler

TARGETS = {"tcp_host": "tonto.example.com", "http_host": "tonto-http.example.com"}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:
    for name in ("TIMEOUT", "CHECK_INTERVAL", "HEALTH_THRESHOLD", "UNHEALTH_THRESHOLD",
                 "TCP_HOST", "HTTP_HOST", "AUTH_TOKEN", "TONTO_AUTH", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(Path(__file__).parent)  # no stray .env


# ── Settings ─────────────────────────────────────────────────────────────────


class TestSettings:
    def test_defaults(self) -> None:
        s = load_settings(overrides=TARGETS)
        assert s.check_interval == 5
        assert s.timeout == 3
        assert s.thresholds == Thresholds(5, 5)
        assert s.tcp_port == 80 and s.http_port == 80
        assert s.rss_feed is False

    @pytest.mark.parametrize("field", ["health_threshold", "unhealth_threshold"])
    def test_zero_threshold_is_fatal(self, field: str) -> None:
        with pytest.raises(ConfigError, match=field):
            load_settings(overrides={**TARGETS, field: 0})

    @pytest.mark.parametrize("field", ["check_interval", "timeout"])
    def test_non_positive_duration_is_fatal(self, field: str) -> None:
        with pytest.raises(ConfigError, match=field):
            load_settings(overrides={**TARGETS, field: 0})

    def test_missing_target(self) -> None:
        with pytest.raises(ConfigError, match="http_host"):
            load_settings(overrides={"tcp_host": "tonto.example.com"})

    def test_bad_log_level(self) -> None:
        with pytest.raises(ConfigError, match="log_level"):
            load_settings(overrides={**TARGETS, "log_level": "LOUD"})

    def test_env_auth_alias(self, monkeypatch) -> None:
        monkeypatch.setenv("TONTO_AUTH", "from-env")
        assert load_settings(overrides=TARGETS).auth_token == "from-env"

    def test_env_values(self, monkeypatch) -> None:
        monkeypatch.setenv("HEALTH_THRESHOLD", "2")
        monkeypatch.setenv("TCP_HOST", "env-host")
        s = load_settings(overrides={"http_host": "h"})
        assert s.health_threshold == 2
        assert s.tcp_host == "env-host"

    def test_timeout_not_below_interval_warns(self, caplog) -> None:
        load_settings(overrides={**TARGETS, "timeout": 10, "check_interval": 5})
        assert "timeout" in caplog.text

    def test_links(self) -> None:
        s = Settings(_env_file=None, **TARGETS, tcp_port=3000, http_link="https://status")
        assert s.links == {"tcp": "tonto.example.com:3000", "http": "https://status"}


# ── YAML file ────────────────────────────────────────────────────────────────


class TestConfigFile:
    def test_file_values_and_cli_precedence(self, tmp_path: Path) -> None:
        path = tmp_path / "sre-checker.yaml"
        path.write_text(
            "tcp-host: file-tcp\nhttp_host: file-http\nhealth-threshold: 3\ncheck_interval: 10\n"
        )
        s = load_settings(path, {"health_threshold": 7})
        assert s.tcp_host == "file-tcp"
        assert s.check_interval == 10
        assert s.health_threshold == 7

    def test_default_path_used_when_present(self, tmp_path: Path) -> None:
        path = tmp_path / "home.yaml"
        path.write_text("tcp_host: a\nhttp_host: b\n")
        with patch("sre_checker.config.DEFAULT_CONFIG_PATH", path):
            s = load_settings()
        assert (s.tcp_host, s.http_host) == ("a", "b")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Cannot read"):
            read_config_file(tmp_path / "nope.yaml")

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            read_config_file(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("tcp_host: [unclosed\n")
        with pytest.raises(ConfigError):
            read_config_file(path)


# ── Wiring ───────────────────────────────────────────────────────────────────


class TestWiring:
    def test_build_channels(self, settings: Settings) -> None:
        channels = build_channels(settings)
        assert [c.name for c in channels] == ["tcp", "http"]
        assert channels[0].target.port == 3000
        assert channels[1].target.host == "tonto-http.example.com"
        assert channels[0].tracker is not channels[1].tracker

    def test_build_scheduler(self, settings: Settings, notifier) -> None:
        scheduler = build_scheduler(settings, notifier=notifier)
        assert scheduler.interval == settings.check_interval
        assert scheduler.store.channels == ["tcp", "http"]
        assert scheduler.notifier is notifier


# ── CLI ──────────────────────────────────────────────────────────────────────


class TestCli:
    def test_overrides_only_given_flags(self) -> None:
        args = build_parser().parse_args(["--tcp-host", "x", "-t", "2", "--health-threshold", "4"])
        assert overrides_from_args(args) == {"tcp_host": "x", "timeout": 2.0, "health_threshold": 4}

    def test_rss_flag(self) -> None:
        args = build_parser().parse_args(["--rss-feed"])
        assert overrides_from_args(args) == {"rss_feed": True}

    def test_config_error_exits_2(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--tcp-host", "x", "--http-host", "y", "--health-threshold", "0"])
        assert exc.value.code == 2

    @patch("sre_checker.main.run_polling")
    def test_polling_mode(self, mock_run) -> None:
        main(["--tcp-host", "x", "--http-host", "y"])
        mock_run.assert_called_once()
        assert mock_run.call_args[0][0].tcp_host == "x"

    @patch("sre_checker.main.run_server")
    def test_feed_mode(self, mock_run) -> None:
        main(["--tcp-host", "x", "--http-host", "y", "--rss-feed"])
        mock_run.assert_called_once()
