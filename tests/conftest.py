"""Shared test fixtures."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from unittest.mock import patch

import pytest

from sre_checker.config import Settings
from sre_checker.health.probes import ProbeResult, Target
from sre_checker.health.scheduler import Channel
from sre_checker.health.tracker import Thresholds, Verdict


class ScriptedProber:
    """Prober that replays a fixed list of outcomes, then repeats the last one."""

    def __init__(self, name: str, outcomes: Iterable[bool] = (True,)) -> None:
        self.name = name
        self.outcomes = list(outcomes)
        self.calls = 0
        self._lock = threading.Lock()

    def check(self, target: Target) -> ProbeResult:
        with self._lock:
            idx = min(self.calls, len(self.outcomes) - 1)
            self.calls += 1
        ok = self.outcomes[idx]
        return ProbeResult(ok=ok, message="scripted ok" if ok else "scripted failure")


class RecordingNotifier:
    """Notifier that records every (channel, verdict) it is handed."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Verdict]] = []

    async def notify(self, channel: str, verdict: Verdict) -> None:
        self.calls.append((channel, verdict))


@pytest.fixture
def make_channel() -> Callable[..., Channel]:
    """Factory for a channel driven by a ``ScriptedProber``."""

    def _make(name: str, outcomes: Iterable[bool], health: int = 1, unhealth: int = 1) -> Channel:
        return Channel.create(
            ScriptedProber(name, outcomes),
            Target("127.0.0.1", 9),
            Thresholds(health=health, unhealth=unhealth),
        )

    return _make


@pytest.fixture(autouse=True)
def no_home_config(tmp_path):
    """Never pick up a real ~/sre-checker.yaml during tests."""
    with patch("sre_checker.config.DEFAULT_CONFIG_PATH", tmp_path / "absent.yaml"):
        yield


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        tcp_host="tonto.example.com",
        tcp_port=3000,
        http_host="tonto-http.example.com",
        http_port=443,
        auth_token="secret",
        check_interval=5,
        timeout=1,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
