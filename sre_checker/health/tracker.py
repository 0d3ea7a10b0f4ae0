"""Hysteresis tracker: turns a stream of probe outcomes into a verdict.

A channel only changes verdict after a run of identical outcomes reaches the
configured threshold. Counter movement in between is invisible to the rest of
the system, and crossing a threshold for the verdict already held emits
nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Verdict(str, Enum):
    UNKNOWN = "unknown"
    UP = "up"
    DOWN = "down"


class ThresholdError(ValueError):
    """Raised when a threshold is not a positive integer."""


@dataclass(frozen=True)
class Thresholds:
    """Run lengths required to confirm UP (health) and DOWN (unhealth)."""

    health: int = 5
    unhealth: int = 5

    def __post_init__(self) -> None:
        for name in ("health", "unhealth"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ThresholdError(f"{name} threshold must be an integer >= 1, got {value!r}")


@dataclass(frozen=True)
class TrackerState:
    """Counters and verdict after one observation. Replaced whole, never mutated."""

    consecutive_success: int = 0
    consecutive_failure: int = 0
    verdict: Verdict = Verdict.UNKNOWN


@dataclass(frozen=True)
class VerdictChange:
    """Emitted by the tracker when a threshold crossing changes the verdict."""

    channel: str
    previous: Verdict
    verdict: Verdict


class HysteresisTracker:
    """Debounces boolean outcomes for a single channel.

    Owned by exactly one driver loop. Other threads may read ``state``: each
    observation swaps in a new immutable ``TrackerState``, so readers never
    see counters from two different observations.
    """

    def __init__(self, channel: str, thresholds: Thresholds) -> None:
        self.channel = channel
        self.thresholds = thresholds
        self.state = TrackerState()

    @property
    def verdict(self) -> Verdict:
        return self.state.verdict

    def observe(self, outcome: bool) -> VerdictChange | None:
        """Record one probe outcome; return a change event on a crossing."""
        prev = self.state
        if outcome:
            success = min(prev.consecutive_success + 1, self.thresholds.health)
            failure = 0
        else:
            success = 0
            failure = min(prev.consecutive_failure + 1, self.thresholds.unhealth)

        verdict = prev.verdict
        if success >= self.thresholds.health and verdict != Verdict.UP:
            verdict = Verdict.UP
        elif failure >= self.thresholds.unhealth and verdict != Verdict.DOWN:
            verdict = Verdict.DOWN

        self.state = TrackerState(success, failure, verdict)
        if verdict == prev.verdict:
            return None
        return VerdictChange(channel=self.channel, previous=prev.verdict, verdict=verdict)

    def to_dict(self) -> dict[str, int | str]:
        state = self.state
        return {
            "channel": self.channel,
            "verdict": state.verdict.value,
            "consecutive_success": state.consecutive_success,
            "consecutive_failure": state.consecutive_failure,
        }
