"""Status store: last known verdict per channel, shared with the feed.

Copy-on-write: every update builds a fresh immutable mapping under a lock and
swaps a single reference. Readers take the current reference without locking,
so they never see a half-applied update and repeated reads allocate nothing.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType

from .tracker import Verdict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusEntry:
    verdict: Verdict
    changed_at: datetime


def _freeze(
    entries: dict[str, StatusEntry],
) -> tuple[Mapping[str, StatusEntry], Mapping[str, Verdict]]:
    snapshot = {name: e.verdict for name, e in entries.items()}
    return MappingProxyType(entries), MappingProxyType(snapshot)


class StatusStore:
    """Thread-safe channel → verdict record.

    Channels are fixed at construction; each starts as ``Verdict.UNKNOWN``.
    """

    def __init__(self, channels: Iterable[str]) -> None:
        now = datetime.now(timezone.utc)
        self._write_lock = threading.Lock()
        self._current = _freeze({name: StatusEntry(Verdict.UNKNOWN, now) for name in channels})

    @property
    def channels(self) -> list[str]:
        return list(self._current[0])

    def update(self, channel: str, verdict: Verdict) -> None:
        """Set the verdict for ``channel``. Raises KeyError for unknown channels."""
        with self._write_lock:
            if channel not in self._current[0]:
                raise KeyError(f"Unknown channel: {channel}")
            entries = dict(self._current[0])
            entries[channel] = StatusEntry(verdict, datetime.now(timezone.utc))
            # Readers see the old pair or the new pair, never a mix.
            self._current = _freeze(entries)
        logger.debug("Status store: %s -> %s", channel, verdict.value)

    def snapshot(self) -> Mapping[str, Verdict]:
        """Read-only point-in-time view of channel → verdict."""
        return self._current[1]

    def entries(self) -> Mapping[str, StatusEntry]:
        """Read-only point-in-time view including the time of each last change."""
        return self._current[0]

    def get(self, channel: str) -> Verdict:
        return self._current[1][channel]
