"""Channel scheduler: one polling loop per channel until stopped.

Each loop: probe (in a worker thread) → tracker.observe → on a crossing,
update the status store and hand the change to the notifier → wait.
Loops share nothing but the status store. A single stop event wakes every
waiting loop at once; an in-flight probe is bounded by its own timeout.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .probes import ProbeResult, Prober, Target
from .store import StatusStore
from .tracker import HysteresisTracker, Thresholds, VerdictChange

if TYPE_CHECKING:
    from sre_checker.notifications import Notifier

logger = logging.getLogger(__name__)

# Upper bound on waiting for queued notifications at shutdown.
_NOTIFY_DRAIN_TIMEOUT = 10.0


@dataclass
class Channel:
    """A monitored pathway: its prober, the target it checks and its tracker."""

    name: str
    prober: Prober
    target: Target
    tracker: HysteresisTracker

    @classmethod
    def create(cls, prober: Prober, target: Target, thresholds: Thresholds) -> Channel:
        return cls(prober.name, prober, target, HysteresisTracker(prober.name, thresholds))


class HealthScheduler:
    """Drives every channel's probe → track → react loop on its own schedule."""

    def __init__(
        self,
        channels: Iterable[Channel],
        store: StatusStore,
        notifier: Notifier,
        interval: float,
    ) -> None:
        self.channels = {c.name: c for c in channels}
        missing = set(self.channels) - set(store.channels)
        if missing:
            raise ValueError(f"Status store has no slot for: {', '.join(sorted(missing))}")
        self.store = store
        self.notifier = notifier
        self.interval = interval
        self._executor: ThreadPoolExecutor | None = None
        self._stop: asyncio.Event | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._last_delivery: dict[str, asyncio.Task[None]] = {}

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start one loop per channel."""
        if self._tasks:
            return
        self._stop = asyncio.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=max(len(self.channels), 1), thread_name_prefix="probe",
        )
        for name in self.channels:
            task = asyncio.create_task(
                self._channel_loop(name, self._stop), name=f"channel-{name}",
            )
            self._tasks.append(task)
        logger.info(
            "Scheduler started: %d channels, interval=%ss", len(self.channels), self.interval,
        )

    async def stop(self) -> None:
        """Signal every loop, wait for them, then drain notifications."""
        if self._stop is not None:
            self._stop.set()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self._pending:
            _, not_done = await asyncio.wait(self._pending, timeout=_NOTIFY_DRAIN_TIMEOUT)
            for task in not_done:
                task.cancel()
            if not_done:
                logger.warning("Dropped %d undelivered notifications at shutdown", len(not_done))
        self._last_delivery.clear()

        if self._executor is not None:
            # In-flight probes finish on their own timeout and close their sockets.
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        logger.info("Scheduler stopped")

    async def wait_stopped(self) -> None:
        """Block until ``stop()`` has been requested."""
        if self._stop is None:
            return
        await self._stop.wait()

    def request_stop(self) -> None:
        """Set the stop event without waiting; used from signal handlers."""
        if self._stop is not None:
            self._stop.set()

    async def run_once(self, name: str) -> VerdictChange | None:
        """One probe cycle for ``name``: probe, observe, react. Returns the change, if any."""
        channel = self.channels[name]
        loop = asyncio.get_running_loop()
        result: ProbeResult = await loop.run_in_executor(
            self._executor, channel.prober.check, channel.target,
        )
        change = channel.tracker.observe(result.ok)
        state = channel.tracker.state
        logger.debug(
            "%s status count: health(%d) unhealth(%d): %s",
            name.upper(), state.consecutive_success, state.consecutive_failure, result.message,
        )
        if change is not None:
            self._react(change)
        return change

    def _react(self, change: VerdictChange) -> None:
        logger.warning(
            "%s verdict changed: %s -> %s",
            change.channel, change.previous.value, change.verdict.value,
        )
        self.store.update(change.channel, change.verdict)
        # Deliveries for one channel are chained so they arrive in verdict order.
        previous = self._last_delivery.get(change.channel)
        task = asyncio.create_task(
            self._deliver(change, previous),
            name=f"notify-{change.channel}-{change.verdict.value}",
        )
        self._last_delivery[change.channel] = task
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, change: VerdictChange, after: asyncio.Task[None] | None) -> None:
        if after is not None and not after.done():
            await asyncio.wait({after})
        try:
            await self.notifier.notify(change.channel, change.verdict)
        except Exception:
            logger.exception("Notifier error: %s -> %s", change.channel, change.verdict.value)

    async def _channel_loop(self, name: str, stop: asyncio.Event) -> None:
        """Persistent loop for one channel; exits when ``stop`` is set."""
        while not stop.is_set():
            try:
                await self.run_once(name)
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Channel loop error: %s", name)

            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

    def status(self) -> dict[str, dict[str, int | str]]:
        """Tracker counters per channel; safe to call from another thread."""
        return {name: c.tracker.to_dict() for name, c in self.channels.items()}
