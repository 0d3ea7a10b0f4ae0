"""Wiring: turns validated settings into a running scheduler."""

from __future__ import annotations

import asyncio
import logging
import signal

from sre_checker.config import Settings
from sre_checker.health.probes import HttpProber, Prober, Target, TcpProber
from sre_checker.health.scheduler import Channel, HealthScheduler
from sre_checker.health.store import StatusStore
from sre_checker.notifications import Notifier, build_notifier

logger = logging.getLogger(__name__)


def build_channels(settings: Settings) -> list[Channel]:
    """The TCP and HTTP channels, sharing one set of thresholds."""
    thresholds = settings.thresholds
    probes: list[tuple[Prober, Target]] = [
        (
            TcpProber(settings.auth_token, settings.timeout, settings.expected_marker),
            Target(settings.tcp_host, settings.tcp_port),
        ),
        (
            HttpProber(settings.auth_token, settings.timeout, settings.expected_marker),
            Target(settings.http_host, settings.http_port),
        ),
    ]
    return [Channel.create(prober, target, thresholds) for prober, target in probes]


def build_scheduler(
    settings: Settings,
    notifier: Notifier | None = None,
    channels: list[Channel] | None = None,
) -> HealthScheduler:
    channels = channels if channels is not None else build_channels(settings)
    store = StatusStore(c.name for c in channels)
    return HealthScheduler(
        channels,
        store,
        notifier if notifier is not None else build_notifier(settings),
        interval=settings.check_interval,
    )


async def run_monitor(scheduler: HealthScheduler) -> None:
    """Poll until SIGINT/SIGTERM, then shut every channel loop down."""
    await scheduler.start()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.request_stop)
        except (NotImplementedError, RuntimeError):
            logger.debug("Signal handlers unavailable for %s", sig.name)
    try:
        await scheduler.wait_stopped()
        logger.info("Shutdown requested")
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass
        await scheduler.stop()
