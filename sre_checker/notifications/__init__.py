"""Verdict-change notifications: a single sink per process.

Sinks:
- e-mail (SMTP) when ``notify_email`` is configured
- Slack-compatible webhook when ``webhook_url`` is configured
- log-only otherwise

Delivery is fire-and-forget from the driver's perspective: every sink logs
its own failures and never raises out of ``notify``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Protocol

import httpx

from sre_checker.health.tracker import Verdict

from .smtp import EmailNotifier

if TYPE_CHECKING:
    from sre_checker.config import Settings

logger = logging.getLogger(__name__)


class NotifyLevel(str, Enum):
    CRITICAL = "critical"
    RECOVERY = "recovery"


_EMOJI = {
    NotifyLevel.CRITICAL: "🔴",
    NotifyLevel.RECOVERY: "✅",
}


def level_for(verdict: Verdict) -> NotifyLevel:
    return NotifyLevel.RECOVERY if verdict == Verdict.UP else NotifyLevel.CRITICAL


class Notifier(Protocol):
    async def notify(self, channel: str, verdict: Verdict) -> None: ...


class LogNotifier:
    """Fallback sink: records the transition in the log only."""

    def __init__(self, service_name: str = "Tonto") -> None:
        self.service_name = service_name

    async def notify(self, channel: str, verdict: Verdict) -> None:
        log = logger.info if verdict == Verdict.UP else logger.warning
        log("%s %s is %s", self.service_name, channel.upper(), verdict.value.upper())


class WebhookNotifier:
    """POSTs a Slack-compatible message to an incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        service_name: str = "Tonto",
        timeout: float = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.service_name = service_name
        self.timeout = timeout
        self._transport = transport

    def format_text(self, channel: str, verdict: Verdict) -> str:
        level = level_for(verdict)
        return (
            f"{_EMOJI[level]} *Health Alert*\n"
            f"{self.service_name} {channel.upper()} is *{verdict.value.upper()}*\n"
        )

    async def notify(self, channel: str, verdict: Verdict) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.webhook_url,
                    json={"text": self.format_text(channel, verdict), "mrkdwn": True},
                )
                if resp.status_code != 200:
                    logger.warning("Webhook returned %d: %s", resp.status_code, resp.text[:200])
                    return
            logger.info("Webhook notification sent: %s %s", channel, verdict.value)
        except Exception as exc:
            logger.warning("Webhook notification failed: %s", exc)


def build_notifier(settings: Settings) -> Notifier:
    """Pick the single configured sink: e-mail, then webhook, then log."""
    if settings.notify_email:
        logger.info("Notifications: e-mail to %s", settings.notify_email)
        return EmailNotifier.from_settings(settings)
    if settings.webhook_url:
        logger.info("Notifications: webhook")
        return WebhookNotifier(settings.webhook_url, service_name=settings.service_name)
    logger.info("Notifications: log only (no notify_email / webhook_url)")
    return LogNotifier(service_name=settings.service_name)
