"""E-mail notifier: one message per verdict change, over SMTP."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import TYPE_CHECKING

from sre_checker.health.tracker import Verdict

if TYPE_CHECKING:
    from sre_checker.config import Settings

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Sends status e-mails; the blocking SMTP exchange runs in a worker thread."""

    def __init__(
        self,
        to_addr: str,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_user: str = "",
        smtp_password: str = "",
        from_addr: str = "sre-checker@localhost",
        service_name: str = "Tonto",
        timeout: float = 10,
    ) -> None:
        self.to_addr = to_addr
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_addr = from_addr
        self.service_name = service_name
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> EmailNotifier:
        return cls(
            to_addr=settings.notify_email,
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            from_addr=settings.smtp_from,
            service_name=settings.service_name,
        )

    def build_message(self, channel: str, verdict: Verdict) -> EmailMessage:
        status = verdict.value.upper()
        msg = EmailMessage()
        msg["From"] = self.from_addr
        msg["To"] = self.to_addr
        msg["Subject"] = f"{self.service_name} {channel.upper()} is {status}"
        msg.set_content(
            f"This is a status message saying that {self.service_name} "
            f"{channel.upper()} is {status}\n"
        )
        return msg

    def send(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
            if self.smtp_user:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)

    async def notify(self, channel: str, verdict: Verdict) -> None:
        msg = self.build_message(channel, verdict)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.send, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("E-mail notification failed (%s -> %s): %s", channel, verdict.value, exc)
            return
        logger.info("E-mail sent: %s", msg["Subject"])
