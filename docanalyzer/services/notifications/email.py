from __future__ import annotations

import asyncio
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging
import smtplib
from typing import Protocol

from docanalyzer.core.config import Settings, get_settings
from docanalyzer.core.errors import NotificationDeliveryError


logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, *, to_address: str, subject: str, html_body: str) -> None:
        ...


@dataclass(frozen=True)
class OutboundEmail:
    to_address: str
    subject: str
    html_body: str


class SmtpEmailSender:
    """Deliver transactional email through an SMTP relay.

    smtplib is blocking, so each send runs in a worker thread. Any SMTP or
    socket failure is raised as NotificationDeliveryError.
    """

    def __init__(self, settings: Settings) -> None:
        self._host = settings.smtp_host or ""
        self._port = settings.smtp_port
        self._user = settings.smtp_user
        self._password = settings.smtp_password
        self._from = settings.smtp_from
        self._timeout = settings.smtp_timeout_s

    def _build_message(self, to_address: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._from
        msg["To"] = to_address
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _send_blocking(self, msg: MIMEMultipart) -> None:
        # Port 465 speaks implicit TLS; everything else upgrades with STARTTLS.
        if self._port == 465:
            server: smtplib.SMTP = smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout)
        else:
            server = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        try:
            if self._port != 465:
                server.starttls()
            if self._user and self._password:
                server.login(self._user, self._password)
            server.send_message(msg)
        finally:
            server.quit()

    async def send(self, *, to_address: str, subject: str, html_body: str) -> None:
        msg = self._build_message(to_address, subject, html_body)
        try:
            await asyncio.to_thread(self._send_blocking, msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("email_delivery_failed to=%s subject=%s", to_address, subject)
            raise NotificationDeliveryError() from exc
        logger.info("email_sent to=%s subject=%s", to_address, subject)


class LoggingEmailSender:
    # Development sender: log instead of delivering and keep an outbox for inspection.
    def __init__(self) -> None:
        self.outbox: list[OutboundEmail] = []

    async def send(self, *, to_address: str, subject: str, html_body: str) -> None:
        self.outbox.append(OutboundEmail(to_address=to_address, subject=subject, html_body=html_body))
        logger.info("email_logged to=%s subject=%s", to_address, subject)


_dev_sender: LoggingEmailSender | None = None


def get_email_sender() -> EmailSender:
    settings = get_settings()
    if settings.smtp_host:
        return SmtpEmailSender(settings)
    global _dev_sender
    if _dev_sender is None:
        _dev_sender = LoggingEmailSender()
    return _dev_sender
