"""
SMTP e-mail channel.

Sending never raises: an unconfigured transport or any SMTP error is logged and
reported as ``False`` so the queue can retry.
"""

from __future__ import annotations

import logging
import re
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from biabook.core.config import Settings
from biabook.utils.redaction import log_email

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    use_tls: bool
    from_email: str

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["SmtpConfig"]:
        if not settings.email_configured:
            return None
        return cls(
            host=settings.email_server_host,
            port=int(settings.email_server_port),
            user=settings.email_server_user,
            password=settings.email_server_password,
            use_tls=settings.email_use_tls,
            from_email=settings.email_from,
        )


def html_to_text(html: str) -> str:
    return _TAG_RE.sub("", html or "")


def build_message(*, from_email: str, to: str, subject: str, html: str, text: Optional[str] = None) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = from_email
    msg["To"] = to
    msg["Subject"] = subject
    msg.set_content(text if text is not None else html_to_text(html))
    msg.add_alternative(html, subtype="html")
    return msg


class EmailService:
    def __init__(self, smtp: Optional[SmtpConfig]):
        self._smtp = smtp
        if smtp is None:
            logger.warning("Email configuration is missing. Emails will not be sent.")

    @property
    def is_configured(self) -> bool:
        return self._smtp is not None

    def send_email(self, *, to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
        if self._smtp is None:
            logger.warning("Email transport not configured; email not sent: to=%s subject=%s", log_email(to), subject)
            return False
        if not to:
            logger.warning("Email recipient missing; email not sent: subject=%s", subject)
            return False

        msg = build_message(from_email=self._smtp.from_email, to=to, subject=subject, html=html, text=text)
        try:
            self._deliver(msg)
        except Exception:
            logger.exception("Failed to send email: to=%s subject=%s", log_email(to), subject)
            return False

        logger.info("Email sent: to=%s subject=%s", log_email(to), subject)
        return True

    def _deliver(self, msg: EmailMessage) -> None:
        smtp = self._smtp
        context = ssl.create_default_context()

        # Port 465 uses implicit SSL (SMTP_SSL), port 587 uses STARTTLS
        if smtp.port == 465:
            server = smtplib.SMTP_SSL(smtp.host, smtp.port, timeout=20, context=context)
        else:
            server = smtplib.SMTP(smtp.host, smtp.port, timeout=20)
            if smtp.use_tls:
                server.starttls(context=context)
        try:
            if smtp.user and smtp.password:
                server.login(smtp.user, smtp.password)
            server.send_message(msg)
        finally:
            try:
                server.quit()
            except smtplib.SMTPException:
                # Connection may already be closed by the server.
                pass
