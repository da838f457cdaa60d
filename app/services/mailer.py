import logging
import smtplib
from email.message import EmailMessage
from typing import Callable, Iterable, Optional

from app.core import config

logger = logging.getLogger(__name__)


class SMTPMailer:
    """Plain SMTP sender. ``token_provider`` switches authentication to XOAUTH2."""

    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: str = config.SMTP_USERNAME,
        password: str = config.SMTP_PASSWORD,
        use_tls: bool = config.SMTP_USE_TLS,
        sender: str = config.SMTP_FROM,
        token_provider: Optional[Callable[[], str]] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.token_provider = token_provider

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def _login(self, smtp: smtplib.SMTP) -> None:
        if self.token_provider is not None:
            token = self.token_provider()
            auth_string = f"user={self.username}\x01auth=Bearer {token}\x01\x01"
            smtp.auth("XOAUTH2", lambda challenge=None: auth_string)
        elif self.username:
            smtp.login(self.username, self.password)

    def send(self, recipients: Iterable[str], subject: str, body: str) -> int:
        """Send one message per recipient, return how many went out."""
        recipients = [r for r in recipients if r]
        if not self.enabled or not recipients:
            logger.info(f"Mail disabled or no recipients, skipping '{subject}'")
            return 0

        sent = 0
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            self._login(smtp)
            for recipient in recipients:
                message = EmailMessage()
                message["From"] = self.sender
                message["To"] = recipient
                message["Subject"] = subject
                message.set_content(body)
                try:
                    smtp.send_message(message)
                    sent += 1
                except smtplib.SMTPException as exc:
                    logger.warning(f"⚠️ Could not mail {recipient}: {exc}")
        logger.info(f"📧 '{subject}' sent to {sent}/{len(recipients)} recipients")
        return sent
