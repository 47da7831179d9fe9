"""SMTP email notifications."""

import smtplib
from email.message import EmailMessage
from typing import Optional

from .base import Notifier, NotificationEvent

SMTPS_PORT = 465


class EmailNotifier(Notifier):
    """Sends each event as a plain-text email."""

    name = "email"

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        use_ssl: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None,
        enabled: bool = True,
        timeout_seconds: float = 30.0
    ):
        super().__init__()
        self.host = host
        self.port = port
        self.use_ssl = use_ssl
        self.username = username
        self.password = password
        self.from_address = from_address
        self.to_address = to_address
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_address and self.to_address)

    def build_message(self, event: NotificationEvent) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = event.subject
        message["From"] = self.from_address
        message["To"] = self.to_address
        message.set_content(event.body)
        return message

    def notify(self, event: NotificationEvent) -> bool:
        if not self.enabled:
            return False

        if not self.configured:
            self.logger.debug("Email notifier missing host or addresses, skipping")
            return False

        message = self.build_message(event)

        # Port 465 speaks TLS from the first byte; other ports upgrade with STARTTLS
        if self.use_ssl and self.port == SMTPS_PORT:
            client = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds)
        else:
            client = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)

        with client:
            if self.use_ssl and self.port != SMTPS_PORT:
                client.starttls()
            if self.username:
                client.login(self.username, self.password or "")
            client.send_message(message)

        self.logger.debug("Email notification sent", to=self.to_address, subject=event.subject)
        return True
