"""
Notification dispatchers for activation and password-reset emails.

- SmtpDispatcher sends real mail through smtplib
- LogDispatcher only logs the links (development / no SMTP configured)

Both raise NotificationFailed on failure; the SessionManager decides what
happens to the token that was being delivered.
"""
from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

from identity.errors import NotificationFailed

logger = logging.getLogger(__name__)

ACTIVATION_SUBJECT = "Activate Your SocioFeed Account"
RESET_SUBJECT = "Reset Your SocioFeed Password"

ACTIVATION_BODY = """Welcome to SocioFeed, {username}!

Thank you for registering. Please activate your account by opening the link below:

{link}

This link will expire in {minutes} minutes. If you didn't register, please ignore this email.

Best regards,
The SocioFeed Team
"""

RESET_BODY = """Hello, {username}!

We received a request to reset your password. Open the link below to set a new password:

{link}

This link will expire in {minutes} minutes. If you didn't request a reset, please ignore this email.

Best regards,
The SocioFeed Team
"""


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if not email or "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class NotificationDispatcher(ABC):
    """Builds the links; subclasses implement deliver()."""

    def __init__(self, base_url: str, activation_minutes: int = 60, reset_minutes: int = 60):
        self.base_url = base_url.rstrip("/")
        self.activation_minutes = activation_minutes
        self.reset_minutes = reset_minutes

    def activation_link(self, token: str) -> str:
        return f"{self.base_url}/activate/{token}"

    def reset_link(self, token: str) -> str:
        return f"{self.base_url}/auth/reset-password/{token}"

    def send_activation(self, account, token: str) -> None:
        body = ACTIVATION_BODY.format(
            username=account.username,
            link=self.activation_link(token),
            minutes=self.activation_minutes,
        )
        self.deliver(account.email, ACTIVATION_SUBJECT, body)

    def send_password_reset(self, account, token: str) -> None:
        body = RESET_BODY.format(
            username=account.username,
            link=self.reset_link(token),
            minutes=self.reset_minutes,
        )
        self.deliver(account.email, RESET_SUBJECT, body)

    @abstractmethod
    def deliver(self, to_address: str, subject: str, body: str) -> None:
        """Send one message; raise NotificationFailed when it cannot be sent."""


class LogDispatcher(NotificationDispatcher):
    def deliver(self, to_address: str, subject: str, body: str) -> None:
        logger.info("Email to %s (not sent, no SMTP configured): %s\n%s",
                    redact_email(to_address), subject, body)


class SmtpDispatcher(NotificationDispatcher):
    def __init__(self, base_url: str, host: str, port: int = 587,
                 username: Optional[str] = None, password: Optional[str] = None,
                 from_address: Optional[str] = None, use_tls: bool = True,
                 timeout: int = 30, **kwargs):
        super().__init__(base_url, **kwargs)
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address or username
        self.use_tls = use_tls
        self.timeout = timeout

    def deliver(self, to_address: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to_address
        msg.set_content(body)

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send '%s' to %s: %s", subject, redact_email(to_address), exc)
            raise NotificationFailed() from exc
        logger.info("Sent '%s' to %s", subject, redact_email(to_address))


def build_dispatcher(config, base_url: str) -> NotificationDispatcher:
    """Pick SMTP when SMTP_HOST is configured, log-only otherwise."""
    minutes = {
        "activation_minutes": _minutes(config.get("ACTIVATION_TOKEN_EXPIRES")),
        "reset_minutes": _minutes(config.get("RESET_TOKEN_EXPIRES")),
    }
    host = config.get("SMTP_HOST")
    if not host:
        return LogDispatcher(base_url, **minutes)
    return SmtpDispatcher(
        base_url,
        host=host,
        port=int(config.get("SMTP_PORT", 587)),
        username=config.get("SMTP_USERNAME"),
        password=config.get("SMTP_PASSWORD"),
        from_address=config.get("MAIL_FROM"),
        use_tls=bool(config.get("SMTP_USE_TLS", True)),
        **minutes,
    )


def _minutes(ttl) -> int:
    if ttl is None:
        return 60
    return max(1, int(ttl.total_seconds() // 60))
