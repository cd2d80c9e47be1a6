# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Email delivery for the MLB error bot.

Sends each alert to every configured recipient over SMTP (STARTTLS plus
login).  One message is submitted per recipient, and a failure for one
recipient never stops the others.  "Sent" means accepted by the SMTP
server, nothing stronger; nothing is retried.

Usage::

    from config import load_config
    from notifier import EmailNotifier

    notifier = EmailNotifier(load_config())
    results = notifier.notify_all("MLB Error Alert", body)

    # Dry-run mode (log messages instead of sending them)
    notifier = EmailNotifier(config, dry_run=True)
"""

from __future__ import annotations

import logging
import smtplib
import ssl
import time
from collections import deque
from dataclasses import dataclass, field
from email.mime.text import MIMEText
from typing import Any, Callable

from config import BotConfig

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("notifier")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SMTP_TIMEOUT = 30  # seconds
TEST_SUBJECT = "Test Email from MLB Error Bot"
TEST_BODY = "If you got this, your mail setup WORKS!"
SEND_LOG_SIZE = 200


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class MailError(Exception):
    """Raised when the mail transport rejects or fails a message."""


class MailAuthError(MailError):
    """Raised when the SMTP server refuses the account credentials."""


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class SendResult:
    """Result of one delivery attempt.

    Attributes:
        success: Whether the transport accepted the message.
        recipients: Addresses the message was addressed to.
        subject: Subject line.
        timestamp: Unix timestamp of the attempt.
        error: Error message if the attempt failed, None otherwise.
        dry_run: True if the message was only logged.
    """
    success: bool
    recipients: tuple[str, ...]
    subject: str
    timestamp: float
    error: str | None = None
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict for logging."""
        return {
            "success": self.success,
            "recipients": list(self.recipients),
            "subject": self.subject,
            "timestamp": self.timestamp,
            "error": self.error,
            "dry_run": self.dry_run,
        }


@dataclass
class SendLog:
    """Running counts of every delivery attempt, plus the most recent ones.

    Only the last ``max_entries`` results are kept; the counters cover
    every attempt since startup.
    """
    max_entries: int = SEND_LOG_SIZE
    total_attempts: int = 0
    sent: int = 0
    failed: int = 0
    dry_run: int = 0
    entries: deque = field(init=False)

    def __post_init__(self) -> None:
        self.entries = deque(maxlen=self.max_entries)

    def add(self, result: SendResult) -> None:
        self.entries.append(result)
        self.total_attempts += 1
        if result.dry_run:
            self.dry_run += 1
        elif result.success:
            self.sent += 1
        else:
            self.failed += 1

    def to_dict(self, recent: int | None = None) -> dict[str, Any]:
        """Summary counts plus the last *recent* attempts (all kept if None)."""
        entries = list(self.entries)
        if recent is not None:
            entries = entries[-recent:] if recent > 0 else []
        return {
            "summary": {
                "total_attempts": self.total_attempts,
                "sent": self.sent,
                "failed": self.failed,
                "dry_run": self.dry_run,
            },
            "messages": [e.to_dict() for e in entries],
        }


# ---------------------------------------------------------------------------
# SMTP interaction
# ---------------------------------------------------------------------------

def build_message(
    sender: str,
    recipients: tuple[str, ...],
    subject: str,
    body: str,
) -> MIMEText:
    """Build a plain-text UTF-8 message."""
    message = MIMEText(body, "plain", "utf-8")
    message["Subject"] = subject
    message["From"] = sender
    message["To"] = ", ".join(recipients)
    return message


def _deliver_via_smtp(config: BotConfig, message: MIMEText) -> None:
    """Submit *message* to the configured SMTP server.

    Raises:
        MailAuthError: If the login is refused.
        MailError: On any other SMTP or socket failure.
    """
    context = ssl.create_default_context()
    try:
        with smtplib.SMTP(config.smtp_host, config.smtp_port,
                          timeout=SMTP_TIMEOUT) as server:
            server.starttls(context=context)
            server.login(config.email_user, config.email_pass)
            server.send_message(message)
    except smtplib.SMTPAuthenticationError as exc:
        raise MailAuthError(f"SMTP authentication failed: {exc}") from exc
    except (smtplib.SMTPException, OSError) as exc:
        raise MailError(f"SMTP delivery failed: {exc}") from exc


# ---------------------------------------------------------------------------
# EmailNotifier -- main interface
# ---------------------------------------------------------------------------

class EmailNotifier:
    """Sends alert emails to the configured recipients.

    Args:
        config: Mail account, server and recipient settings.
        dry_run: If True, log messages without sending them.
        send_log: Optional SendLog to record all attempts.
        deliver_fn: Optional override for the transport (for testing).
            Signature: ``deliver_fn(config, message) -> None``, raising
            on failure.
    """

    def __init__(
        self,
        config: BotConfig,
        dry_run: bool = False,
        send_log: SendLog | None = None,
        deliver_fn: Callable[[BotConfig, MIMEText], None] | None = None,
    ):
        self.config = config
        self.dry_run = dry_run
        self.send_log = send_log or SendLog()
        self._deliver_fn = deliver_fn or _deliver_via_smtp

    @property
    def recipients(self) -> tuple[str, ...]:
        return self.config.recipients

    def send(self, recipient: str, subject: str, body: str) -> SendResult:
        """Send one message to one recipient.

        Never raises for transport failures; they are logged and reported
        through the returned :class:`SendResult`.
        """
        return self._submit((recipient,), subject, body)

    def notify_all(self, subject: str, body: str) -> list[SendResult]:
        """Send the message to every recipient, one attempt each."""
        return [self.send(recipient, subject, body)
                for recipient in self.recipients]

    def send_test_email(self) -> SendResult:
        """Send the startup self-test, one message addressed to everyone."""
        return self._submit(self.recipients, TEST_SUBJECT, TEST_BODY)

    def _submit(
        self,
        recipients: tuple[str, ...],
        subject: str,
        body: str,
    ) -> SendResult:
        timestamp = time.time()
        to = ", ".join(recipients)

        if self.dry_run:
            logger.info("[DRY-RUN] Would email %s: %s\n%s", to, subject, body)
            result = SendResult(
                success=True,
                recipients=recipients,
                subject=subject,
                timestamp=timestamp,
                dry_run=True,
            )
            self.send_log.add(result)
            return result

        message = build_message(self.config.email_user, recipients, subject, body)
        error: str | None = None
        try:
            self._deliver_fn(self.config, message)
        except MailAuthError as exc:
            error = str(exc)
            logger.error("Mail auth error sending to %s: %s", to, exc)
        except MailError as exc:
            error = str(exc)
            logger.error("Failed to email %s: %s", to, exc)
        except Exception as exc:
            error = f"Unexpected error: {exc}"
            logger.exception("Unexpected error emailing %s", to)

        result = SendResult(
            success=error is None,
            recipients=recipients,
            subject=subject,
            timestamp=timestamp,
            error=error,
        )
        if result.success:
            logger.info("Email sent to %s", to)
        self.send_log.add(result)
        return result
