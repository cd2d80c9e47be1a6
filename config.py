# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Centralized configuration for environment variables.

Read once at startup.  Mail credentials and recipients are required; the
bot must not start polling without them.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass

EMAIL_USER_ENV = "EMAIL_USER"
EMAIL_PASS_ENV = "EMAIL_PASS"
EMAIL_TO_ENV = "EMAIL_TO"
PORT_ENV = "PORT"
SMTP_HOST_ENV = "SMTP_HOST"
SMTP_PORT_ENV = "SMTP_PORT"
POLL_INTERVAL_ENV = "POLL_INTERVAL"
LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_PORT = 3000
DEFAULT_SMTP_HOST = "smtp.gmail.com"
DEFAULT_SMTP_PORT = 587
DEFAULT_POLL_INTERVAL = 5.0  # seconds
DEFAULT_LOG_LEVEL = "INFO"


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("Invalid configuration: " + "; ".join(problems))


def parse_recipients(raw: str) -> tuple[str, ...]:
    """Split a comma-separated address list, trimming and dropping blanks."""
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class BotConfig:
    """Process-wide settings, immutable once loaded.

    Attributes:
        email_user: Mail account used to log in and as the sender.
        email_pass: Password (or app password) for that account.
        recipients: Ordered recipient addresses.
        port: Listen port for the liveness endpoint.
        smtp_host: SMTP server host.
        smtp_port: SMTP server port (STARTTLS).
        poll_interval: Seconds between poll ticks.
        log_level: Root logging level name.
    """
    email_user: str = ""
    email_pass: str = ""
    recipients: tuple[str, ...] = ()
    port: int = DEFAULT_PORT
    smtp_host: str = DEFAULT_SMTP_HOST
    smtp_port: int = DEFAULT_SMTP_PORT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls) -> BotConfig:
        """Create a BotConfig from environment variables.

        Raises:
            ConfigError: If a numeric variable cannot be parsed.
        """
        problems: list[str] = []

        def _number(name: str, default, kind):
            raw = os.environ.get(name, "").strip()
            if not raw:
                return default
            try:
                return kind(raw)
            except ValueError:
                problems.append(f"{name} must be a number, got {raw!r}")
                return default

        port = _number(PORT_ENV, DEFAULT_PORT, int)
        smtp_port = _number(SMTP_PORT_ENV, DEFAULT_SMTP_PORT, int)
        poll_interval = _number(POLL_INTERVAL_ENV, DEFAULT_POLL_INTERVAL, float)
        if problems:
            raise ConfigError(problems)

        return cls(
            email_user=os.environ.get(EMAIL_USER_ENV, "").strip(),
            email_pass=os.environ.get(EMAIL_PASS_ENV, ""),
            recipients=parse_recipients(os.environ.get(EMAIL_TO_ENV, "")),
            port=port,
            smtp_host=os.environ.get(SMTP_HOST_ENV, "").strip() or DEFAULT_SMTP_HOST,
            smtp_port=smtp_port,
            poll_interval=poll_interval,
            log_level=(os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
                       or DEFAULT_LOG_LEVEL),
        )

    def validate(self) -> list[str]:
        """Return a list of configuration problems (empty when valid)."""
        problems = []
        if not self.email_user:
            problems.append(f"{EMAIL_USER_ENV} is not set")
        if not self.email_pass:
            problems.append(f"{EMAIL_PASS_ENV} is not set")
        if not self.recipients:
            problems.append(f"{EMAIL_TO_ENV} has no recipient addresses")
        if self.poll_interval <= 0:
            problems.append(f"{POLL_INTERVAL_ENV} must be positive")
        if not 0 < self.port < 65536:
            problems.append(f"{PORT_ENV} must be a valid TCP port")
        return problems


def load_config() -> BotConfig:
    """Load and validate the configuration.

    Raises:
        ConfigError: Listing every problem found.
    """
    config = BotConfig.from_env()
    problems = config.validate()
    if problems:
        raise ConfigError(problems)
    return config


def require_config() -> BotConfig:
    """Return the validated configuration or exit with an error."""
    try:
        return load_config()
    except ConfigError as exc:
        for problem in exc.problems:
            print(f"Error: {problem}", file=sys.stderr)
        sys.exit(1)
