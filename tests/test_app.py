# /// script
# requires-python = ">=3.12"
# dependencies = ["flask>=3.0", "pytest>=7.0", "pydantic>=2.0"]
# ///
"""Tests for the web entry point Flask app.

Validates:
  1. The root route always answers 200 with the liveness text
  2. /health reports poll-loop status
  3. main() refuses to start without mail configuration
  4. main() sends the self-test, starts polling, then serves
"""

import datetime
import sys
from pathlib import Path
from unittest.mock import patch

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

import app as app_module
from app import ALIVE_MESSAGE, app, main
from config import BotConfig
from error_feed import BotState, PollScheduler
from notifier import TEST_SUBJECT, EmailNotifier
from play_scanner import SeenPlayRegistry


@pytest.fixture
def client():
    app.config["TESTING"] = True
    app.config.pop("SCHEDULER", None)
    with app.test_client() as c:
        yield c
    app.config.pop("SCHEDULER", None)


@pytest.fixture
def scheduler():
    config = BotConfig(email_user="bot@example.com", email_pass="pw",
                       recipients=("a@example.com",))
    state = BotState(
        notifier=EmailNotifier(config, dry_run=True),
        registry=SeenPlayRegistry(day=datetime.date(2026, 7, 4)),
    )
    return PollScheduler(state, interval=5)


class TestRoutes:
    """Tests for the liveness and health routes."""

    def test_root_is_alive(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.get_data(as_text=True) == ALIVE_MESSAGE

    def test_health_without_scheduler(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "polling": False}

    def test_health_with_scheduler(self, client, scheduler):
        scheduler.state.registry.claim("7001-T1")
        scheduler.state.total_cycles = 3
        scheduler.state.alerts_detected = 2
        scheduler.state.alerts_sent = 1
        scheduler.state.last_cycle_at = 0.0
        scheduler.state.record_error("feed_fetch_error", "boom", 7001)
        scheduler.state.notifier.send_test_email()
        app.config["SCHEDULER"] = scheduler

        data = client.get("/health").get_json()

        assert data["status"] == "ok"
        assert data["polling"] is False
        assert data["scanning"] is False
        assert data["cycles"] == 3
        assert data["alerts_detected"] == 2
        assert data["alerts_sent"] == 1
        assert data["seen_plays"] == 1
        assert data["last_cycle_at"] == "1970-01-01T00:00:00+00:00"
        assert [e["game_pk"] for e in data["recent_errors"]] == [7001]
        assert data["mail"]["summary"]["dry_run"] == 1
        assert data["mail"]["messages"][0]["subject"] == TEST_SUBJECT


class TestMain:
    """Tests for the main() entry point."""

    def test_missing_config_is_fatal(self, monkeypatch):
        for name in ("EMAIL_USER", "EMAIL_PASS", "EMAIL_TO"):
            monkeypatch.delenv(name, raising=False)
        with patch.object(app_module.app, "run") as mock_run:
            with pytest.raises(SystemExit):
                main([])
        mock_run.assert_not_called()

    def test_starts_polling_and_serves(self, monkeypatch):
        monkeypatch.setenv("EMAIL_USER", "bot@example.com")
        monkeypatch.setenv("EMAIL_PASS", "pw")
        monkeypatch.setenv("EMAIL_TO", "a@example.com")
        monkeypatch.setenv("PORT", "8123")

        with patch.object(app_module, "send_startup_test") as mock_test, \
                patch.object(PollScheduler, "start") as mock_start, \
                patch.object(app_module.app, "run") as mock_run:
            main(["--dry-run"])

        mock_test.assert_called_once()
        assert mock_test.call_args[0][0].dry_run is True
        mock_start.assert_called_once()
        mock_run.assert_called_once_with(host="0.0.0.0", port=8123)
        assert isinstance(app.config["SCHEDULER"], PollScheduler)
        app.config.pop("SCHEDULER", None)
