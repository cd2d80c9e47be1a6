# /// script
# requires-python = ">=3.12"
# dependencies = ["flask>=3.0", "pydantic>=2.0"]
# ///
"""Web entry point for the MLB error bot.

Serves a liveness endpoint so the hosting platform keeps the process
awake, and runs the poll loop on a background thread.

Usage:
    uv run app.py
    uv run app.py --dry-run
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify

from config import require_config
from error_feed import BotState, PollScheduler, configure_logging, send_startup_test
from notifier import EmailNotifier

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

ALIVE_MESSAGE = "MLB Error Bot is alive"
HEALTH_RECENT = 5  # recent errors and mail attempts shown by /health

logger = logging.getLogger("app")

app = Flask(__name__)


def _scheduler() -> PollScheduler | None:
    return app.config.get("SCHEDULER")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.route("/")
def index():
    return ALIVE_MESSAGE


@app.route("/health")
def health():
    """Poll-loop status for platform health checks."""
    scheduler = _scheduler()
    if scheduler is None:
        return jsonify({"status": "ok", "polling": False})

    state = scheduler.state
    last = None
    if state.last_cycle_at is not None:
        last = datetime.fromtimestamp(state.last_cycle_at, tz=timezone.utc).isoformat()
    return jsonify({
        "status": "ok",
        "polling": scheduler.is_running,
        "scanning": scheduler.is_scanning,
        "cycles": state.total_cycles,
        "alerts_detected": state.alerts_detected,
        "alerts_sent": state.alerts_sent,
        "seen_plays": len(state.registry),
        "skipped_ticks": state.skipped_ticks,
        "last_cycle_at": last,
        "recent_errors": list(state.error_log)[-HEALTH_RECENT:],
        "mail": state.notifier.send_log.to_dict(recent=HEALTH_RECENT),
    })


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="MLB error bot web service.")
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Log alerts without emailing them",
    )
    args = parser.parse_args(argv)

    config = require_config()
    configure_logging(config.log_level)

    notifier = EmailNotifier(config, dry_run=args.dry_run)
    send_startup_test(notifier)

    scheduler = PollScheduler(BotState(notifier=notifier), config.poll_interval)
    app.config["SCHEDULER"] = scheduler
    scheduler.start()

    logger.info("Liveness server listening on port %d", config.port)
    app.run(host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
