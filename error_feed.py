# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Poll loop for the MLB error bot.

On a fixed period, fetches today's schedule, scans every game's
play-by-play for new error plays, and emails an alert for each one.  All
fetches and sends of a cycle run sequentially on one thread.

Usage::

    # Poll every 5 seconds (requires EMAIL_USER, EMAIL_PASS, EMAIL_TO)
    uv run error_feed.py

    # Run a single cycle and exit
    uv run error_feed.py --once

    # Dry-run mode (log alerts without emailing them)
    uv run error_feed.py --dry-run --interval 10
"""

from __future__ import annotations

import datetime
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from alert_output import ALERT_SUBJECT, format_alert_body
from config import DEFAULT_POLL_INTERVAL
from feeds.mlb_api import (
    MLBApiError,
    find_todays_game_pks,
    get_game_data,
    get_game_plays,
)
from models import ErrorAlert
from notifier import EmailNotifier
from play_scanner import SeenPlayRegistry, extract_game_teams, scan_plays

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_POLL_INTERVAL = 1.0
MAX_POLL_INTERVAL = 300.0
ERROR_LOG_SIZE = 200  # most recent errors kept for /health

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("error_feed")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass
class BotState:
    """Everything the poll loop reads and mutates across cycles.

    Passed explicitly into every cycle so tests can build isolated
    instances.  The fetch functions default to the live MLB feeds.
    """
    notifier: EmailNotifier
    registry: SeenPlayRegistry = field(default_factory=SeenPlayRegistry)
    fetch_schedule: Callable[[datetime.date], list[int]] = find_todays_game_pks
    fetch_plays: Callable[[int], list[dict[str, Any]]] = get_game_plays
    fetch_game_data: Callable[[int], dict[str, Any] | None] = get_game_data
    total_cycles: int = 0
    alerts_detected: int = 0
    alerts_sent: int = 0
    skipped_ticks: int = 0
    last_cycle_at: float | None = None
    error_log: deque = field(
        default_factory=lambda: deque(maxlen=ERROR_LOG_SIZE))

    def record_error(self, error_type: str, error: str,
                     game_pk: int | None = None) -> None:
        self.error_log.append({
            "timestamp": time.time(),
            "error_type": error_type,
            "error": error,
            "game_pk": game_pk,
        })


@dataclass
class GameScanResult:
    """Outcome of scanning one game in one cycle."""
    game_pk: int
    plays_checked: int = 0
    alerts: list[ErrorAlert] = field(default_factory=list)


@dataclass
class CycleResult:
    """Summary of one full pass over today's games.

    Attributes:
        games_found: Games on today's schedule.
        games_scanned: Games whose feeds were fetched successfully.
        plays_checked: Plays looked at across all games.
        alerts: Newly detected error plays, in detection order.
        failed_games: gamePks skipped this cycle because of an error.
        schedule_error: Error message if the schedule itself failed.
        elapsed: Wall-clock seconds the cycle took.
    """
    games_found: int = 0
    games_scanned: int = 0
    plays_checked: int = 0
    alerts: list[ErrorAlert] = field(default_factory=list)
    failed_games: list[int] = field(default_factory=list)
    schedule_error: str | None = None
    elapsed: float = 0.0


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def dispatch_alert(alert: ErrorAlert, notifier: EmailNotifier) -> int:
    """Email one alert to every recipient; return how many were accepted."""
    body = format_alert_body(alert)
    logger.info("Sending alert for %s:\n%s", alert.play_id, body)
    results = notifier.notify_all(ALERT_SUBJECT, body)
    return sum(1 for r in results if r.success)


def scan_game(game_pk: int, state: BotState) -> GameScanResult:
    """Fetch one game's feeds, detect new error plays, and alert on them.

    Raises:
        MLBApiError: If either feed cannot be fetched.  Nothing has been
            registered for the game at that point, so it is simply retried
            next cycle.
    """
    plays = state.fetch_plays(game_pk)
    game_data = state.fetch_game_data(game_pk)
    logger.debug("Checking gamePk %s with %d plays", game_pk, len(plays))

    alerts = scan_plays(
        game_pk, plays, state.registry, extract_game_teams(game_data),
    )
    for alert in alerts:
        state.alerts_detected += 1
        if dispatch_alert(alert, state.notifier) > 0:
            state.alerts_sent += 1

    return GameScanResult(game_pk=game_pk, plays_checked=len(plays),
                          alerts=alerts)


def run_cycle(
    state: BotState,
    today: datetime.date | None = None,
) -> CycleResult:
    """Run one full fetch -> scan -> notify pass over today's games.

    A failure in one game is logged and that game is skipped; the other
    games of the cycle are still scanned.

    Args:
        state: Bot state carried across cycles (updated in place).
        today: Override for the current date (for testing).

    Returns:
        CycleResult describing what happened.
    """
    started = time.monotonic()
    day = today or datetime.date.today()
    result = CycleResult()

    state.registry.roll_over(day)

    try:
        game_pks = state.fetch_schedule(day)
    except Exception as exc:
        result.schedule_error = str(exc)
        logger.warning("Failed to fetch schedule for %s: %s",
                       day.isoformat(), exc)
        state.record_error("schedule_fetch_error", str(exc))
        game_pks = []

    result.games_found = len(game_pks)
    logger.debug("Found %d games", len(game_pks))

    for game_pk in game_pks:
        try:
            scan = scan_game(game_pk, state)
        except MLBApiError as exc:
            result.failed_games.append(game_pk)
            logger.warning("Error checking game %s: %s", game_pk, exc)
            state.record_error("feed_fetch_error", str(exc), game_pk)
            continue
        except Exception as exc:
            result.failed_games.append(game_pk)
            logger.exception("Unexpected error checking game %s", game_pk)
            state.record_error("scan_error", str(exc), game_pk)
            continue

        result.games_scanned += 1
        result.plays_checked += scan.plays_checked
        result.alerts.extend(scan.alerts)

    result.elapsed = time.monotonic() - started
    state.total_cycles += 1
    state.last_cycle_at = time.time()

    logger.info(
        "Cycle %d: %d games, %d plays checked, %d new alerts, "
        "%d failed games (%.2fs)",
        state.total_cycles, result.games_found, result.plays_checked,
        len(result.alerts), len(result.failed_games), result.elapsed,
    )
    return result


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------

def clamp_interval(interval: float) -> float:
    return max(MIN_POLL_INTERVAL, min(MAX_POLL_INTERVAL, interval))


class PollScheduler:
    """Fixed-period timer that drives :func:`run_cycle` on a background thread.

    Ticks come due at ``start + n * interval`` (first tick one interval
    after :meth:`start`).  The scheduler is either Idle or Scanning; a tick
    that comes due while a scan is still running is skipped rather than
    queued or run concurrently.

    Args:
        state: Bot state handed to every cycle.
        interval: Seconds between ticks.
    """

    def __init__(self, state: BotState,
                 interval: float = DEFAULT_POLL_INTERVAL) -> None:
        self.state = state
        self.interval = clamp_interval(interval)
        self._scan_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_scanning(self) -> bool:
        return self._scan_lock.locked()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> CycleResult | None:
        """Run one cycle now, unless a scan is already in progress.

        Returns:
            The CycleResult, or None if the tick was skipped or the cycle
            raised.
        """
        if not self._scan_lock.acquire(blocking=False):
            self.state.skipped_ticks += 1
            logger.warning("Previous scan still running; skipping tick")
            return None
        try:
            return run_cycle(self.state)
        except Exception:
            logger.exception("Poll cycle failed")
            return None
        finally:
            self._scan_lock.release()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="poll-loop", daemon=True,
        )
        self._thread.start()
        logger.info("Polling every %.1fs", self.interval)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def wait(self) -> None:
        """Block until the poll thread exits (Ctrl-C friendly)."""
        while self.is_running:
            self._thread.join(timeout=1.0)

    def _run(self) -> None:
        started = time.monotonic()
        ticks = 0
        while True:
            ticks += 1
            due = started + ticks * self.interval
            if self._stop.wait(max(0.0, due - time.monotonic())):
                break
            self.run_once()

            missed = int((time.monotonic() - due) // self.interval)
            if missed > 0:
                ticks += missed
                self.state.skipped_ticks += missed
                logger.warning("Scan overran %d tick(s); skipping them", missed)


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------

def send_startup_test(notifier: EmailNotifier) -> bool:
    """Send the startup self-test email; failures are logged, not raised."""
    result = notifier.send_test_email()
    if result.success:
        logger.info("Test email sent")
    else:
        logger.error("Test email failed: %s", result.error)
    return result.success


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import argparse

    from config import require_config

    parser = argparse.ArgumentParser(
        description="Poll today's MLB games and email alerts for error plays."
    )
    parser.add_argument(
        "--interval", type=float, default=None,
        help=f"Poll interval in seconds (default POLL_INTERVAL or "
             f"{DEFAULT_POLL_INTERVAL})",
    )
    parser.add_argument(
        "--once", action="store_true",
        help="Run a single cycle and exit",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Log alerts without emailing them",
    )

    args = parser.parse_args()

    config = require_config()
    configure_logging(config.log_level)

    notifier = EmailNotifier(config, dry_run=args.dry_run)
    state = BotState(notifier=notifier)

    send_startup_test(notifier)

    if args.once:
        run_cycle(state)
    else:
        scheduler = PollScheduler(state, args.interval or config.poll_interval)
        scheduler.start()
        try:
            scheduler.wait()
        except KeyboardInterrupt:
            logger.info("Stopping poll loop")
            scheduler.stop()
