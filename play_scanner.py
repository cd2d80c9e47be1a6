# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Error-play detection and de-duplication.

Every poll cycle re-fetches the full play-by-play of each game, so the same
plays are presented over and over.  This module filters them down to plays
classified as errors that have not been alerted on yet:

- :func:`play_identifier` derives the stable key ``"{gamePk}-{startTime}"``
- :func:`is_error_play` classifies a play from its result fields
- :class:`SeenPlayRegistry` remembers which identifiers were already
  alerted on, for the current day
- :func:`scan_plays` ties the three together and builds the
  :class:`~models.ErrorAlert` payloads

Usage::

    registry = SeenPlayRegistry()
    alerts = scan_plays(7001, plays, registry, teams)
"""

from __future__ import annotations

import datetime
import logging
import threading
from typing import Any

from alert_output import build_watch_link
from models import NO_OUTS, NOT_AVAILABLE, UNKNOWN, ErrorAlert, GameTeams

logger = logging.getLogger("play_scanner")


# ---------------------------------------------------------------------------
# Field extraction helpers
# ---------------------------------------------------------------------------

def _dig(data: Any, *keys: str) -> Any:
    """Walk nested dicts, returning None as soon as a level is missing."""
    for key in keys:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _display(value: Any, fallback: str) -> str:
    """Render a feed value for display, using *fallback* for falsy values."""
    if not value:
        return fallback
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def extract_game_teams(game_data: dict[str, Any] | None) -> GameTeams:
    """Pull the home/away display names out of a ``gameData`` block."""
    home = _dig(game_data, "teams", "home", "name")
    away = _dig(game_data, "teams", "away", "name")
    return GameTeams(
        home=home if isinstance(home, str) else None,
        away=away if isinstance(away, str) else None,
    )


# ---------------------------------------------------------------------------
# Identification and classification
# ---------------------------------------------------------------------------

def play_identifier(game_pk: int, play: dict[str, Any]) -> str:
    """Return the seen-play identifier for a play.

    A play without a ``startTime`` gets the degenerate identifier
    ``"{gamePk}-"``, which stays stable as long as the feed keeps omitting it.
    """
    start_time = play.get("startTime")
    return f"{game_pk}-{start_time if start_time is not None else ''}"


def is_error_play(play: dict[str, Any]) -> bool:
    """Return True if the play's outcome is an error.

    The lower-cased ``result.event`` text must contain "error".  When the
    feed also carries ``result.eventType``, it must name an error too
    (``field_error``, ``pickoff_error_1b`` and so on), which keeps wording
    such as "errorless" out.
    """
    event = _dig(play, "result", "event")
    if not isinstance(event, str) or "error" not in event.lower():
        return False

    event_type = _dig(play, "result", "eventType")
    if isinstance(event_type, str) and event_type:
        return "error" in event_type.lower()
    return True


def build_alert(
    game_pk: int,
    play: dict[str, Any],
    watch_link: str,
) -> ErrorAlert:
    """Build the alert payload for a play, with fallbacks for missing fields."""
    base = _dig(play, "result", "base")
    event = _dig(play, "result", "event")
    if base and isinstance(base, str):
        result = base.upper()
    else:
        result = _display(event, UNKNOWN)

    outs = _dig(play, "count", "outs")
    half = _dig(play, "about", "halfInning")

    return ErrorAlert(
        game_pk=game_pk,
        play_id=play_identifier(game_pk, play),
        batter=_display(_dig(play, "matchup", "batter", "fullName"), UNKNOWN),
        home_team=_display(_dig(play, "matchup", "homeTeamName"), "Home"),
        away_team=_display(_dig(play, "matchup", "awayTeamName"), "Away"),
        exit_velocity=_display(_dig(play, "hitData", "exitVelocity"), NOT_AVAILABLE),
        launch_angle=_display(_dig(play, "hitData", "launchAngle"), NOT_AVAILABLE),
        xba=_display(_dig(play, "hitData", "expectedBattingAverage"), NOT_AVAILABLE),
        result=result,
        inning=_display(_dig(play, "about", "inning"), NOT_AVAILABLE),
        half_inning=half if isinstance(half, str) else "",
        outs=NO_OUTS if outs is None else str(outs),
        watch_link=watch_link,
    )


# ---------------------------------------------------------------------------
# Seen-play registry
# ---------------------------------------------------------------------------

class SeenPlayRegistry:
    """Identifiers of plays already alerted on.

    The set only grows during a day.  :meth:`roll_over` clears it when the
    calendar day changes; only games on today's schedule are scanned, so
    yesterday's identifiers can never match again.

    Args:
        day: The day the registry starts on.  Defaults to today.
    """

    def __init__(self, day: datetime.date | None = None) -> None:
        self._seen: set[str] = set()
        self._day = day or datetime.date.today()
        self._lock = threading.Lock()

    @property
    def day(self) -> datetime.date:
        return self._day

    def __contains__(self, identifier: object) -> bool:
        with self._lock:
            return identifier in self._seen

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)

    def claim(self, identifier: str) -> bool:
        """Register *identifier*; return False if it was already registered.

        Check and insert happen under one lock, so two callers can never
        both win the same identifier.
        """
        with self._lock:
            if identifier in self._seen:
                return False
            self._seen.add(identifier)
            return True

    def roll_over(self, day: datetime.date) -> int:
        """Start a new day if *day* differs from the current one.

        Returns:
            The number of identifiers dropped (0 when the day is unchanged).
        """
        with self._lock:
            if day == self._day:
                return 0
            dropped = len(self._seen)
            self._seen.clear()
            self._day = day
        logger.info("Seen-play registry rolled over to %s (%d dropped)",
                    day.isoformat(), dropped)
        return dropped


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

def scan_plays(
    game_pk: int,
    plays: list[dict[str, Any]],
    registry: SeenPlayRegistry,
    teams: GameTeams | None = None,
) -> list[ErrorAlert]:
    """Find the new error plays of one game, in feed order.

    Each qualifying play is claimed in *registry* before its alert is
    returned, so a later notification failure never causes a second alert.
    Non-error plays are not registered and are re-evaluated every cycle.

    Args:
        game_pk: The game the plays belong to.
        plays: The game's play-by-play, in feed order.
        registry: Identifiers already alerted on.
        teams: Team names for the watch link (``None`` if unavailable).

    Returns:
        One :class:`ErrorAlert` per newly detected error play.
    """
    watch_link = build_watch_link(game_pk, teams)
    alerts: list[ErrorAlert] = []

    for play in plays:
        if not isinstance(play, dict):
            continue
        identifier = play_identifier(game_pk, play)
        if identifier in registry:
            continue
        if not is_error_play(play):
            continue
        if not registry.claim(identifier):
            continue
        alerts.append(build_alert(game_pk, play, watch_link))

    return alerts
