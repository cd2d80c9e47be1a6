# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Alert output formatting for the MLB error bot.

Turns an :class:`~models.ErrorAlert` into the fixed-template email body:
- a situation string such as "Bottom 7, 1 out"
- a Gameday watch link built from the team names
- the multi-line body sent to every recipient
"""

from __future__ import annotations

import re

from models import ErrorAlert, GameTeams

ALERT_SUBJECT = "MLB Error Alert"
GAMEDAY_URL = "https://www.mlb.com/gameday"

_WHITESPACE_RUN = re.compile(r"\s+")


def team_slug(name: str | None, fallback: str) -> str:
    """Lower-case a team name and hyphenate its whitespace runs.

    >>> team_slug("Boston Red Sox", "home")
    'boston-red-sox'
    """
    if not name:
        return fallback
    return _WHITESPACE_RUN.sub("-", name.lower())


def build_watch_link(game_pk: int, teams: GameTeams | None) -> str:
    """Build the Gameday link for a game, e.g.
    ``https://www.mlb.com/gameday/new-york-yankees-vs-boston-red-sox/7001``.
    """
    teams = teams or GameTeams()
    away = team_slug(teams.away, "away")
    home = team_slug(teams.home, "home")
    return f"{GAMEDAY_URL}/{away}-vs-{home}/{game_pk}"


def format_situation(half_inning: str, inning: str, outs: str) -> str:
    """Format the game situation of a play.

    Args:
        half_inning: "top" / "bottom" as sent by the feed (may be empty).
            Only the first character is upper-cased.
        inning: Inning number as a string.
        outs: Out count as a string.

    Returns:
        A string like "Top 3, 2 outs" or "Bottom 9, 1 out".
    """
    half = half_inning[:1].upper() + half_inning[1:]
    suffix = "" if outs == "1" else "s"
    return f"{half} {inning}, {outs} out{suffix}"


def format_alert_body(alert: ErrorAlert) -> str:
    """Render the email body for an error alert."""
    situation = format_situation(alert.half_inning, alert.inning, alert.outs)
    lines = [
        "MLB Error Alert:",
        f"Batter: {alert.batter}",
        f"Teams: {alert.away_team} @ {alert.home_team}",
        f"Exit Velo: {alert.exit_velocity} mph",
        f"Launch Angle: {alert.launch_angle}°",
        f"xBA: {alert.xba}",
        f"Result: {alert.result}",
        f"Situation: {situation}",
        f"Watch: {alert.watch_link}",
    ]
    return "\n".join(lines)
