# /// script
# requires-python = ">=3.12"
# dependencies = []
# ///
"""Client for the public MLB feeds polled by the error bot.

Three read-only endpoints are used:

- the MLB Stats API daily schedule (``statsapi.mlb.com``) to find today's
  gamePks,
- the Baseball Savant game feed (``baseballsavant.mlb.com/gf``) for the
  play-by-play of a single game,
- the MLB Stats API live game feed for the game metadata (team names).

All functions return plain Python dicts/lists parsed from the JSON
responses.  Nothing is cached and nothing is retried: the next poll cycle
is the retry.

Usage::

    from feeds.mlb_api import (
        find_todays_game_pks,
        get_game_plays,
        get_game_data,
    )
"""

from __future__ import annotations

import datetime
import json
import logging
import urllib.error
import urllib.request
from typing import Any


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_URL = "https://statsapi.mlb.com/api"
SAVANT_GAME_FEED_URL = "https://baseballsavant.mlb.com/gf"
DEFAULT_TIMEOUT = 10  # seconds
MLB_SPORT_ID = 1

logger = logging.getLogger("mlb_api")


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class MLBApiError(Exception):
    """Base exception for MLB feed errors."""

    def __init__(self, message: str, status_code: int | None = None,
                 url: str | None = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class MLBApiNotFoundError(MLBApiError):
    """Raised when a resource is not found (404)."""


class MLBApiConnectionError(MLBApiError):
    """Raised when a connection to the API cannot be established."""


class MLBApiTimeoutError(MLBApiError):
    """Raised when a request to the API times out."""


class MLBApiDecodeError(MLBApiError):
    """Raised when a response body is not a JSON object."""


# ---------------------------------------------------------------------------
# Low-level HTTP helpers
# ---------------------------------------------------------------------------

def _fetch_json(url: str, timeout: int = DEFAULT_TIMEOUT) -> dict[str, Any]:
    """Fetch a JSON object from *url* in a single attempt.

    Args:
        url: Full URL to fetch.
        timeout: Request timeout in seconds.

    Returns:
        Parsed JSON response as a dict.

    Raises:
        MLBApiNotFoundError: If the server returns 404.
        MLBApiTimeoutError: If the request times out.
        MLBApiConnectionError: If the server is unreachable.
        MLBApiDecodeError: If the body is not a JSON object.
        MLBApiError: For other HTTP errors.
    """
    req = urllib.request.Request(url)
    req.add_header("Accept", "application/json")

    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
    except urllib.error.HTTPError as exc:
        if exc.code == 404:
            raise MLBApiNotFoundError(
                f"Resource not found: {url}",
                status_code=404,
                url=url,
            ) from exc
        raise MLBApiError(
            f"HTTP {exc.code} from {url}",
            status_code=exc.code,
            url=url,
        ) from exc
    except urllib.error.URLError as exc:
        if isinstance(exc.reason, TimeoutError):
            raise MLBApiTimeoutError(
                f"Request timed out: {url}", url=url
            ) from exc
        raise MLBApiConnectionError(
            f"Connection failed: {exc.reason}", url=url
        ) from exc
    except TimeoutError as exc:
        raise MLBApiTimeoutError(f"Request timed out: {url}", url=url) from exc
    except OSError as exc:
        raise MLBApiConnectionError(
            f"Connection error: {exc}", url=url
        ) from exc

    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise MLBApiDecodeError(
            f"Invalid JSON from {url}: {exc}", url=url
        ) from exc

    if not isinstance(data, dict):
        raise MLBApiDecodeError(
            f"Expected a JSON object from {url}, got {type(data).__name__}",
            url=url,
        )
    return data


def _build_url(version: str, path: str,
               params: dict[str, Any] | None = None) -> str:
    """Build a full MLB Stats API URL.

    Args:
        version: API version (e.g. ``"v1"`` or ``"v1.1"``).
        path: Resource path (e.g. ``"schedule"``).
        params: Optional query parameters.  ``None`` values are dropped.

    Returns:
        The full URL string.
    """
    url = f"{BASE_URL}/{version}/{path}"
    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            query = "&".join(f"{k}={v}" for k, v in filtered.items())
            url = f"{url}?{query}"
    return url


# ---------------------------------------------------------------------------
# Schedule
# ---------------------------------------------------------------------------

def get_schedule_by_date(
    date: str,
    sport_id: int = MLB_SPORT_ID,
) -> list[dict[str, Any]]:
    """Fetch the games scheduled on *date*.

    Only the first date entry of the response is used, since the query
    covers a single day.

    Args:
        date: Date string in ``YYYY-MM-DD`` format.
        sport_id: Sport ID (``1`` for MLB).

    Returns:
        The game dicts of that date, or an empty list when nothing is
        scheduled or the payload has no usable ``dates`` entry.

    Raises:
        MLBApiError: On API errors.
    """
    url = _build_url("v1", "schedule", {"sportId": sport_id, "date": date})
    data = _fetch_json(url)

    dates = data.get("dates")
    if not isinstance(dates, list) or not dates:
        return []
    first = dates[0]
    if not isinstance(first, dict):
        return []
    games = first.get("games")
    if not isinstance(games, list):
        return []
    return [g for g in games if isinstance(g, dict)]


def find_todays_game_pks(
    today: datetime.date | None = None,
) -> list[int]:
    """Return the gamePks scheduled for today.

    "Today" is the calendar date in the process-local time zone.

    Args:
        today: Override for the current date (for testing).

    Returns:
        List of gamePk integers.  Empty when no games are scheduled;
        an empty day is not an error.

    Raises:
        MLBApiError: On API errors.
    """
    day = today or datetime.date.today()
    games = get_schedule_by_date(day.isoformat())
    game_pks = [g["gamePk"] for g in games if g.get("gamePk") is not None]
    logger.debug("Schedule for %s has %d games", day.isoformat(), len(game_pks))
    return game_pks


# ---------------------------------------------------------------------------
# Per-game feeds
# ---------------------------------------------------------------------------

def get_game_plays(game_pk: int) -> list[dict[str, Any]]:
    """Fetch every play recorded so far for a game.

    Uses the Baseball Savant game feed, whose ``allPlays`` array holds the
    play-by-play in feed order.

    Args:
        game_pk: The unique game identifier (gamePk).

    Returns:
        The list of play dicts, or an empty list when the payload has no
        plays collection.

    Raises:
        MLBApiError: On API errors.
    """
    url = f"{SAVANT_GAME_FEED_URL}?game_pk={game_pk}"
    data = _fetch_json(url)

    plays = data.get("allPlays")
    if not isinstance(plays, list):
        return []
    return plays


def get_game_data(game_pk: int) -> dict[str, Any] | None:
    """Fetch the game metadata block of the live game feed.

    Args:
        game_pk: The unique game identifier (gamePk).

    Returns:
        The ``gameData`` dict (teams, venue, status, ...), or ``None`` when
        the feed does not carry one.

    Raises:
        MLBApiNotFoundError: If the game does not exist.
        MLBApiError: On other API errors.
    """
    url = _build_url("v1.1", f"game/{game_pk}/feed/live")
    data = _fetch_json(url)

    game_data = data.get("gameData")
    if not isinstance(game_data, dict):
        return None
    return game_data
