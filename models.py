# /// script
# requires-python = ">=3.12"
# dependencies = ["pydantic>=2.0"]
# ///
"""Data models for the MLB error bot."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Fallback literals
# ---------------------------------------------------------------------------

UNKNOWN = "Unknown"
NOT_AVAILABLE = "N/A"
NO_OUTS = "0"


# ---------------------------------------------------------------------------
# Game metadata
# ---------------------------------------------------------------------------

class GameTeams(BaseModel):
    """Home and away display names from a game's metadata feed."""
    home: Optional[str] = None
    away: Optional[str] = None


# ---------------------------------------------------------------------------
# Alert payload
# ---------------------------------------------------------------------------

class ErrorAlert(BaseModel):
    """Everything needed to render one error-play notification.

    Display fields are plain strings that already carry their fallback
    literal, so rendering never has to deal with missing data.
    """
    model_config = ConfigDict(frozen=True)

    game_pk: int
    play_id: str = Field(description="Seen-play identifier, '{gamePk}-{startTime}'")
    batter: str = UNKNOWN
    home_team: str = "Home"
    away_team: str = "Away"
    exit_velocity: str = NOT_AVAILABLE
    launch_angle: str = NOT_AVAILABLE
    xba: str = NOT_AVAILABLE
    result: str = UNKNOWN
    inning: str = NOT_AVAILABLE
    half_inning: str = ""
    outs: str = NO_OUTS
    watch_link: str
