# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0", "pydantic>=2.0"]
# ///
"""Tests for the play_scanner feature.

Validates:
  1. Identifiers are "{gamePk}-{startTime}" and ignore every other field
  2. Only plays whose event text contains "error" qualify (case-insensitive)
  3. A structured eventType, when present, must be an error type
  4. Qualifying plays are registered; non-qualifying plays are not
  5. Missing nested fields render as fallback literals
  6. The registry's check-and-set and day roll-over
"""

import datetime
import sys
import threading
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

from alert_output import format_alert_body
from models import GameTeams
from play_scanner import (
    SeenPlayRegistry,
    build_alert,
    extract_game_teams,
    is_error_play,
    play_identifier,
    scan_plays,
)


# ---------------------------------------------------------------------------
# Test data builders
# ---------------------------------------------------------------------------

def _build_play(
    start_time: str | None = "2026-07-04T23:10:00.000Z",
    event: str | None = "Field Error",
    event_type: str | None = None,
    base: str | None = None,
    batter: str = "Rafael Devers",
    inning: int = 4,
    half: str = "bottom",
    outs: int | None = 1,
) -> dict:
    """Build a play record shaped like the game feed's allPlays entries."""
    play: dict = {
        "result": {},
        "matchup": {
            "batter": {"fullName": batter},
            "homeTeamName": "Boston Red Sox",
            "awayTeamName": "New York Yankees",
        },
        "hitData": {
            "exitVelocity": 101.2,
            "launchAngle": 12,
            "expectedBattingAverage": ".540",
        },
        "about": {"inning": inning, "halfInning": half},
        "count": {},
    }
    if start_time is not None:
        play["startTime"] = start_time
    if event is not None:
        play["result"]["event"] = event
    if event_type is not None:
        play["result"]["eventType"] = event_type
    if base is not None:
        play["result"]["base"] = base
    if outs is not None:
        play["count"]["outs"] = outs
    return play


@pytest.fixture
def registry():
    return SeenPlayRegistry(day=datetime.date(2026, 7, 4))


@pytest.fixture
def teams():
    return GameTeams(home="Boston Red Sox", away="New York Yankees")


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

class TestPlayIdentifier:
    """Tests for play_identifier."""

    def test_identifier_format(self):
        assert play_identifier(7001, {"startTime": "T1"}) == "7001-T1"

    def test_identifier_ignores_other_fields(self):
        a = _build_play(start_time="T1", event="Field Error", batter="A")
        b = _build_play(start_time="T1", event="Single", batter="B", inning=9)
        assert play_identifier(7001, a) == play_identifier(7001, b)

    def test_missing_start_time_is_stable(self):
        play = _build_play(start_time=None)
        assert play_identifier(7001, play) == "7001-"
        assert play_identifier(7001, play) == play_identifier(7001, dict(play))

    def test_different_games_differ(self):
        play = {"startTime": "T1"}
        assert play_identifier(7001, play) != play_identifier(7002, play)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------

class TestIsErrorPlay:
    """Tests for is_error_play."""

    @pytest.mark.parametrize("event", [
        "Field Error", "Error", "ERROR", "Throwing error on the catcher",
    ])
    def test_error_events_qualify(self, event):
        assert is_error_play(_build_play(event=event))

    @pytest.mark.parametrize("event", [
        "Single", "Field Out", "Strikeout", "Home Run", "",
    ])
    def test_non_error_events_excluded(self, event):
        assert not is_error_play(_build_play(event=event))

    def test_missing_event_excluded(self):
        assert not is_error_play(_build_play(event=None))

    def test_missing_result_excluded(self):
        assert not is_error_play({"startTime": "T1"})

    def test_non_string_event_excluded(self):
        play = _build_play()
        play["result"]["event"] = 42
        assert not is_error_play(play)

    def test_structured_error_type_qualifies(self):
        assert is_error_play(_build_play(event="Field Error",
                                         event_type="field_error"))

    @pytest.mark.parametrize("base", ["1b", "2b", "3b"])
    def test_pickoff_error_qualifies(self, base):
        play = _build_play(event=f"Pickoff Error {base.upper()}",
                           event_type=f"pickoff_error_{base}")
        assert is_error_play(play)

    def test_structured_non_error_type_rejects_wording(self):
        play = _build_play(event="Errorless inning", event_type="field_out")
        assert not is_error_play(play)

    def test_structured_type_does_not_override_text(self):
        play = _build_play(event="Field Out", event_type="field_error")
        assert not is_error_play(play)


# ---------------------------------------------------------------------------
# Alert building
# ---------------------------------------------------------------------------

class TestBuildAlert:
    """Tests for build_alert field extraction."""

    def test_full_play(self):
        alert = build_alert(7001, _build_play(start_time="T1", base="field error"), "w")
        assert alert.play_id == "7001-T1"
        assert alert.batter == "Rafael Devers"
        assert alert.home_team == "Boston Red Sox"
        assert alert.away_team == "New York Yankees"
        assert alert.exit_velocity == "101.2"
        assert alert.launch_angle == "12"
        assert alert.xba == ".540"
        assert alert.result == "FIELD ERROR"
        assert alert.inning == "4"
        assert alert.half_inning == "bottom"
        assert alert.outs == "1"

    def test_result_falls_back_to_event(self):
        alert = build_alert(7001, _build_play(event="Field Error"), "w")
        assert alert.result == "Field Error"

    def test_zero_outs_is_kept(self):
        alert = build_alert(7001, _build_play(outs=0), "w")
        assert alert.outs == "0"

    def test_whole_float_renders_as_int(self):
        play = _build_play()
        play["hitData"]["exitVelocity"] = 100.0
        assert build_alert(7001, play, "w").exit_velocity == "100"

    def test_empty_play_uses_fallbacks(self):
        alert = build_alert(7001, {}, "w")
        assert alert.play_id == "7001-"
        assert alert.batter == "Unknown"
        assert alert.home_team == "Home"
        assert alert.away_team == "Away"
        assert alert.exit_velocity == "N/A"
        assert alert.launch_angle == "N/A"
        assert alert.xba == "N/A"
        assert alert.result == "Unknown"
        assert alert.inning == "N/A"
        assert alert.half_inning == ""
        assert alert.outs == "0"

    def test_fallback_body_has_every_label(self):
        body = format_alert_body(build_alert(7001, {}, "w"))
        for label in ("Batter:", "Teams:", "Exit Velo:", "Launch Angle:",
                      "xBA:", "Result:", "Situation:", "Watch:"):
            assert label in body
        assert "Unknown" in body
        assert "N/A" in body
        assert "0 outs" in body

    def test_non_dict_levels_fall_back(self):
        play = {"matchup": "garbage", "hitData": None, "about": []}
        alert = build_alert(7001, play, "w")
        assert alert.batter == "Unknown"
        assert alert.exit_velocity == "N/A"
        assert alert.inning == "N/A"


class TestExtractGameTeams:
    """Tests for extract_game_teams."""

    def test_names(self):
        game_data = {"teams": {"home": {"name": "Boston Red Sox"},
                               "away": {"name": "New York Yankees"}}}
        teams = extract_game_teams(game_data)
        assert teams.home == "Boston Red Sox"
        assert teams.away == "New York Yankees"

    def test_missing_metadata(self):
        teams = extract_game_teams(None)
        assert teams.home is None
        assert teams.away is None


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestSeenPlayRegistry:
    """Tests for SeenPlayRegistry."""

    def test_claim_once(self, registry):
        assert registry.claim("7001-T1")
        assert not registry.claim("7001-T1")
        assert "7001-T1" in registry
        assert len(registry) == 1

    def test_roll_over_same_day_keeps_entries(self, registry):
        registry.claim("7001-T1")
        assert registry.roll_over(datetime.date(2026, 7, 4)) == 0
        assert "7001-T1" in registry

    def test_roll_over_new_day_clears(self, registry):
        registry.claim("7001-T1")
        registry.claim("7001-T2")
        assert registry.roll_over(datetime.date(2026, 7, 5)) == 2
        assert len(registry) == 0
        assert registry.day == datetime.date(2026, 7, 5)

    def test_concurrent_claims_have_one_winner(self, registry):
        wins = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            wins.append(registry.claim("7001-T1"))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert wins.count(True) == 1


# ---------------------------------------------------------------------------
# Scanning
# ---------------------------------------------------------------------------

class TestScanPlays:
    """Tests for scan_plays."""

    def test_detects_error_play(self, registry, teams):
        plays = [_build_play(start_time="T1", event="Fielding Error")]
        alerts = scan_plays(7001, plays, registry, teams)
        assert [a.play_id for a in alerts] == ["7001-T1"]
        assert "7001-T1" in registry
        assert alerts[0].watch_link == (
            "https://www.mlb.com/gameday/new-york-yankees-vs-boston-red-sox/7001"
        )

    def test_second_scan_is_silent(self, registry, teams):
        plays = [_build_play(start_time="T1")]
        assert len(scan_plays(7001, plays, registry, teams)) == 1
        assert scan_plays(7001, plays, registry, teams) == []

    def test_non_error_plays_not_registered(self, registry, teams):
        plays = [_build_play(start_time="T1", event="Single")]
        assert scan_plays(7001, plays, registry, teams) == []
        assert "7001-T1" not in registry

    def test_corrected_event_is_caught_later(self, registry, teams):
        play = _build_play(start_time="T1", event="Single")
        assert scan_plays(7001, [play], registry, teams) == []
        play["result"]["event"] = "Field Error"
        assert len(scan_plays(7001, [play], registry, teams)) == 1

    def test_feed_order_is_kept(self, registry, teams):
        plays = [
            _build_play(start_time="T1"),
            _build_play(start_time="T2", event="Double"),
            _build_play(start_time="T3", event="Throwing Error"),
        ]
        alerts = scan_plays(7001, plays, registry, teams)
        assert [a.play_id for a in alerts] == ["7001-T1", "7001-T3"]

    def test_duplicate_identifiers_in_one_feed(self, registry, teams):
        plays = [_build_play(start_time="T1"), _build_play(start_time="T1")]
        assert len(scan_plays(7001, plays, registry, teams)) == 1

    def test_non_dict_entries_skipped(self, registry, teams):
        plays = [None, "junk", _build_play(start_time="T1")]
        assert len(scan_plays(7001, plays, registry, teams)) == 1

    def test_without_team_metadata(self, registry):
        alerts = scan_plays(7001, [_build_play(start_time="T1")], registry, None)
        assert alerts[0].watch_link.endswith("/away-vs-home/7001")
