"""Schedule and scoreboard ingestion with the HTTP layer patched out."""

from datetime import datetime, timezone

import pytest
import requests

from app.models import Game
from app.services.winner_service import check_and_store_winners
from app.utils.data_sync import (
    DataSync,
    group_games_by_week,
    normalize_team,
    parse_schedule_kickoff,
    parse_score,
)
from tests.conftest import SEASON_YEAR


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(response=self)


@pytest.fixture
def feed(monkeypatch):
    """Serve `feed.payload` for every GET and record the calls"""

    class Feed:
        payload = None
        error = None
        calls = []

    def fake_get(session, url, params=None, headers=None, timeout=None):
        Feed.calls.append({"url": url, "params": params, "headers": headers})
        if Feed.error:
            raise Feed.error
        return FakeResponse(Feed.payload)

    Feed.calls = []
    monkeypatch.setattr(requests.Session, "get", fake_get)
    return Feed


def event(home, away, home_score, away_score, state="post", name=None,
          date="2025-09-07T17:00:00Z"):
    return {
        "name": name or f"{away} at {home}",
        "date": date,
        "status": {"type": {"state": state}},
        "competitions": [
            {
                "competitors": [
                    {"homeAway": "home", "score": home_score, "team": {"abbreviation": home}},
                    {"homeAway": "away", "score": away_score, "team": {"abbreviation": away}},
                ]
            }
        ],
    }


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

class TestParsing:

    def test_normalize_team_fixes_washington(self):
        assert normalize_team("WSH") == "WAS"
        assert normalize_team("kc") == "KC"
        assert normalize_team(None) == ""

    def test_parse_score(self):
        assert parse_score("24") == 24
        assert parse_score(17) == 17
        assert parse_score("") is None
        assert parse_score("n/a") is None

    def test_schedule_kickoff_eastern_to_utc(self):
        kickoff = parse_schedule_kickoff({"DateTime": "2025-09-08T20:15:00"})
        assert kickoff == datetime(2025, 9, 9, 0, 15)

    def test_schedule_kickoff_prefers_utc_field(self):
        kickoff = parse_schedule_kickoff(
            {"DateTimeUTC": "2025-09-07T17:00:00", "DateTime": "2025-09-07T13:00:00"}
        )
        assert kickoff == datetime(2025, 9, 7, 17, 0)

    def test_schedule_kickoff_missing(self):
        assert parse_schedule_kickoff({}) is None


# ---------------------------------------------------------------------------
# schedule ingestion
# ---------------------------------------------------------------------------

SCHEDULE = [
    {"GameKey": "202510101", "Week": 1, "HomeTeam": "KC", "AwayTeam": "BUF",
     "DateTimeUTC": "2025-09-07T17:00:00"},
    {"GameKey": "202510102", "Week": 1, "HomeTeam": "DAL", "AwayTeam": "NYG",
     "DateTime": "2025-09-08T20:15:00"},
    {"GameKey": "202510199", "Week": 1, "HomeTeam": "BYE", "AwayTeam": "NE",
     "DateTime": "2025-09-07T13:00:00"},
    {"GameKey": None, "Week": 1, "HomeTeam": "SF", "AwayTeam": "LA",
     "DateTime": "2025-09-07T16:25:00"},
]


class TestSyncSchedule:

    def test_upserts_games_by_game_key(self, app, feed):
        feed.payload = SCHEDULE

        success, message = DataSync().sync_schedule(SEASON_YEAR)

        assert success is True
        assert message == "Synced 3 games (3 new)"
        assert feed.calls[0]["headers"] == {"Ocp-Apim-Subscription-Key": "test-key"}
        assert feed.calls[0]["url"].endswith(f"/SchedulesBasic/{SEASON_YEAR}")

        game = Game.query.filter_by(external_id="202510101").one()
        assert game.home_team == "KC"
        assert game.home_score is None
        assert game.status == "Scheduled"

        # Running again updates rather than duplicating
        success, message = DataSync().sync_schedule(SEASON_YEAR)
        assert success is True
        assert message == "Synced 3 games (0 new)"
        assert Game.query.count() == 3

    def test_marks_the_monday_night_game(self, app, feed):
        feed.payload = SCHEDULE

        DataSync().sync_schedule(SEASON_YEAR)

        mnf = Game.get_monday_night_game(SEASON_YEAR, 1)
        assert mnf.external_id == "202510102"
        assert Game.query.filter_by(is_monday_night=True).count() == 1

    def test_bye_placeholders_are_not_served(self, app, feed):
        feed.payload = SCHEDULE

        DataSync().sync_schedule(SEASON_YEAR)

        teams = {g.home_team for g in Game.get_games_for_week(SEASON_YEAR, 1)}
        assert teams == {"KC", "DAL"}

    def test_sunday_night_after_dst_is_not_monday_night(self, app, feed):
        # 8:20pm EST Sunday is 01:20 UTC Monday
        feed.payload = [
            {"GameKey": "202511001", "Week": 10, "HomeTeam": "GB", "AwayTeam": "CHI",
             "DateTimeUTC": "2025-11-10T01:20:00"},
            {"GameKey": "202511002", "Week": 10, "HomeTeam": "LV", "AwayTeam": "DEN",
             "DateTimeUTC": "2025-11-11T01:15:00"},
        ]

        DataSync().sync_schedule(SEASON_YEAR)

        mnf = Game.get_monday_night_game(SEASON_YEAR, 10)
        assert mnf.external_id == "202511002"
        assert Game.query.filter_by(is_monday_night=True).count() == 1

    def test_feed_failure(self, app, feed):
        feed.error = requests.exceptions.ConnectionError("down")

        success, message = DataSync().sync_schedule(SEASON_YEAR)

        assert success is False
        assert message == "Failed to fetch NFL schedule"
        assert Game.query.count() == 0

    def test_missing_api_key(self, app, feed):
        app.config["SPORTSDATA_API_KEY"] = None

        success, _ = DataSync().sync_schedule(SEASON_YEAR)

        assert success is False
        assert feed.calls == []


# ---------------------------------------------------------------------------
# scoreboard ingestion
# ---------------------------------------------------------------------------

class TestUpdateScores:

    def test_final_score_sets_status_and_winner(self, app, feed, make_game):
        game = make_game(home="KC", away="BUF")
        feed.payload = {"events": [event("KC", "BUF", "27", "20")]}

        success, result = DataSync().update_scores(SEASON_YEAR)

        assert success is True
        assert result["week"] == 1
        assert result["updated_count"] == 1
        assert result["updated_game_ids"] == [game.id]
        assert feed.calls[0]["params"] == {"week": 1}
        assert (game.home_score, game.away_score) == (27, 20)
        assert game.status == "Final"
        assert game.winner == "KC"

    def test_in_progress_and_tied_scores_have_no_winner(self, app, feed, make_game):
        live = make_game(home="KC", away="BUF")
        tied = make_game(home="DAL", away="NYG")
        feed.payload = {
            "events": [
                event("KC", "BUF", "10", "3", state="in"),
                event("DAL", "NYG", "20", "20"),
            ]
        }

        DataSync().update_scores(SEASON_YEAR)

        assert live.status == "InProgress"
        assert live.winner == "KC"
        assert tied.status == "Final"
        assert tied.winner is None

    def test_washington_abbreviation_is_mapped(self, app, feed, make_game):
        game = make_game(home="WAS", away="PHI")
        feed.payload = {"events": [event("WSH", "PHI", "21", "24")]}

        DataSync().update_scores(SEASON_YEAR)

        assert game.winner == "PHI"
        assert game.status == "Final"

    def test_monday_night_total_recorded(self, app, feed, make_game):
        game = make_game(home="DAL", away="NYG", is_monday_night=True)
        feed.payload = {
            "events": [
                event("DAL", "NYG", "24", "17", name="Monday Night Football: NYG at DAL")
            ]
        }

        success, result = DataSync().update_scores(SEASON_YEAR)

        assert result["monday_night_game_updated"] is True
        assert game.is_monday_night is True
        assert game.actual_total_points == 41

    def test_sunday_night_final_leaves_monday_flag_alone(self, app, feed, make_game, make_user, make_pick):
        snf = make_game(home="GB", away="CHI", week=10,
                        start_time=datetime(2025, 11, 10, 1, 20, tzinfo=timezone.utc))
        mnf = make_game(home="LV", away="DEN", week=10, is_monday_night=True,
                        start_time=datetime(2025, 11, 11, 1, 15, tzinfo=timezone.utc))
        make_pick(make_user(), snf, "GB")
        feed.payload = {
            "events": [
                event("GB", "CHI", "25", "10", date="2025-11-10T01:20Z"),
                event("LV", "DEN", "0", "0", state="pre", date="2025-11-11T01:15Z"),
            ]
        }

        success, result = DataSync().update_scores(SEASON_YEAR)

        assert success is True
        assert result["week"] == 10
        assert result["monday_night_game_updated"] is False
        assert snf.status == "Final"
        assert snf.is_monday_night is False
        assert snf.actual_total_points is None
        assert mnf.is_monday_night is True
        assert Game.get_monday_night_game(SEASON_YEAR, 10).id == mnf.id
        assert check_and_store_winners(SEASON_YEAR) == []

    def test_unflagged_game_gets_no_monday_total(self, app, feed, make_game):
        game = make_game(home="DAL", away="NYG")
        feed.payload = {
            "events": [
                event("DAL", "NYG", "24", "17", name="Monday Night Football: NYG at DAL")
            ]
        }

        success, result = DataSync().update_scores(SEASON_YEAR)

        assert result["monday_night_game_updated"] is False
        assert game.is_monday_night is False
        assert game.actual_total_points is None

    def test_reversed_home_and_away_still_matches(self, app, feed, make_game):
        game = make_game(home="NYJ", away="MIA")
        feed.payload = {"events": [event("MIA", "NYJ", "21", "14")]}

        DataSync().update_scores(SEASON_YEAR)

        assert game.home_score == 14
        assert game.away_score == 21
        assert game.winner == "MIA"

    def test_unknown_matchup_is_skipped(self, app, feed, make_game):
        make_game(home="KC", away="BUF")
        feed.payload = {"events": [event("SF", "LA", "30", "3")]}

        success, result = DataSync().update_scores(SEASON_YEAR)

        assert success is True
        assert result["updated_count"] == 0

    def test_no_games_stored(self, app, feed):
        success, result = DataSync().update_scores(SEASON_YEAR)

        assert success is True
        assert result["message"] == "No current week found"
        assert feed.calls == []

    def test_empty_scoreboard(self, app, feed, make_game):
        make_game()
        feed.payload = {"events": []}

        success, result = DataSync().update_scores(SEASON_YEAR)

        assert success is True
        assert result["message"] == "No games found for current week"

    def test_feed_failure(self, app, feed, make_game):
        make_game()
        feed.error = requests.exceptions.Timeout("slow")

        success, result = DataSync().update_scores(SEASON_YEAR)

        assert success is False
        assert result["message"] == "Failed to update scores"


class TestGroupGamesByWeek:

    def test_groups_and_sorts_by_kickoff(self, app, make_game):
        late = make_game(week=1, start_time=datetime(2030, 9, 8, 20, 0, tzinfo=timezone.utc))
        early = make_game(week=1, start_time=datetime(2030, 9, 7, 17, 0, tzinfo=timezone.utc))
        later_week = make_game(week=2, start_time=datetime(2030, 9, 14, 17, 0, tzinfo=timezone.utc))

        grouped = group_games_by_week([late, later_week, early])

        assert list(grouped) == ["Week 1", "Week 2"]
        assert [g["id"] for g in grouped["Week 1"]] == [early.id, late.id]
        assert grouped["Week 2"][0]["id"] == later_week.id


class TestGameFeedStatus:

    def test_status_derived_from_scores_when_unset(self):
        game = Game(
            home_team="KC", away_team="BUF", home_score=27, away_score=20,
            start_time=datetime(2025, 9, 7, 17, 0), status=None,
        )

        assert game.effective_status() == "Final"
        assert game.effective_winner() == "KC"

    def test_status_derived_from_kickoff_when_unset(self):
        game = Game(
            home_team="KC", away_team="BUF", start_time=datetime(2025, 9, 7, 17, 0),
            status=None,
        )

        before = datetime(2025, 9, 7, 16, 0, tzinfo=timezone.utc)
        after = datetime(2025, 9, 7, 18, 0, tzinfo=timezone.utc)
        assert game.effective_status(before) == "Scheduled"
        assert game.effective_status(after) == "InProgress"
        assert game.effective_winner() is None
