"""Weekly winner storage."""

from app.models import WeeklyPayment, WeeklyWinner
from app.services.winner_service import (
    ALREADY_STORED,
    NO_WINNERS,
    check_and_store_winners,
    store_weekly_winners,
)
from tests.conftest import SEASON_YEAR


def _final_week(make_game, mnf_status="Final"):
    first = make_game(home="KC", away="BUF", status="Final", winner="KC",
                      home_score=27, away_score=20)
    mnf = make_game(home="DAL", away="NYG", status=mnf_status, winner="DAL",
                    home_score=24, away_score=17, is_monday_night=True,
                    actual_total_points=41)
    return first, mnf


class TestStoreWeeklyWinners:

    def test_stores_paid_and_unpaid_winners(self, season, make_user, make_game, make_pick):
        first, mnf = _final_week(make_game)
        alice, bob, carl = make_user("alice"), make_user("bob"), make_user("carl")

        make_pick(alice, first, "KC")
        make_pick(alice, mnf, "DAL", total_points=44)
        make_pick(bob, first, "KC")
        make_pick(bob, mnf, "DAL", total_points=40)
        make_pick(carl, first, "BUF")
        make_pick(carl, mnf, "DAL", total_points=41)
        WeeklyPayment.set_paid(alice.id, 1, SEASON_YEAR, True)
        WeeklyPayment.set_paid(bob.id, 1, SEASON_YEAR, True)

        success, _, rows = store_weekly_winners(SEASON_YEAR, 1)

        assert success is True
        paid = [r for r in rows if r.is_paid_winner]
        unpaid = [r for r in rows if not r.is_paid_winner]
        assert [r.player_name for r in paid] == ["bob"]
        assert paid[0].tiebreaker == 1
        assert paid[0].is_tied is False
        assert [r.player_name for r in unpaid] == ["carl"]
        assert WeeklyWinner.query.count() == 2

    def test_second_run_does_not_insert_duplicates(self, season, make_user, make_game, make_pick):
        first, mnf = _final_week(make_game)
        user = make_user()
        make_pick(user, first, "KC")

        assert store_weekly_winners(SEASON_YEAR, 1)[0] is True
        success, message, rows = store_weekly_winners(SEASON_YEAR, 1)

        assert success is False
        assert message == ALREADY_STORED
        assert rows == []
        assert WeeklyWinner.query.count() == 1

    def test_week_without_picks(self, season, make_user, make_game):
        _final_week(make_game)
        make_user()

        success, message, _ = store_weekly_winners(SEASON_YEAR, 1)

        assert success is False
        assert message == NO_WINNERS
        assert WeeklyWinner.query.count() == 0

    def test_tied_winners_are_flagged(self, season, make_user, make_game, make_pick):
        first, mnf = _final_week(make_game)
        for name in ("ann", "ben"):
            user = make_user(name)
            make_pick(user, first, "KC")
            make_pick(user, mnf, "DAL")

        success, _, rows = store_weekly_winners(SEASON_YEAR, 1)

        assert success is True
        assert sorted(r.player_name for r in rows) == ["ann", "ben"]
        assert all(r.is_tied and not r.is_paid_winner for r in rows)


class TestCheckAndStoreWinners:

    def test_stores_once_monday_game_is_final(self, season, make_user, make_game, make_pick):
        first, mnf = _final_week(make_game)
        make_pick(make_user(), first, "KC")

        assert check_and_store_winners(SEASON_YEAR) == [1]
        assert check_and_store_winners(SEASON_YEAR) == []

    def test_waits_for_monday_game(self, season, make_user, make_game, make_pick):
        first, mnf = _final_week(make_game, mnf_status="InProgress")
        make_pick(make_user(), first, "KC")

        assert check_and_store_winners(SEASON_YEAR) == []
        assert WeeklyWinner.query.count() == 0

    def test_final_sunday_game_does_not_trigger_storage(self, season, make_user, make_game, make_pick):
        snf = make_game(home="GB", away="CHI", status="Final", winner="GB",
                        home_score=25, away_score=10)
        make_game(home="LV", away="DEN", status="Scheduled", is_monday_night=True)
        make_pick(make_user(), snf, "GB")

        assert check_and_store_winners(SEASON_YEAR) == []
        assert WeeklyWinner.query.count() == 0
