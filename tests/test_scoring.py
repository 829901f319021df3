"""Unit tests for the weekly scoring rules in app.utils.scoring."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from app.utils.scoring import (
    calculate_streaks,
    compute_user_week_stats,
    determine_active_week,
    determine_weekly_winners,
    percentage,
    pick_percentages,
    round_half_up,
    season_standings,
    select_cohort_winners,
    sort_week_rows,
    team_trends,
)

KICKOFF = datetime(2025, 9, 7, 17, 0, tzinfo=timezone.utc)


def game(id, home="KC", away="BUF", week=1, status="Final", winner=None,
         is_monday_night=False, actual_total_points=None, start_time=None):
    return SimpleNamespace(
        id=id,
        home_team=home,
        away_team=away,
        week=week,
        status=status,
        winner=winner,
        is_monday_night=is_monday_night,
        actual_total_points=actual_total_points,
        start_time=start_time or KICKOFF + timedelta(hours=id),
    )


def pick(user_id, game_id, team, total_points=None):
    return SimpleNamespace(
        user_id=user_id, game_id=game_id, selected_team=team, total_points=total_points
    )


def profile(id, username=None):
    username = username or f"user{id}"
    return SimpleNamespace(id=id, username=username, display_name=username.title())


def week_of(n_games, mnf_total=None):
    """n_games final games won by the home team; the last one is the MNF game"""
    games = [
        game(i, home=f"H{i}", away=f"A{i}", winner=f"H{i}")
        for i in range(1, n_games + 1)
    ]
    games[-1].is_monday_night = True
    games[-1].actual_total_points = mnf_total
    return games


def picks_with_correct(user_id, games, correct, total_points=None):
    """A pick on every game, the first `correct` of them right"""
    picks = []
    for i, g in enumerate(games):
        team = g.home_team if i < correct else g.away_team
        total = total_points if g.is_monday_night else None
        picks.append(pick(user_id, g.id, team, total))
    return picks


# ---------------------------------------------------------------------------
# rounding
# ---------------------------------------------------------------------------

class TestRounding:

    def test_half_rounds_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(2.4) == 2

    def test_percentage_of_zero_total_is_zero(self):
        assert percentage(0, 0) == 0
        assert percentage(3, 0) == 0

    def test_percentage_rounds_half_up(self):
        # 1/8 = 12.5%
        assert percentage(1, 8) == 13
        assert percentage(2, 3) == 67
        assert percentage(1, 3) == 33


# ---------------------------------------------------------------------------
# per-user week stats
# ---------------------------------------------------------------------------

class TestUserWeekStats:

    def test_counts_only_final_games_with_matching_winner(self):
        games = [
            game(1, winner="KC"),
            game(2, home="DAL", away="NYG", status="InProgress", winner="DAL"),
            game(3, home="SF", away="LA", status="Final", winner=None),
        ]
        picks = [pick(1, 1, "KC"), pick(1, 2, "DAL"), pick(1, 3, "SF")]

        stats = compute_user_week_stats(games, picks, [profile(1)])[0]

        assert stats["correct_picks"] == 1
        assert stats["total_picks"] == 3
        assert stats["percentage"] == 33

    def test_total_picks_counts_every_game_of_the_week(self):
        games = week_of(4)
        picks = [pick(1, 1, "H1")]

        stats = compute_user_week_stats(games, picks, [profile(1)])[0]

        assert stats["total_picks"] == 4
        assert stats["percentage"] == 25
        assert stats["has_made_picks"] is True

    def test_bye_games_are_ignored(self):
        games = [game(1, winner="KC"), game(2, home="BYE", away="NE"), game(3, home="", away="MIA")]
        stats = compute_user_week_stats(games, [pick(1, 1, "KC")], [profile(1)])[0]

        assert stats["total_picks"] == 1
        assert stats["percentage"] == 100

    def test_user_without_picks(self):
        stats = compute_user_week_stats(week_of(2), [], [profile(1)])[0]

        assert stats["has_made_picks"] is False
        assert stats["correct_picks"] == 0
        assert stats["monday_night_difference"] is None

    def test_no_games_gives_zero_percentage(self):
        stats = compute_user_week_stats([], [], [profile(1)])[0]
        assert stats["total_picks"] == 0
        assert stats["percentage"] == 0

    def test_monday_night_difference_is_absolute(self):
        games = week_of(2, mnf_total=45)
        picks = [pick(1, 1, "H1"), pick(1, 2, "H2", total_points=50)]
        low = [pick(2, 1, "H1"), pick(2, 2, "H2", total_points=40)]

        stats = compute_user_week_stats(games, picks + low, [profile(1), profile(2)])

        assert stats[0]["monday_night_difference"] == 5
        assert stats[1]["monday_night_difference"] == 5
        assert stats[0]["actual_monday_total"] == 45

    def test_monday_night_difference_null_without_actual_total(self):
        games = week_of(2, mnf_total=None)
        picks = [pick(1, 2, "H2", total_points=50)]

        stats = compute_user_week_stats(games, picks, [profile(1)])[0]

        assert stats["monday_night_pick"] == 50
        assert stats["monday_night_difference"] is None

    def test_paid_status_defaults_to_unpaid(self):
        stats = compute_user_week_stats(week_of(1), [], [profile(1), profile(2)], {2: True})
        assert [s["is_paid"] for s in stats] == [False, True]


# ---------------------------------------------------------------------------
# winner selection
# ---------------------------------------------------------------------------

class TestWeeklyWinners:

    def test_closest_monday_total_breaks_the_tie(self):
        games = week_of(10, mnf_total=40)
        picks = (
            picks_with_correct(1, games, 10, total_points=43)
            + picks_with_correct(2, games, 10, total_points=41)
            + picks_with_correct(3, games, 9, total_points=40)
            + picks_with_correct(4, games, 8, total_points=40)
        )
        profiles = [profile(i) for i in range(1, 5)]
        paid = {i: True for i in range(1, 5)}

        results = determine_weekly_winners(games, picks, profiles, paid)

        assert [s["user_id"] for s in results["paid_most_correct"]] == [2]
        assert results["paid_tied"] is False
        assert results["unpaid_most_correct"] == []

    def test_equal_differences_are_a_tie(self):
        games = week_of(10, mnf_total=40)
        picks = (
            picks_with_correct(1, games, 10, total_points=42)
            + picks_with_correct(2, games, 10, total_points=38)
        )
        results = determine_weekly_winners(
            games, picks, [profile(1), profile(2)], {1: True, 2: True}
        )

        assert [s["user_id"] for s in results["paid_most_correct"]] == [1, 2]
        assert results["paid_tied"] is True

    def test_no_predictions_means_every_candidate_wins(self):
        games = week_of(7, mnf_total=40)
        picks = picks_with_correct(1, games, 7) + picks_with_correct(2, games, 7)

        results = determine_weekly_winners(games, picks, [profile(1), profile(2)], {})

        assert [s["user_id"] for s in results["unpaid_most_correct"]] == [1, 2]
        assert results["unpaid_tied"] is True

    def test_candidate_without_prediction_loses_to_one_with_prediction(self):
        games = week_of(3, mnf_total=40)
        picks = (
            picks_with_correct(1, games, 3)
            + picks_with_correct(2, games, 3, total_points=70)
        )

        results = determine_weekly_winners(games, picks, [profile(1), profile(2)], {})

        assert [s["user_id"] for s in results["unpaid_most_correct"]] == [2]
        assert results["unpaid_tied"] is False

    def test_better_guess_never_beats_more_correct_picks(self):
        games = week_of(5, mnf_total=40)
        picks = (
            picks_with_correct(1, games, 5, total_points=90)
            + picks_with_correct(2, games, 4, total_points=40)
        )

        results = determine_weekly_winners(games, picks, [profile(1), profile(2)], {})

        assert [s["user_id"] for s in results["unpaid_most_correct"]] == [1]

    def test_users_without_picks_never_win(self):
        games = week_of(3, mnf_total=40)
        # Nobody got anything right, so a non-picker would otherwise tie at 0
        picks = picks_with_correct(1, games, 0, total_points=10)

        results = determine_weekly_winners(
            games, picks, [profile(1), profile(2)], {1: True, 2: True}
        )

        assert [s["user_id"] for s in results["paid_most_correct"]] == [1]

    def test_cohorts_are_decided_independently(self):
        games = week_of(4, mnf_total=40)
        picks = (
            picks_with_correct(1, games, 2)
            + picks_with_correct(2, games, 4)
            + picks_with_correct(3, games, 3)
        )
        profiles = [profile(1), profile(2), profile(3)]

        results = determine_weekly_winners(games, picks, profiles, {1: True})

        assert [s["user_id"] for s in results["paid_most_correct"]] == [1]
        assert [s["user_id"] for s in results["unpaid_most_correct"]] == [2]

    def test_empty_paid_cohort(self):
        games = week_of(2)
        picks = picks_with_correct(1, games, 2)

        results = determine_weekly_winners(games, picks, [profile(1)], {})

        assert results["paid_most_correct"] == []
        assert results["paid_tied"] is False

    def test_select_cohort_winners_with_no_eligible_rows(self):
        rows = [{"has_made_picks": False, "correct_picks": 5, "monday_night_difference": 0}]
        assert select_cohort_winners(rows) == []


# ---------------------------------------------------------------------------
# table sorting / active week
# ---------------------------------------------------------------------------

class TestSortWeekRows:

    def test_hides_users_without_picks_and_sorts_by_percentage(self):
        rows = [
            {"display_name": "Ann", "percentage": 50, "correct_picks": 2, "has_made_picks": True},
            {"display_name": "bob", "percentage": 75, "correct_picks": 3, "has_made_picks": True},
            {"display_name": "Cy", "percentage": 0, "correct_picks": 0, "has_made_picks": False},
        ]

        assert [r["display_name"] for r in sort_week_rows(rows)] == ["bob", "Ann"]
        assert [r["display_name"] for r in sort_week_rows(rows, "name")] == ["Ann", "bob"]


class TestActiveWeek:

    def test_first_week_with_unfinished_games(self):
        now = KICKOFF + timedelta(days=10)
        games = [
            game(1, week=1, status="Final", winner="KC"),
            game(2, week=2, status="Scheduled"),
            game(3, week=3, status="Scheduled"),
        ]
        assert determine_active_week(games, now=now) == 2

    def test_future_kickoff_keeps_week_active(self):
        now = KICKOFF - timedelta(days=1)
        games = [game(1, week=1, status="Final", winner="KC")]
        assert determine_active_week(games, now=now) == 1

    def test_all_final_falls_back_to_first_week(self):
        now = KICKOFF + timedelta(days=30)
        games = [
            game(1, week=1, winner="KC"),
            game(2, week=2, winner="KC"),
        ]
        assert determine_active_week(games, now=now) == 1

    def test_no_games_is_week_one(self):
        assert determine_active_week([]) == 1


# ---------------------------------------------------------------------------
# ancillary aggregates
# ---------------------------------------------------------------------------

class TestPickPercentages:

    def test_split_and_rounding(self):
        games = [game(1, home="KC", away="BUF", status="Scheduled")]
        picks = [pick(1, 1, "KC"), pick(2, 1, "KC"), pick(3, 1, "BUF"),
                 pick(4, 1, "KC"), pick(5, 1, "KC"), pick(6, 1, "KC"),
                 pick(7, 1, "BUF"), pick(8, 1, "KC")]

        row = pick_percentages(games, picks)[0]

        assert row["home_picks"] == 6
        assert row["away_picks"] == 2
        assert row["home_percentage"] == 75
        assert row["away_percentage"] == 25

    def test_game_without_picks(self):
        row = pick_percentages([game(1, status="Scheduled")], [])[0]
        assert row["total_picks"] == 0
        assert row["home_percentage"] == 0

    def test_sort_by_popularity(self):
        games = [game(1, home="KC", away="BUF"), game(2, home="DAL", away="NYG")]
        picks = [pick(1, 2, "DAL"), pick(2, 2, "NYG"), pick(1, 1, "KC")]

        rows = pick_percentages(games, picks, sort_by="popularity")

        assert [r["game_id"] for r in rows] == [2, 1]


class TestTeamTrends:

    def test_average_pick_percentage_and_record(self):
        games = [
            game(1, home="KC", away="BUF", week=1, winner="KC"),
            game(2, home="DEN", away="KC", week=2, winner="DEN"),
        ]
        picks = [
            pick(1, 1, "KC"), pick(2, 1, "KC"), pick(3, 1, "BUF"),
            pick(1, 2, "KC"),
        ]

        trends = {t["team"]: t for t in team_trends(games, picks)}

        assert trends["KC"]["total_picks"] == 3
        assert trends["KC"]["games_featured"] == 2
        assert trends["KC"]["average_pick_percentage"] == 75
        assert trends["KC"]["wins"] == 1
        assert trends["KC"]["losses"] == 1
        assert trends["DEN"]["average_pick_percentage"] == 0
        assert trends["BUF"]["losses"] == 1


class TestStreaks:

    def test_incorrect_pick_resets_current_streak(self):
        assert calculate_streaks([True, True, True, False]) == (0, 3)

    def test_current_and_best(self):
        assert calculate_streaks([True, False, True, True]) == (2, 2)
        assert calculate_streaks([]) == (0, 0)


class TestSeasonStandings:

    def test_only_final_games_count_and_unpicked_games_are_not_losses(self):
        games = [
            game(1, winner="KC"),
            game(2, home="DAL", away="NYG", winner="NYG"),
            game(3, home="SF", away="LA", status="Scheduled"),
            game(4, home="MIA", away="NE", winner="MIA"),
        ]
        picks = [
            pick(1, 1, "KC"), pick(1, 2, "DAL"), pick(1, 3, "SF"),
            pick(2, 1, "KC"), pick(2, 2, "NYG"), pick(2, 4, "MIA"),
        ]

        standings = season_standings(
            games, picks, [profile(1), profile(2), profile(3)],
            paid_win_counts={2: 2}, weekly_payout=25,
        )

        assert [s["user_id"] for s in standings] == [2, 1]
        first, second = standings
        assert first["correct_picks"] == 3
        assert first["total_games"] == 3
        assert first["win_percentage"] == 100.0
        assert first["current_streak"] == 3
        assert first["weekly_wins"] == 2
        assert first["total_winnings"] == 50
        assert first["rank"] == 1
        assert second["incorrect_picks"] == 1
        assert second["win_percentage"] == 50.0
        assert second["current_streak"] == 0
        assert second["best_streak"] == 1
