"""
Loads rows for the scoring functions used by pages, the API and the CLI
"""

from flask import request

from app.models import Game, Pick, Season, User, WeeklyPayment, WeeklyWinner
from app.utils.scoring import (
    compute_user_week_stats,
    determine_weekly_winners,
    pick_percentages,
    season_standings,
    team_trends,
)


def current_season():
    return Season.get_or_create_current()


def requested_week(season):
    """The ?week= argument if given, otherwise the active week"""
    week = request.args.get("week", type=int)
    if week and week > 0:
        return week
    return Game.get_active_week(season.year)


def week_overview(season, week):
    """Everything the all-picks page needs for one week"""
    games = Game.get_games_for_week(season.year, week)
    picks = Pick.get_picks_for_games([g.id for g in games])
    profiles = User.get_profiles()
    paid_status = WeeklyPayment.paid_status_for_week(week, season.year)

    results = determine_weekly_winners(games, picks, profiles, paid_status)
    mnf_game = Game.get_monday_night_game(season.year, week)
    results.update(
        {
            "games": games,
            "monday_night_game": mnf_game,
            "monday_night_final": bool(mnf_game and mnf_game.is_final),
            "winners_stored": WeeklyWinner.exists_for_week(season.year, week),
        }
    )
    return results


def user_week_stats(season, week, user):
    games = Game.get_games_for_week(season.year, week)
    picks = [
        p for p in Pick.get_picks_for_games([g.id for g in games]) if p.user_id == user.id
    ]
    return compute_user_week_stats(games, picks, [user])[0]


def week_pick_summary(season, week, sort_by="percentage"):
    games = Game.get_games_for_week(season.year, week)
    picks = Pick.get_picks_for_games([g.id for g in games])
    return pick_percentages(games, picks, sort_by=sort_by)


def season_team_trends(season):
    games = Game.get_all_for_season(season.year)
    picks = Pick.get_picks_for_games([g.id for g in games])
    return team_trends(games, picks)


def standings(season):
    games = Game.get_all_for_season(season.year)
    picks = Pick.get_picks_for_games([g.id for g in games])
    return season_standings(
        games,
        picks,
        User.get_profiles(),
        paid_win_counts=WeeklyWinner.paid_win_counts(season.year),
        weekly_payout=season.weekly_payout,
    )


def user_standing(season, user):
    for entry in standings(season):
        if entry["user_id"] == user.id:
            return entry
    return None
