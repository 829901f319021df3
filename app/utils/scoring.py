"""
Scoring Engine for MNF Pick'em

Pure functions over games, picks and profiles. Nothing here touches the
database; callers load rows (models or any object with the same attributes)
and pass them in, so every page and the winner service share one
implementation of the weekly rules.

Weekly winners are decided per cohort (paid / unpaid):
    1. only users who made at least one pick that week are eligible
    2. the most correct picks wins
    3. ties are broken by the closest Monday night total points prediction
    4. if nobody in the tie predicted a total, everyone in the tie wins
"""

import math
from datetime import datetime, timezone

FINAL = "Final"
BYE = "bye"


def round_half_up(value):
    """Round to the nearest integer with .5 going up (round(0.5) == 1)"""
    return int(math.floor(value + 0.5))


def percentage(part, whole):
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def is_bye_game(game):
    for team in (game.home_team, game.away_team):
        if not team or not str(team).strip() or str(team).strip().lower() == BYE:
            return True
    return False


def _is_final(game):
    return game.status == FINAL


def _as_utc(value):
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def find_monday_night_game(games):
    for game in games:
        if game.is_monday_night:
            return game
    return None


def compute_user_week_stats(games, picks, profiles, paid_status=None):
    """
    Per-user statistics for one week.

    Args:
        games: the week's games (bye placeholders are ignored)
        picks: picks for those games
        profiles: users, in display order
        paid_status: optional map of user_id -> is_paid (missing means unpaid)

    Returns:
        list of dicts, one per profile, in profile order
    """
    paid_status = paid_status or {}
    week_games = [g for g in games if not is_bye_game(g)]
    game_ids = {g.id for g in week_games}
    total_games = len(week_games)

    mnf_game = find_monday_night_game(week_games)
    actual_total = mnf_game.actual_total_points if mnf_game else None

    picks_by_user = {}
    for pick in picks:
        if pick.game_id in game_ids:
            picks_by_user.setdefault(pick.user_id, {})[pick.game_id] = pick

    stats = []
    for profile in profiles:
        user_picks = picks_by_user.get(profile.id, {})

        correct = 0
        for game in week_games:
            pick = user_picks.get(game.id)
            if (
                pick
                and _is_final(game)
                and game.winner is not None
                and pick.selected_team == game.winner
            ):
                correct += 1

        mnf_pick = None
        if mnf_game is not None and mnf_game.id in user_picks:
            mnf_pick = user_picks[mnf_game.id].total_points

        difference = None
        if mnf_pick is not None and actual_total is not None:
            difference = abs(mnf_pick - actual_total)

        stats.append(
            {
                "user_id": profile.id,
                "username": profile.username,
                "display_name": getattr(profile, "display_name", profile.username),
                "correct_picks": correct,
                "total_picks": total_games,
                "percentage": percentage(correct, total_games),
                "has_made_picks": bool(user_picks),
                "monday_night_pick": mnf_pick,
                "actual_monday_total": actual_total,
                "monday_night_difference": difference,
                "is_paid": bool(paid_status.get(profile.id, False)),
                "picks": {
                    game_id: pick.selected_team for game_id, pick in user_picks.items()
                },
            }
        )
    return stats


def select_cohort_winners(cohort_stats):
    """Winners among one cohort's stats rows, in the order given"""
    eligible = [s for s in cohort_stats if s["has_made_picks"]]
    if not eligible:
        return []

    max_correct = max(s["correct_picks"] for s in eligible)
    candidates = [s for s in eligible if s["correct_picks"] == max_correct]

    differences = [
        s["monday_night_difference"]
        for s in candidates
        if s["monday_night_difference"] is not None
    ]
    if not differences:
        return candidates

    best = min(differences)
    return [s for s in candidates if s["monday_night_difference"] == best]


def determine_weekly_winners(games, picks, profiles, paid_status):
    """
    Decide the week's paid and unpaid winners.

    Returns a dict with the per-user ``stats`` and, for each cohort, the
    winning rows (``paid_most_correct`` / ``unpaid_most_correct``) and
    whether the cohort ended in a tie.
    """
    stats = compute_user_week_stats(games, picks, profiles, paid_status)

    paid_winners = select_cohort_winners([s for s in stats if s["is_paid"]])
    unpaid_winners = select_cohort_winners([s for s in stats if not s["is_paid"]])

    return {
        "stats": stats,
        "paid_most_correct": paid_winners,
        "unpaid_most_correct": unpaid_winners,
        "paid_tied": len(paid_winners) > 1,
        "unpaid_tied": len(unpaid_winners) > 1,
    }


def sort_week_rows(stats, sort_by="percentage"):
    """Rows for the all-picks table: users who picked, sorted"""
    rows = [s for s in stats if s["has_made_picks"]]
    if sort_by == "name":
        return sorted(rows, key=lambda s: s["display_name"].lower())
    return sorted(rows, key=lambda s: (-s["percentage"], -s["correct_picks"]))


def determine_active_week(games, now=None):
    """
    The week to show by default.

    The first week (ascending) with a game still to be played or in
    progress. If every week is finished, the first all-final week seen,
    then the last week with games, then week 1.
    """
    now = now or datetime.now(timezone.utc)

    weeks = {}
    for game in games:
        if is_bye_game(game):
            continue
        weeks.setdefault(game.week, []).append(game)

    if not weeks:
        return 1

    fallback = None
    for week in sorted(weeks):
        week_games = weeks[week]
        for game in week_games:
            kickoff = _as_utc(game.start_time)
            if kickoff > now or not _is_final(game):
                return week
        if fallback is None:
            fallback = week

    if fallback is not None:
        return fallback
    return max(weeks)


def pick_percentages(games, picks, sort_by="percentage"):
    """Home/away pick split for each game of a week"""
    counts = {}
    for pick in picks:
        counts.setdefault(pick.game_id, {})
        team_counts = counts[pick.game_id]
        team_counts[pick.selected_team] = team_counts.get(pick.selected_team, 0) + 1

    summary = []
    for game in games:
        if is_bye_game(game):
            continue
        team_counts = counts.get(game.id, {})
        home = team_counts.get(game.home_team, 0)
        away = team_counts.get(game.away_team, 0)
        total = home + away
        summary.append(
            {
                "game_id": game.id,
                "week": game.week,
                "home_team": game.home_team,
                "away_team": game.away_team,
                "start_time": game.start_time,
                "is_monday_night": bool(game.is_monday_night),
                "home_picks": home,
                "away_picks": away,
                "total_picks": total,
                "home_percentage": percentage(home, total),
                "away_percentage": percentage(away, total),
                "winner": game.winner,
                "status": game.status,
            }
        )

    if sort_by == "popularity":
        summary.sort(key=lambda row: -row["total_picks"])
    elif sort_by == "team":
        summary.sort(key=lambda row: row["home_team"])
    else:
        summary.sort(
            key=lambda row: -max(row["home_percentage"], row["away_percentage"])
        )
    return summary


def team_trends(games, picks):
    """Per-team pick popularity and record across all weeks"""
    picks_by_game = {}
    for pick in picks:
        picks_by_game.setdefault(pick.game_id, []).append(pick)

    trends = {}
    for game in games:
        if is_bye_game(game):
            continue
        game_picks = picks_by_game.get(game.id, [])
        for team in (game.home_team, game.away_team):
            trend = trends.setdefault(
                team,
                {
                    "team": team,
                    "total_picks": 0,
                    "games_featured": 0,
                    "picks_in_games": 0,
                    "wins": 0,
                    "losses": 0,
                },
            )
            trend["games_featured"] += 1
            trend["total_picks"] += sum(1 for p in game_picks if p.selected_team == team)
            trend["picks_in_games"] += len(game_picks)

            if _is_final(game) and game.winner is not None:
                if game.winner == team:
                    trend["wins"] += 1
                else:
                    trend["losses"] += 1

    results = []
    for trend in trends.values():
        picks_in_games = trend.pop("picks_in_games")
        trend["average_pick_percentage"] = percentage(
            trend["total_picks"], picks_in_games
        )
        results.append(trend)

    results.sort(key=lambda t: (-t["average_pick_percentage"], t["team"]))
    return results


def calculate_streaks(results):
    """
    (current_streak, best_streak) from time-ordered True/False results.

    The current streak is the run of correct picks ending at the latest
    result; an incorrect pick resets it to 0.
    """
    current = 0
    best = 0
    for correct in results:
        if correct:
            current += 1
            best = max(best, current)
        else:
            current = 0
    return current, best


def season_standings(games, picks, profiles, paid_win_counts=None, weekly_payout=25):
    """
    Season table over finalized games only.

    Games a user did not pick are not counted as losses. Users without any
    finalized pick are left out.
    """
    paid_win_counts = paid_win_counts or {}
    final_games = {
        g.id: g
        for g in games
        if not is_bye_game(g) and _is_final(g) and g.winner is not None
    }

    picks_by_user = {}
    for pick in picks:
        if pick.game_id in final_games:
            picks_by_user.setdefault(pick.user_id, []).append(pick)

    standings = []
    for profile in profiles:
        user_picks = picks_by_user.get(profile.id, [])
        if not user_picks:
            continue

        user_picks.sort(key=lambda p: _as_utc(final_games[p.game_id].start_time))
        results = [p.selected_team == final_games[p.game_id].winner for p in user_picks]

        correct = sum(1 for r in results if r)
        incorrect = len(results) - correct
        current_streak, best_streak = calculate_streaks(results)
        weekly_wins = paid_win_counts.get(profile.id, 0)

        standings.append(
            {
                "user_id": profile.id,
                "username": profile.username,
                "display_name": getattr(profile, "display_name", profile.username),
                "total_games": len(results),
                "correct_picks": correct,
                "incorrect_picks": incorrect,
                "win_percentage": round(correct / len(results) * 100, 1),
                "current_streak": current_streak,
                "best_streak": best_streak,
                "weekly_wins": weekly_wins,
                "total_winnings": weekly_wins * weekly_payout,
            }
        )

    standings.sort(key=lambda s: (-s["correct_picks"], -s["win_percentage"]))
    for rank, entry in enumerate(standings, start=1):
        entry["rank"] = rank
    return standings
