"""
Weekly winner persistence

Computes the week's winners with app.utils.scoring and records one
WeeklyWinner row per winner in each cohort. Storage runs once per
(season, week): existing rows short-circuit the run, and the unique
constraint on weekly_winners catches a concurrent second run.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import db
from app.models import Game, Pick, User, WeeklyPayment, WeeklyWinner
from app.utils.scoring import determine_weekly_winners

logger = logging.getLogger(__name__)

ALREADY_STORED = "Winners already stored"
NO_WINNERS = "No winners found"


def compute_week_results(season, week):
    """Load the week's rows and run winner determination"""
    games = Game.get_games_for_week(season, week)
    picks = Pick.get_picks_for_games([g.id for g in games])
    profiles = User.get_profiles()
    paid_status = WeeklyPayment.paid_status_for_week(week, season)
    return determine_weekly_winners(games, picks, profiles, paid_status)


def _winner_rows(season, week, results):
    rows = []
    for key, tied_key, is_paid in (
        ("paid_most_correct", "paid_tied", True),
        ("unpaid_most_correct", "unpaid_tied", False),
    ):
        for stats in results[key]:
            rows.append(
                WeeklyWinner(
                    season=season,
                    week=week,
                    user_id=stats["user_id"],
                    player_name=stats["username"],
                    correct_picks=stats["correct_picks"],
                    tiebreaker=stats["monday_night_difference"],
                    is_paid_winner=is_paid,
                    is_tied=results[tied_key],
                )
            )
    return rows


def store_weekly_winners(season, week):
    """
    Record the week's winners once.

    Returns (success, message, stored_rows).
    """
    if WeeklyWinner.exists_for_week(season, week):
        logger.info(f"Winners already stored for {season} week {week}")
        return False, ALREADY_STORED, []

    try:
        results = compute_week_results(season, week)
        rows = _winner_rows(season, week, results)
        if not rows:
            logger.info(f"No winners found for {season} week {week}")
            return False, NO_WINNERS, []

        db.session.add_all(rows)
        db.session.commit()

        names = ", ".join(row.player_name for row in rows if row.is_paid_winner)
        logger.info(
            f"Stored {len(rows)} winner rows for {season} week {week} (paid: {names or 'none'})"
        )
        return True, f"Stored {len(rows)} winners for week {week}", rows

    except IntegrityError:
        db.session.rollback()
        logger.warning(f"Concurrent winner storage detected for {season} week {week}")
        return False, ALREADY_STORED, []
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(
            f"Error storing winners for {season} week {week}: {str(e)}", exc_info=True
        )
        return False, "Failed to store winners", []


def check_and_store_winners(season):
    """
    Store winners for every week whose Monday night game is final and
    that has no stored winners yet. Returns the weeks stored.
    """
    stored_weeks = []
    final_mnf_games = (
        Game.real_games_query()
        .filter(
            Game.season == season,
            Game.is_monday_night.is_(True),
            Game.status == "Final",
        )
        .order_by(Game.week)
        .all()
    )

    for game in final_mnf_games:
        if WeeklyWinner.exists_for_week(season, game.week):
            continue
        success, message, _ = store_weekly_winners(season, game.week)
        if success:
            stored_weeks.append(game.week)
        else:
            logger.info(f"Week {game.week}: {message}")

    return stored_weeks
