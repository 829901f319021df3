import logging
from functools import wraps

from flask import abort, jsonify, request
from flask_login import current_user, login_required

from app import db, limiter
from app.models import Game, Pick, PickError, Season, User, WeeklyPayment, WeeklyWinner
from app.routes.api import bp
from app.services import stats_service
from app.services.winner_service import store_weekly_winners
from app.utils.cache_utils import cached_route, invalidate_model_cache
from app.utils.data_sync import DataSync, group_games_by_week

logger = logging.getLogger(__name__)


def add_security_headers(f):
    """Add no-cache headers to API responses"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = f(*args, **kwargs)
        if hasattr(response, "headers"):
            response.headers["Cache-Control"] = (
                "no-store, no-cache, must-revalidate, max-age=0"
            )
        return response

    return decorated_function


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            logger.warning(f"Non-admin {current_user.username} tried {request.path}")
            abort(403)
        return f(*args, **kwargs)

    return decorated_function


def _season_from_request():
    year = request.args.get("season", type=int)
    if year:
        season = Season.query.filter_by(year=year).first()
        if season is None:
            abort(404)
        return season
    return stats_service.current_season()


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400)
    return data


@bp.route("/games")
@cached_route(timeout=120, key_prefix="games")
def games():
    """Stored games grouped as {"Week N": [...]}, each week sorted by kickoff"""
    season = _season_from_request()
    return group_games_by_week(Game.get_all_for_season(season.year))


@bp.route("/weeks/current")
def current_week():
    season = stats_service.current_season()
    return jsonify({"season": season.year, "week": Game.get_active_week(season.year)})


@bp.route("/weeks/<int:week>/results")
@login_required
def week_results(week):
    """Per-user stats and both cohorts' winners for a week"""
    season = _season_from_request()
    overview = stats_service.week_overview(season, week)

    mnf_game = overview["monday_night_game"]
    hide_totals = mnf_game is not None and not mnf_game.is_locked()

    def strip(rows):
        stripped = []
        for row in rows:
            row = {k: v for k, v in row.items() if k != "picks"}
            # Other players' Monday totals stay hidden until kickoff
            if hide_totals and row["user_id"] != current_user.id:
                row["monday_night_pick"] = None
                row["monday_night_difference"] = None
            stripped.append(row)
        return stripped

    return jsonify(
        {
            "season": season.year,
            "week": week,
            "stats": strip(overview["stats"]),
            "paid_most_correct": strip(overview["paid_most_correct"]),
            "unpaid_most_correct": strip(overview["unpaid_most_correct"]),
            "paid_tied": overview["paid_tied"],
            "unpaid_tied": overview["unpaid_tied"],
            "monday_night_final": overview["monday_night_final"],
            "winners_stored": overview["winners_stored"],
        }
    )


@bp.route("/weeks/<int:week>/summary")
@login_required
def week_summary(week):
    season = _season_from_request()
    sort_by = request.args.get("sort", "percentage")
    summary = stats_service.week_pick_summary(season, week, sort_by=sort_by)
    for row in summary:
        row["start_time"] = row["start_time"].isoformat() if row["start_time"] else None
    return jsonify({"season": season.year, "week": week, "games": summary})


@bp.route("/standings")
@login_required
def standings():
    season = _season_from_request()
    return jsonify(
        {"season": season.year, "standings": stats_service.standings(season)}
    )


@bp.route("/picks", methods=["GET"])
@login_required
@add_security_headers
def user_picks():
    """Current user's picks for a week"""
    season = stats_service.current_season()
    week = stats_service.requested_week(season)
    game_ids = [g.id for g in Game.get_games_for_week(season.year, week)]
    picks = [p for p in Pick.get_picks_for_games(game_ids) if p.user_id == current_user.id]
    return jsonify({"week": week, "picks": [p.to_dict() for p in picks]})


@bp.route("/picks", methods=["POST"])
@login_required
@limiter.limit("120 per minute")
@add_security_headers
def submit_pick():
    """Upsert the current user's pick; body: game_id, selected_team, total_points"""
    data = _json_body()

    game_id = _as_int(data.get("game_id"))
    game = db.session.get(Game, game_id) if game_id else None
    if game is None:
        return jsonify({"error": "Game not found"}), 404

    team = data.get("selected_team")
    total_points = data.get("total_points")
    if not team and total_points is None:
        return jsonify({"error": "Nothing to save"}), 400

    try:
        pick = None
        if team:
            pick = Pick.submit_pick(current_user, game, str(team).upper())
        if total_points is not None:
            pick = Pick.submit_total_points(current_user, game, total_points)
    except PickError as e:
        db.session.rollback()
        return jsonify({"success": False, "error": str(e)}), 400

    invalidate_model_cache("Pick")
    return jsonify({"success": True, "pick": pick.to_dict()})


@bp.route("/payments/toggle", methods=["POST"])
@login_required
@admin_required
def toggle_payment():
    """Flip (or set, when is_paid is given) a user's paid flag for a week"""
    data = _json_body()
    user_id = _as_int(data.get("user_id"))
    user = db.session.get(User, user_id) if user_id else None
    week = _as_int(data.get("week"))
    if user is None:
        return jsonify({"error": "User not found"}), 404
    if week is None or week < 1:
        return jsonify({"error": "A valid week is required"}), 400

    season_year = _as_int(data.get("season")) or stats_service.current_season().year

    if "is_paid" in data:
        if not isinstance(data["is_paid"], bool):
            return jsonify({"error": "is_paid must be true or false"}), 400
        payment = WeeklyPayment.set_paid(user.id, week, season_year, data["is_paid"])
    else:
        payment = WeeklyPayment.toggle(user.id, week, season_year)

    logger.info(
        f"{current_user.username} marked {user.username} "
        f"{'paid' if payment.is_paid else 'unpaid'} for week {week}"
    )
    return jsonify({"success": True, "payment": payment.to_dict()})


@bp.route("/winners/store", methods=["POST"])
@login_required
@admin_required
def store_winners():
    data = request.get_json(silent=True) or {}
    season = stats_service.current_season()
    week = _as_int(data.get("week")) or Game.get_active_week(season.year)

    success, message, rows = store_weekly_winners(season.year, week)
    if success:
        from app.socketio_handlers import broadcast_winners_stored

        invalidate_model_cache("WeeklyWinner")
        broadcast_winners_stored(season.year, week, rows)

    return jsonify(
        {
            "success": success,
            "message": message,
            "week": week,
            "winners": [row.to_dict() for row in rows],
        }
    )


@bp.route("/winners")
@login_required
def winners():
    season = _season_from_request()
    return jsonify(
        {
            "season": season.year,
            "winners": [w.to_dict() for w in WeeklyWinner.get_for_season(season.year)],
        }
    )


@bp.route("/update-scores", methods=["POST"])
@login_required
@admin_required
def update_scores():
    """Pull the scoreboard for the current week"""
    season = stats_service.current_season()
    success, result = DataSync().update_scores(season.year)
    if not success:
        return jsonify({"error": result["message"]}), 502

    if result["updated_game_ids"]:
        from app.socketio_handlers import broadcast_score_update

        invalidate_model_cache("Game")
        for game in Game.query.filter(Game.id.in_(result["updated_game_ids"])):
            broadcast_score_update(game)

    return jsonify(result)


@bp.route("/fetch-schedule", methods=["POST"])
@login_required
@admin_required
def fetch_schedule():
    """Pull the season schedule and return it grouped by week"""
    season = stats_service.current_season()
    success, message = DataSync().sync_schedule(season.year)
    if not success:
        return jsonify({"error": message}), 502

    invalidate_model_cache("Game")
    season.update_current_week()
    return jsonify(
        {
            "message": message,
            "weeks": group_games_by_week(Game.get_all_for_season(season.year)),
        }
    )


@bp.route("/scheduler/status")
@login_required
@admin_required
def scheduler_status():
    from app.services.scheduler_service import scheduler_service
    from app.socketio_handlers import get_connection_stats
    from app.utils.cache_utils import get_cache_stats

    status = scheduler_service.get_status()
    status["connections"] = get_connection_stats()
    status["cache"] = get_cache_stats()
    return jsonify(status)


@bp.route("/scheduler/run/<job>", methods=["POST"])
@login_required
@admin_required
def run_scheduler_job(job):
    """Run one background job now: scores, winners or schedule"""
    from app.services.scheduler_service import scheduler_service

    success, message = scheduler_service.force_sync(job)
    if not success:
        return jsonify({"error": message}), 400
    return jsonify({"success": True, "message": message})
