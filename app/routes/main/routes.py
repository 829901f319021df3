import logging
from datetime import datetime, timezone

from flask import flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from app import db, limiter
from app.forms.picks import MakePickForm, MondayTotalForm
from app.models import Game, Pick, PickError, User, WeeklyWinner
from app.routes.main import bp
from app.services import stats_service
from app.utils.cache_utils import invalidate_model_cache
from app.utils.scoring import sort_week_rows

logger = logging.getLogger(__name__)

PICK_SORTS = ("percentage", "popularity", "team")
TABLE_SORTS = ("percentage", "name")


def _week_nav(season, week):
    weeks = Game.get_weeks(season.year)
    return {
        "weeks": weeks,
        "previous_week": max((w for w in weeks if w < week), default=None),
        "next_week": min((w for w in weeks if w > week), default=None),
    }


@bp.route("/")
def index():
    """Home page"""
    if current_user.is_authenticated:
        return redirect(url_for("main.make_picks"))

    season = stats_service.current_season()
    stats = {
        "total_users": User.query.filter_by(is_active=True).count(),
        "season": season,
        "active_week": Game.get_active_week(season.year),
    }
    return render_template("main/index.html", stats=stats)


@bp.route("/make-picks")
@login_required
def make_picks():
    """The week's games with the user's picks and lock state"""
    season = stats_service.current_season()
    week = stats_service.requested_week(season)
    games = Game.get_games_for_week(season.year, week)
    picks = {
        p.game_id: p
        for p in Pick.get_picks_for_games([g.id for g in games])
        if p.user_id == current_user.id
    }
    now = datetime.now(timezone.utc)

    return render_template(
        "main/make_picks.html",
        season=season,
        week=week,
        games=games,
        picks=picks,
        now=now,
        pick_form=MakePickForm(),
        total_form=MondayTotalForm(),
        **_week_nav(season, week),
    )


@bp.route("/make-picks", methods=["POST"])
@login_required
@limiter.limit("120 per minute")
def submit_pick():
    """Save one team pick or the Monday night total from the picks page"""
    is_ajax = request.headers.get("X-Requested-With") == "XMLHttpRequest"
    week = request.form.get("week", type=int)

    game = db.session.get(Game, request.form.get("game_id", type=int) or 0)
    if game is None:
        if is_ajax:
            return jsonify({"success": False, "error": "Game not found"}), 404
        flash("Game not found.", "error")
        return redirect(url_for("main.make_picks", week=week))

    try:
        if "total_points" in request.form:
            form = MondayTotalForm()
            if not form.validate_on_submit():
                raise PickError("Total points must be a whole number of 0 or more")
            pick = Pick.submit_total_points(current_user, game, form.total_points.data)
            message = f"Monday night total saved: {pick.total_points}"
        else:
            form = MakePickForm()
            if not form.validate_on_submit():
                raise PickError("Choose a team to pick")
            pick = Pick.submit_pick(current_user, game, form.selected_team.data.upper())
            message = f"Picked {pick.selected_team} for {game.label}"
    except PickError as e:
        db.session.rollback()
        if is_ajax:
            return jsonify({"success": False, "error": str(e)}), 400
        flash(str(e), "error")
        return redirect(url_for("main.make_picks", week=game.week))

    invalidate_model_cache("Pick")
    logger.debug(f"{current_user.username}: {message}")

    if is_ajax:
        return jsonify({"success": True, "message": message, "pick": pick.to_dict()})
    flash(message, "success")
    return redirect(url_for("main.make_picks", week=game.week))


@bp.route("/all-picks")
@login_required
def all_picks():
    """Everyone's picks for a week with the paid and unpaid winners"""
    season = stats_service.current_season()
    week = stats_service.requested_week(season)
    sort_by = request.args.get("sort", "percentage")
    if sort_by not in TABLE_SORTS:
        sort_by = "percentage"

    overview = stats_service.week_overview(season, week)
    now = datetime.now(timezone.utc)

    return render_template(
        "main/all_picks.html",
        season=season,
        week=week,
        sort_by=sort_by,
        rows=sort_week_rows(overview["stats"], sort_by),
        games=overview["games"],
        visible_games=[g for g in overview["games"] if g.is_locked(now)],
        overview=overview,
        now=now,
        **_week_nav(season, week),
    )


@bp.route("/pick-summary")
@login_required
def pick_summary():
    """How the pool picked each game, plus team trends for the season"""
    season = stats_service.current_season()
    week = stats_service.requested_week(season)
    sort_by = request.args.get("sort", "percentage")
    if sort_by not in PICK_SORTS:
        sort_by = "percentage"

    return render_template(
        "main/pick_summary.html",
        season=season,
        week=week,
        sort_by=sort_by,
        summary=stats_service.week_pick_summary(season, week, sort_by=sort_by),
        trends=stats_service.season_team_trends(season),
        **_week_nav(season, week),
    )


@bp.route("/standings")
@login_required
def standings():
    """Season standings and the weekly winners history"""
    season = stats_service.current_season()
    tab = request.args.get("tab", "standings")

    return render_template(
        "main/standings.html",
        season=season,
        tab=tab,
        standings=stats_service.standings(season),
        weekly_winners=WeeklyWinner.get_for_season(season.year),
    )


@bp.route("/rules")
def rules():
    """Game rules page"""
    season = stats_service.current_season()
    return render_template("main/rules.html", season=season)


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    return jsonify(
        {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
    )
