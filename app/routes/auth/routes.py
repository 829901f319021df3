import logging
from urllib.parse import urlparse

from flask import flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import IntegrityError

from app import db, limiter, login_manager
from app.forms.auth import (
    EditProfileForm,
    LoginForm,
    RequestResetForm,
    ResetPasswordForm,
    SignupForm,
)
from app.models import User, WeeklyWinner
from app.routes.auth import bp
from app.services import stats_service

logger = logging.getLogger(__name__)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@bp.route("/login", methods=["GET", "POST"])
@limiter.limit("10 per minute")
def login():
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))

    form = LoginForm()
    if form.validate_on_submit():
        login_value = form.login.data.strip()
        user = User.find_by_login(login_value) or User.find_by_login(
            login_value.lower()
        )

        if user and user.check_password(form.password.data):
            if not user.is_active:
                flash(
                    "Your account has been deactivated. Please contact the pool admin.",
                    "error",
                )
                return render_template("auth/login.html", form=form)

            login_user(user, remember=form.remember_me.data)
            user.update_last_login()

            next_page = request.args.get("next")
            if not next_page or urlparse(next_page).netloc != "":
                next_page = url_for("main.make_picks")

            flash(f"Welcome back, {user.display_name}!", "success")
            return redirect(next_page)

        logger.info(f"Failed login attempt for '{login_value}'")
        flash("Invalid email/username or password.", "error")

    return render_template("auth/login.html", form=form)


@bp.route("/signup", methods=["GET", "POST"])
@limiter.limit("5 per hour")
def signup():
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))

    form = SignupForm()
    if form.validate_on_submit():
        user = User(
            username=form.username.data.strip(),
            email=form.email.data.strip().lower(),
            first_name=form.first_name.data.strip(),
            last_name=form.last_name.data.strip(),
        )
        user.set_password(form.password.data)

        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            flash("That username or email is already registered.", "error")
            return render_template("auth/signup.html", form=form)

        logger.info(f"New user signed up: {user.username}")
        flash("Account created! Make your picks for the week.", "success")
        login_user(user)
        return redirect(url_for("main.make_picks"))

    return render_template("auth/signup.html", form=form)


@bp.route("/logout")
@login_required
def logout():
    logout_user()
    flash("You have been logged out successfully.", "info")
    return redirect(url_for("auth.login"))


@bp.route("/profile")
@login_required
def profile():
    season = stats_service.current_season()
    standing = stats_service.user_standing(season, current_user)
    week = stats_service.requested_week(season)
    week_stats = stats_service.user_week_stats(season, week, current_user)

    weekly_wins = (
        WeeklyWinner.query.filter_by(
            season=season.year, user_id=current_user.id, is_paid_winner=True
        )
        .order_by(WeeklyWinner.week)
        .all()
    )

    return render_template(
        "auth/profile.html",
        user=current_user,
        season=season,
        standing=standing,
        week=week,
        week_stats=week_stats,
        weekly_wins=weekly_wins,
    )


@bp.route("/profile/edit", methods=["GET", "POST"])
@login_required
def edit_profile():
    form = EditProfileForm(original_username=current_user.username, obj=current_user)
    if form.validate_on_submit():
        current_user.username = form.username.data.strip()
        current_user.first_name = (form.first_name.data or "").strip()
        current_user.last_name = (form.last_name.data or "").strip()

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            flash("Username already taken. Please choose a different username.", "error")
            return render_template("auth/edit_profile.html", form=form)

        flash("Profile updated successfully!", "success")
        return redirect(url_for("auth.profile"))

    return render_template("auth/edit_profile.html", form=form)


@bp.route("/forgot_password", methods=["GET", "POST"])
@limiter.limit("20 per hour")
def forgot_password():
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))

    form = RequestResetForm()
    if form.validate_on_submit():
        user = User.query.filter_by(email=form.email.data.strip().lower()).first()
        if user:
            token = user.generate_reset_token()
            db.session.commit()

            from app.utils.email_service import EmailService

            if not EmailService().send_password_reset_email(user, token):
                logger.warning(f"Failed to send password reset email to {user.email}")

        # Same message either way so unknown addresses are not revealed
        flash(
            "If an account with that email exists, password reset instructions have been sent.",
            "info",
        )
        return redirect(url_for("auth.login"))

    return render_template("auth/forgot_password.html", form=form)


@bp.route("/reset_password/<token>", methods=["GET", "POST"])
@limiter.limit("30 per hour")
def reset_password(token):
    if current_user.is_authenticated:
        return redirect(url_for("main.index"))

    user = User.verify_reset_token(token)
    if not user:
        flash("Invalid or expired password reset link.", "error")
        return redirect(url_for("auth.forgot_password"))

    form = ResetPasswordForm()
    if form.validate_on_submit():
        user.set_password(form.password.data)
        user.clear_reset_token()
        db.session.commit()

        flash(
            "Your password has been reset successfully. Please log in with your new password.",
            "success",
        )
        return redirect(url_for("auth.login"))

    return render_template("auth/reset_password.html", form=form, token=token)
