#!/usr/bin/env python3
"""
MNF Pick'em Management CLI

Command-line management for seasons, score syncing, weekly winners,
users and the database.
"""

import logging
import os

import click
from flask.cli import with_appcontext
from flask_migrate import downgrade, migrate, upgrade
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import create_app, db
from app.models import Game, Season, User, WeeklyPayment, WeeklyWinner
from app.services.winner_service import compute_week_results, store_weekly_winners
from app.utils.data_sync import DataSync

app = create_app()


def _season_or_current(year):
    if year:
        return Season.query.filter_by(year=year).first()
    return Season.get_current_season()


@click.group()
def cli():
    """MNF Pick'em Management CLI"""
    pass


# Season Management Commands
@cli.group()
def season():
    """Season management commands"""
    pass


@season.command()
@click.argument("year", type=int)
@click.option("--payout", type=int, default=25, show_default=True, help="Dollars per weekly win")
@click.option("--activate", is_flag=True, help="Activate this season")
@with_appcontext
def create(year, payout, activate):
    """Create a new season"""
    if Season.query.filter_by(year=year).first():
        click.echo(f"Season {year} already exists!")
        return

    try:
        season_obj = Season.create_season(year, weekly_payout=payout)
        db.session.commit()
        click.echo(f"✅ Created season {year} (${payout} per weekly win)")

        if activate:
            season_obj.activate()
            click.echo(f"✅ Activated season {year}")

    except IntegrityError as e:
        db.session.rollback()
        click.echo(f"❌ Season {year} already exists!")
        logging.error(f"Season creation failed - integrity error: {e}")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error creating season: {str(e)}")
        logging.error(f"Season creation failed - SQL error: {e}")


@season.command()
@click.argument("year", type=int)
@with_appcontext
def activate(year):
    """Activate a season"""
    season_obj = Season.query.filter_by(year=year).first()
    if not season_obj:
        click.echo(f"❌ Season {year} not found!")
        return

    season_obj.activate()
    click.echo(f"✅ Activated season {year}")


@season.command("list")
@with_appcontext
def list_seasons():
    """List all seasons"""
    seasons = Season.query.order_by(Season.year.desc()).all()

    if not seasons:
        click.echo("No seasons found.")
        return

    click.echo("Seasons:")
    for s in seasons:
        status = "🟢 ACTIVE" if s.is_active else "⚪ Inactive"
        click.echo(f"  {s.year}: {status} - Week {s.current_week} - ${s.weekly_payout}/win")


# Data Sync Commands
@cli.group()
def sync():
    """Score feed commands"""
    pass


@sync.command()
@click.option("--year", type=int, help="Season year (default: current season)")
@with_appcontext
def schedule(year):
    """Fetch the season schedule and upsert games"""
    season_obj = _season_or_current(year) or Season.get_or_create_current()
    click.echo(f"📅 Fetching schedule for {season_obj.year}...")

    success, message = DataSync().sync_schedule(season_obj.year)
    if success:
        season_obj.update_current_week()
        click.echo(f"✅ {message}")
    else:
        click.echo(f"❌ {message}")


@sync.command()
@click.option("--year", type=int, help="Season year (default: current season)")
@with_appcontext
def scores(year):
    """Update scores for the current week from the scoreboard"""
    season_obj = _season_or_current(year) or Season.get_or_create_current()

    success, result = DataSync().update_scores(season_obj.year)
    icon = "✅" if success else "❌"
    click.echo(f"{icon} {result['message']}")
    if success and result["week"]:
        click.echo(f"   Games updated: {result['updated_count']}")
        if result["monday_night_game_updated"]:
            click.echo("   🏈 Monday night total points recorded")


# Weekly Winner Commands
@cli.group()
def winners():
    """Weekly winner commands"""
    pass


@winners.command()
@click.argument("week", type=int)
@click.option("--year", type=int, help="Season year (default: current season)")
@with_appcontext
def store(week, year):
    """Compute and record a week's winners"""
    season_obj = _season_or_current(year)
    if not season_obj:
        click.echo("❌ No season found")
        return

    success, message, rows = store_weekly_winners(season_obj.year, week)
    click.echo(f"{'✅' if success else '⚠️ '} {message}")
    for row in rows:
        kind = "paid" if row.is_paid_winner else "unpaid"
        click.echo(f"   {row.player_name}: {row.correct_picks} correct ({kind})")


@winners.command()
@click.argument("week", type=int)
@click.option("--year", type=int, help="Season year (default: current season)")
@with_appcontext
def show(week, year):
    """Show the live standings for a week without storing anything"""
    season_obj = _season_or_current(year)
    if not season_obj:
        click.echo("❌ No season found")
        return

    results = compute_week_results(season_obj.year, week)
    click.echo(f"🏈 Week {week}, {season_obj.year}")
    for stats in results["stats"]:
        if not stats["has_made_picks"]:
            continue
        paid = "💰" if stats["is_paid"] else "  "
        diff = stats["monday_night_difference"]
        click.echo(
            f"  {paid} {stats['username']}: {stats['correct_picks']}/{stats['total_picks']} "
            f"({stats['percentage']}%) MNF diff: {diff if diff is not None else '-'}"
        )

    for label, key, tied in (
        ("Paid", "paid_most_correct", "paid_tied"),
        ("Unpaid", "unpaid_most_correct", "unpaid_tied"),
    ):
        names = ", ".join(s["username"] for s in results[key]) or "none"
        click.echo(f"  {label} winner(s): {names}{' (tied)' if results[tied] else ''}")

    stored = WeeklyWinner.exists_for_week(season_obj.year, week)
    click.echo(f"  Stored: {'yes' if stored else 'no'}")


# Payment Commands
@cli.command("mark-paid")
@click.argument("username")
@click.argument("week", type=int)
@click.option("--unpaid", is_flag=True, help="Mark as unpaid instead")
@with_appcontext
def mark_paid(username, week, unpaid):
    """Set a player's paid flag for a week"""
    user_obj = User.query.filter_by(username=username).first()
    season_obj = Season.get_current_season()
    if not user_obj or not season_obj:
        click.echo("❌ User or active season not found")
        return

    payment = WeeklyPayment.set_paid(user_obj.id, week, season_obj.year, not unpaid)
    click.echo(f"✅ {username} is {'paid' if payment.is_paid else 'unpaid'} for week {week}")


# User Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("username")
@click.argument("email")
@click.argument("password")
@click.option("--first-name", default="", help="First name")
@click.option("--last-name", default="", help="Last name")
@with_appcontext
def create_admin(username, email, password, first_name, last_name):
    """Create an admin user"""
    existing = User.query.filter(
        (User.username == username) | (User.email == email)
    ).first()

    if existing:
        click.echo(
            f"❌ User with username '{username}' or email '{email}' already exists!"
        )
        return

    user_obj = User(
        username=username,
        email=email.lower(),
        first_name=first_name,
        last_name=last_name,
        is_active=True,
        is_admin=True,
    )
    user_obj.set_password(password)

    try:
        db.session.add(user_obj)
        db.session.commit()
        click.echo(f"✅ Created admin user '{username}' ({email})")
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Error creating user: {str(e)}")


@user.command()
@click.argument("username")
@click.option("--revoke", is_flag=True, help="Remove admin rights")
@with_appcontext
def set_admin(username, revoke):
    """Grant or revoke admin rights"""
    user_obj = User.query.filter_by(username=username).first()
    if not user_obj:
        click.echo(f"❌ User '{username}' not found")
        return

    user_obj.is_admin = not revoke
    db.session.commit()
    click.echo(f"✅ {username} is {'no longer' if revoke else 'now'} an admin")


@user.command("list")
@with_appcontext
def list_users():
    """List all users"""
    users = User.query.order_by(User.created_at.desc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("Users:")
    for u in users:
        status = "🟢" if u.is_active else "🔴"
        admin = " (admin)" if u.is_admin else ""
        click.echo(f"  {status} {u.username} ({u.email}) - {u.display_name}{admin}")


# Database Commands
@cli.group("db")
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command("init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    db.drop_all()
    db.create_all()
    click.echo("✅ Database reset successfully!")


@db_cmd.command("init-migrations")
@with_appcontext
def init_migrations():
    """Initialize migrations repository"""
    if os.path.exists("migrations"):
        click.echo("❌ Migrations directory already exists!")
        return

    from flask_migrate import init as flask_migrate_init

    flask_migrate_init()
    click.echo("✅ Migrations repository initialized!")


@db_cmd.command("migrate")
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    migrate(message=message)
    click.echo(f"✅ Migration created: {message}")


@db_cmd.command("upgrade")
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    upgrade(revision=revision)
    click.echo(f"✅ Migrations applied to {revision}")


@db_cmd.command("downgrade")
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    downgrade(revision=revision)
    click.echo(f"✅ Rolled back to {revision}")


# Email Commands
@cli.command("test-email")
@with_appcontext
def test_email():
    """Check the SMTP configuration"""
    from app.utils.email_service import EmailService

    success, message = EmailService().test_email_configuration()
    click.echo(f"{'✅' if success else '❌'} {message}")


@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏈 MNF Pick'em Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    current_season = Season.get_current_season()
    if current_season:
        active_week = Game.get_active_week(current_season.year)
        click.echo(f"✅ Current Season: {current_season.year} (Week {active_week})")
    else:
        click.echo("⚠️  Current Season: None active")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    if current_season:
        games = Game.get_all_for_season(current_season.year)
        final_count = sum(1 for g in games if g.is_final)
        click.echo(f"🏈 Games: {final_count}/{len(games)} completed")

        stored_weeks = sorted(
            {w.week for w in WeeklyWinner.get_for_season(current_season.year)}
        )
        click.echo(f"🏆 Weeks with stored winners: {stored_weeks or 'none'}")


if __name__ == "__main__":
    with app.app_context():
        cli()
