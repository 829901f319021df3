"""Shared fixtures: an in-memory app, its database, and factories for rows."""

from datetime import datetime, timedelta, timezone

import pytest

from app import create_app, db
from app.models import Game, Pick, Season, User

SEASON_YEAR = 2025
PASSWORD = "Password123"


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def season(app):
    season = Season.create_season(SEASON_YEAR, weekly_payout=25)
    season.is_active = True
    db.session.commit()
    return season


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(username=None, is_admin=False, **fields):
        counter["n"] += 1
        username = username or f"player{counter['n']}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            is_admin=is_admin,
            **fields,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_game(app):
    counter = {"n": 0}

    def _make_game(home="KC", away="BUF", week=1, start_time=None, **fields):
        counter["n"] += 1
        if start_time is None:
            start_time = datetime.now(timezone.utc) + timedelta(days=2)
        game = Game(
            external_id=fields.pop("external_id", f"G{counter['n']}"),
            season=fields.pop("season", SEASON_YEAR),
            week=week,
            home_team=home,
            away_team=away,
            start_time=start_time.replace(tzinfo=None),
            **fields,
        )
        db.session.add(game)
        db.session.commit()
        return game

    return _make_game


@pytest.fixture
def make_pick(app):
    def _make_pick(user, game, team, total_points=None):
        pick = Pick(
            user_id=user.id,
            game_id=game.id,
            selected_team=team,
            lock_time=game.start_time,
            total_points=total_points,
        )
        db.session.add(pick)
        db.session.commit()
        return pick

    return _make_pick


@pytest.fixture
def login(client):
    def _login(user):
        return client.post(
            "/auth/login",
            data={"login": user.username, "password": PASSWORD},
            follow_redirects=False,
        )

    return _login
