from datetime import datetime, timezone

from sqlalchemy import func

from app import db

STATUS_SCHEDULED = "Scheduled"
STATUS_IN_PROGRESS = "InProgress"
STATUS_FINAL = "Final"

BYE = "bye"


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Provider game key from the schedule feed
    external_id = db.Column(db.String(50), unique=True, index=True)

    # Game identification
    season = db.Column(db.Integer, nullable=False, index=True)
    week = db.Column(db.Integer, nullable=False)

    # Team codes (e.g. "KC", "WAS")
    home_team = db.Column(db.String(10), nullable=False)
    away_team = db.Column(db.String(10), nullable=False)

    # Kickoff, stored in UTC
    start_time = db.Column(db.DateTime, nullable=False)

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    winner = db.Column(db.String(10))
    status = db.Column(db.String(20), default=STATUS_SCHEDULED)

    # Monday night tie-breaker
    is_monday_night = db.Column(db.Boolean, default=False)
    actual_total_points = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    picks = db.relationship(
        "Pick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.Index("idx_game_season_week", "season", "week"),
        db.Index("idx_game_start_time", "start_time"),
    )

    def __repr__(self):
        return f"<Game {self.away_team} @ {self.home_team} Week {self.week}>"

    @property
    def is_bye(self):
        """Bye placeholders carry an empty or 'BYE' team code"""
        for team in (self.home_team, self.away_team):
            if not team or not team.strip() or team.strip().lower() == BYE:
                return True
        return False

    @property
    def is_final(self):
        return self.status == STATUS_FINAL

    @property
    def kickoff_utc(self):
        from app.utils.timezone_utils import ensure_utc

        return ensure_utc(self.start_time)

    @property
    def label(self):
        label = f"{self.away_team} @ {self.home_team}"
        if self.is_monday_night:
            label += " (MNF)"
        return label

    def effective_status(self, now=None):
        """Stored status, or one derived from scores and kickoff when unset"""
        if self.status:
            return self.status
        if self.home_score is not None and self.away_score is not None:
            return STATUS_FINAL
        now = now or datetime.now(timezone.utc)
        if self.kickoff_utc <= now:
            return STATUS_IN_PROGRESS
        return STATUS_SCHEDULED

    def effective_winner(self):
        if self.winner or self.status:
            return self.winner
        if self.home_score is None or self.away_score is None:
            return None
        return self.home_team if self.home_score > self.away_score else self.away_team

    def is_locked(self, now=None):
        """Picks lock at kickoff"""
        now = now or datetime.now(timezone.utc)
        return now >= self.kickoff_utc

    def is_playing(self, team):
        return team in (self.home_team, self.away_team)

    @staticmethod
    def real_games_query():
        """Query excluding bye placeholders"""
        return Game.query.filter(
            func.trim(Game.home_team) != "",
            func.trim(Game.away_team) != "",
            func.lower(Game.home_team) != BYE,
            func.lower(Game.away_team) != BYE,
        )

    @staticmethod
    def get_all_for_season(season):
        return (
            Game.real_games_query()
            .filter(Game.season == season)
            .order_by(Game.start_time)
            .all()
        )

    @staticmethod
    def get_games_for_week(season, week):
        return (
            Game.real_games_query()
            .filter(Game.season == season, Game.week == week)
            .order_by(Game.start_time)
            .all()
        )

    @staticmethod
    def get_monday_night_game(season, week):
        return (
            Game.real_games_query()
            .filter(
                Game.season == season,
                Game.week == week,
                Game.is_monday_night.is_(True),
            )
            .first()
        )

    @staticmethod
    def get_weeks(season):
        rows = (
            Game.real_games_query()
            .with_entities(Game.week)
            .filter(Game.season == season)
            .distinct()
            .all()
        )
        return sorted(row.week for row in rows)

    @staticmethod
    def get_active_week(season, now=None):
        """The week pages open on by default"""
        from app.utils.scoring import determine_active_week

        return determine_active_week(Game.get_all_for_season(season), now=now)

    def to_dict(self):
        """Convert game to dictionary for API responses"""
        return {
            "id": self.id,
            "external_id": self.external_id,
            "season": self.season,
            "week": self.week,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "start_time": self.kickoff_utc.isoformat() if self.start_time else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "winner": self.effective_winner(),
            "status": self.effective_status(),
            "is_monday_night": bool(self.is_monday_night),
            "actual_total_points": self.actual_total_points,
            "is_locked": self.is_locked(),
        }
