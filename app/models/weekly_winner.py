"""Weekly Winner Model - recorded results of each week's pot"""

from datetime import datetime, timezone

from app import db


class WeeklyWinner(db.Model):
    __tablename__ = "weekly_winners"

    id = db.Column(db.Integer, primary_key=True)

    # Winner identification
    season = db.Column(db.Integer, nullable=False)
    week = db.Column(db.Integer, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    player_name = db.Column(db.String(80), nullable=False)

    # Stats at time of win
    correct_picks = db.Column(db.Integer, default=0)
    tiebreaker = db.Column(db.Integer)  # Monday night difference, null if none
    is_paid_winner = db.Column(db.Boolean, default=False, nullable=False)
    is_tied = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    user = db.relationship("User", backref=db.backref("weekly_wins", lazy="dynamic"))

    __table_args__ = (
        db.UniqueConstraint(
            "season", "week", "user_id", "is_paid_winner", name="unique_weekly_winner"
        ),
        db.Index("idx_weekly_winner_season_week", "season", "week"),
    )

    def __repr__(self):
        kind = "paid" if self.is_paid_winner else "unpaid"
        return f"<WeeklyWinner {self.season}/W{self.week} {self.player_name} ({kind})>"

    @staticmethod
    def exists_for_week(season, week):
        return (
            WeeklyWinner.query.filter_by(season=season, week=week).first() is not None
        )

    @staticmethod
    def get_for_season(season):
        """Stored winners, newest week first"""
        return (
            WeeklyWinner.query.filter_by(season=season)
            .order_by(
                WeeklyWinner.week.desc(),
                WeeklyWinner.is_paid_winner.desc(),
                WeeklyWinner.player_name,
            )
            .all()
        )

    @staticmethod
    def paid_win_counts(season):
        """Map of user_id -> number of paid weekly wins"""
        counts = {}
        for row in WeeklyWinner.query.filter_by(season=season, is_paid_winner=True):
            counts[row.user_id] = counts.get(row.user_id, 0) + 1
        return counts

    def to_dict(self):
        return {
            "id": self.id,
            "season": self.season,
            "week": self.week,
            "user_id": self.user_id,
            "player_name": self.player_name,
            "correct_picks": self.correct_picks,
            "tiebreaker": self.tiebreaker,
            "is_paid_winner": self.is_paid_winner,
            "is_tied": self.is_tied,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
