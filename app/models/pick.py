from datetime import datetime, timezone

from app import db


class PickError(ValueError):
    """Raised when a pick cannot be accepted"""


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    # Pick details
    selected_team = db.Column(db.String(10))
    lock_time = db.Column(db.DateTime)  # Copied from game kickoff

    # Monday night total points prediction
    total_points = db.Column(db.Integer)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "game_id", name="unique_user_game_pick"),
        db.Index("idx_pick_game", "game_id"),
    )

    def __repr__(self):
        return f"<Pick user_id={self.user_id} game_id={self.game_id} team={self.selected_team or 'TBD'}>"

    @property
    def week(self):
        return self.game.week if self.game else None

    @property
    def is_correct(self):
        """True/False once the game is final with a winner, else None"""
        if not self.game or not self.game.is_final or not self.game.winner:
            return None
        return self.selected_team == self.game.winner

    @staticmethod
    def get_user_pick(user_id, game_id):
        return Pick.query.filter_by(user_id=user_id, game_id=game_id).first()

    @staticmethod
    def get_picks_for_games(game_ids):
        if not game_ids:
            return []
        return Pick.query.filter(Pick.game_id.in_(game_ids)).all()

    @staticmethod
    def submit_pick(user, game, team, now=None):
        """Create or update the user's team pick for a game"""
        if game.is_bye:
            raise PickError("Bye weeks cannot be picked")
        if game.is_locked(now):
            raise PickError("This game is locked. Picks closed at kickoff.")
        if not game.is_playing(team):
            raise PickError(f"{team} is not playing in {game.label}")

        pick = Pick.get_user_pick(user.id, game.id)
        if pick is None:
            pick = Pick(user_id=user.id, game_id=game.id)
            db.session.add(pick)

        pick.selected_team = team
        pick.lock_time = game.start_time
        db.session.commit()
        return pick

    @staticmethod
    def submit_total_points(user, game, total_points, now=None):
        """Store the Monday night total points prediction on the user's pick"""
        if not game.is_monday_night:
            raise PickError("Total points can only be predicted for the Monday night game")
        if game.is_locked(now):
            raise PickError("This game is locked. Picks closed at kickoff.")

        try:
            total_points = int(total_points)
        except (TypeError, ValueError):
            raise PickError("Total points must be a whole number")
        if total_points < 0:
            raise PickError("Total points cannot be negative")

        pick = Pick.get_user_pick(user.id, game.id)
        if pick is None or not pick.selected_team:
            raise PickError("Pick a team for the Monday night game first")

        pick.total_points = total_points
        db.session.commit()
        return pick

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "game_id": self.game_id,
            "selected_team": self.selected_team,
            "lock_time": self.lock_time.isoformat() if self.lock_time else None,
            "total_points": self.total_points,
            "week": self.week,
            "is_correct": self.is_correct,
        }
