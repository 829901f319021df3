from datetime import datetime, timezone

from flask import current_app

from app import db


class Season(db.Model):
    __tablename__ = "seasons"

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False, unique=True, index=True)
    name = db.Column(db.String(50), nullable=False)  # e.g., "2025 NFL Season"

    # Status
    is_active = db.Column(db.Boolean, default=False)
    current_week = db.Column(db.Integer, default=1)

    # Dollars paid out per weekly win
    weekly_payout = db.Column(db.Integer, default=25)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (db.Index("idx_season_active", "is_active"),)

    def __repr__(self):
        return f"<Season {self.year}>"

    @staticmethod
    def get_current_season():
        """Get the currently active season"""
        return Season.query.filter_by(is_active=True).first()

    @staticmethod
    def get_or_create_current():
        """Active season, creating one from SEASON_YEAR when none exists"""
        season = Season.get_current_season()
        if season:
            return season

        year = current_app.config.get("SEASON_YEAR", 2025)
        season = Season.query.filter_by(year=year).first()
        if not season:
            season = Season.create_season(
                year, weekly_payout=current_app.config.get("WEEKLY_PAYOUT", 25)
            )
        season.is_active = True
        db.session.commit()
        return season

    @staticmethod
    def create_season(year, weekly_payout=25):
        """Create a new season"""
        season = Season(
            year=year,
            name=f"{year} NFL Season",
            weekly_payout=weekly_payout,
        )
        db.session.add(season)
        return season

    def activate(self):
        """Activate this season (deactivates all others)"""
        Season.query.update({"is_active": False})
        self.is_active = True
        db.session.commit()

    def update_current_week(self):
        """Update the current_week field from the stored schedule"""
        from .game import Game

        calculated_week = Game.get_active_week(self.year)
        if calculated_week != self.current_week:
            self.current_week = calculated_week
            db.session.commit()
        return self.current_week

    def to_dict(self):
        return {
            "id": self.id,
            "year": self.year,
            "name": self.name,
            "is_active": self.is_active,
            "current_week": self.current_week,
            "weekly_payout": self.weekly_payout,
        }
