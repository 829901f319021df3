from datetime import datetime, timezone

from app import db


class WeeklyPayment(db.Model):
    """Whether a user paid into a given week's pot"""

    __tablename__ = "weekly_payments"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    week_number = db.Column(db.Integer, nullable=False)
    season_year = db.Column(db.Integer, nullable=False)

    is_paid = db.Column(db.Boolean, default=False, nullable=False)
    paid_at = db.Column(db.DateTime)
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "week_number", "season_year", name="unique_weekly_payment"
        ),
        db.Index("idx_payment_season_week", "season_year", "week_number"),
    )

    def __repr__(self):
        state = "paid" if self.is_paid else "unpaid"
        return f"<WeeklyPayment user_id={self.user_id} {self.season_year}/W{self.week_number} {state}>"

    @staticmethod
    def set_paid(user_id, week, season_year, is_paid):
        """Upsert the paid flag for (user, week, season)"""
        payment = WeeklyPayment.query.filter_by(
            user_id=user_id, week_number=week, season_year=season_year
        ).first()
        if payment is None:
            payment = WeeklyPayment(
                user_id=user_id, week_number=week, season_year=season_year
            )
            db.session.add(payment)

        payment.is_paid = bool(is_paid)
        payment.paid_at = datetime.now(timezone.utc) if is_paid else None
        db.session.commit()
        return payment

    @staticmethod
    def toggle(user_id, week, season_year):
        current = WeeklyPayment.paid_status_for_week(week, season_year).get(
            user_id, False
        )
        return WeeklyPayment.set_paid(user_id, week, season_year, not current)

    @staticmethod
    def paid_status_for_week(week, season_year):
        """Map of user_id -> is_paid; users without a row are unpaid"""
        rows = WeeklyPayment.query.filter_by(
            week_number=week, season_year=season_year
        ).all()
        return {row.user_id: bool(row.is_paid) for row in rows}

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "week_number": self.week_number,
            "season_year": self.season_year,
            "is_paid": self.is_paid,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
