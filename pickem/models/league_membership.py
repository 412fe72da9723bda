from datetime import datetime, timezone

from pickem import db


class LeagueMembership(db.Model):
    __tablename__ = "league_memberships"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    team_name = db.Column(db.String(100), nullable=False)

    # Membership status
    is_active = db.Column(db.Boolean, default=True)
    status = db.Column(db.String(20), default="active")  # active, pending, rejected

    # Standings, recomputed from picks on every scoring pass
    points = db.Column(db.Integer, nullable=False, default=0)
    strikes = db.Column(db.Integer, nullable=False, default=0)
    loss_strikes = db.Column(db.Integer, nullable=False, default=0)
    missing_pick_strikes = db.Column(db.Integer, nullable=False, default=0)

    # Timestamps
    joined_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Constraints
    __table_args__ = (
        db.UniqueConstraint("user_id", "league_id", name="unique_user_league"),
        db.Index("idx_league_members_active", "league_id", "is_active", "status"),
        db.CheckConstraint("points >= 0", name="non_negative_points"),
        db.CheckConstraint("strikes >= 0", name="non_negative_strikes"),
    )

    def __repr__(self):
        return f"<LeagueMembership user_id={self.user_id} league_id={self.league_id}>"

    @staticmethod
    def get_active_memberships():
        """Active, approved memberships across all leagues"""
        return (
            LeagueMembership.query.filter_by(is_active=True, status="active")
            .order_by(LeagueMembership.id)
            .all()
        )

    def apply_standing(self, standing):
        """
        Store a freshly computed standing.

        Returns True if any stored value changed.
        """
        changed = False
        for field in ("points", "strikes", "loss_strikes", "missing_pick_strikes"):
            if getattr(self, field) != standing[field]:
                setattr(self, field, standing[field])
                changed = True
        return changed

    def to_dict(self):
        """Convert membership to dictionary for API responses"""
        return {
            "user_id": self.user_id,
            "league_id": self.league_id,
            "team_name": self.team_name,
            "points": self.points,
            "strikes": self.strikes,
            "loss_strikes": self.loss_strikes,
            "missing_pick_strikes": self.missing_pick_strikes,
        }
