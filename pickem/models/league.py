from datetime import datetime, timezone

from pickem import db


class League(db.Model):
    __tablename__ = "leagues"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)

    # Competition this league plays
    sports_league = db.Column(db.String(20), nullable=False)  # e.g. "EPL"
    season = db.Column(db.String(20), nullable=False)  # e.g. "2025/2026"

    # Status
    is_active = db.Column(db.Boolean, default=True)

    # Week watermarks, derived from the schedule on every reconciliation run
    current_game_week = db.Column(db.Integer)
    current_pick_week = db.Column(db.Integer)
    last_completed_week = db.Column(db.Integer)
    last_week_update = db.Column(db.DateTime)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    memberships = db.relationship(
        "LeagueMembership",
        backref="league",
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.Index("idx_league_active", "is_active"),
        db.Index("idx_league_competition", "sports_league", "season"),
    )

    def __repr__(self):
        return f"<League {self.name} ({self.sports_league} {self.season})>"

    @staticmethod
    def get_active_leagues():
        return League.query.filter_by(is_active=True).order_by(League.id).all()

    @property
    def week_watermarks(self):
        return {
            "current_game_week": self.current_game_week,
            "current_pick_week": self.current_pick_week,
            "last_completed_week": self.last_completed_week,
        }

    def get_standings(self):
        """Active members ordered by points, then fewest strikes"""
        from .league_membership import LeagueMembership

        return (
            self.memberships.filter_by(is_active=True, status="active")
            .order_by(
                LeagueMembership.points.desc(),
                LeagueMembership.strikes.asc(),
                LeagueMembership.team_name,
            )
            .all()
        )

    def to_dict(self):
        """Convert league to dictionary for API responses"""
        data = {
            "id": self.id,
            "name": self.name,
            "sports_league": self.sports_league,
            "season": self.season,
            "is_active": self.is_active,
            "last_week_update": (
                self.last_week_update.isoformat() if self.last_week_update else None
            ),
        }
        data.update(self.week_watermarks)
        return data
