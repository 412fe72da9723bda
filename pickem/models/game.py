from datetime import datetime, timezone

from pickem import db
from pickem.utils.status_mapping import STATUS_COMPLETED, STATUS_NOT_STARTED


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Game identification
    sports_league = db.Column(db.String(20), nullable=False)  # e.g. "EPL"
    season = db.Column(db.String(20), nullable=False)  # e.g. "2025/2026"
    week = db.Column(db.Integer, nullable=False)

    # Teams
    home_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)
    away_team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Game timing
    start_time = db.Column(db.DateTime, nullable=False)

    # Scores
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)

    # Game status
    status = db.Column(db.String(20), nullable=False, default=STATUS_NOT_STARTED)

    # External ID used to reconcile against the Football Data API
    external_id = db.Column(db.String(50), unique=True, index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    last_updated = db.Column(db.DateTime)

    # Relationships
    picks = db.relationship("Pick", backref="game", lazy="dynamic")

    # Indexes
    __table_args__ = (
        db.Index("idx_game_league_season_week", "sports_league", "season", "week"),
        db.Index("idx_game_status_start", "status", "start_time"),
        db.CheckConstraint("home_team_id != away_team_id", name="different_teams"),
        db.CheckConstraint(
            "status IN ('not_started', 'in_progress', 'completed')",
            name="valid_game_status",
        ),
    )

    def __repr__(self):
        return f"<Game {self.id} {self.sports_league} {self.season} Week {self.week} {self.status}>"

    @property
    def is_completed(self):
        return self.status == STATUS_COMPLETED

    @property
    def has_final_score(self):
        """Completed with both scores present"""
        return (
            self.is_completed
            and self.home_score is not None
            and self.away_score is not None
        )

    @property
    def start_time_utc(self):
        """Start time as an aware UTC datetime"""
        # Lazy import to avoid circular imports
        from pickem.utils.timezone_utils import ensure_utc

        return ensure_utc(self.start_time)

    def get_team_score(self, team_id):
        """Get score for a specific team"""
        if team_id == self.home_team_id:
            return self.home_score
        elif team_id == self.away_team_id:
            return self.away_score
        return None

    def get_opponent_score(self, team_id):
        """Get the opposing side's score for a given team"""
        if team_id == self.home_team_id:
            return self.away_score
        elif team_id == self.away_team_id:
            return self.home_score
        return None

    def involves_team(self, team_id):
        return team_id in (self.home_team_id, self.away_team_id)

    def to_dict(self):
        """Convert game to dictionary for API responses"""
        return {
            "id": self.id,
            "sports_league": self.sports_league,
            "season": self.season,
            "week": self.week,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "home_team": self.home_team.to_dict() if self.home_team else None,
            "away_team": self.away_team.to_dict() if self.away_team else None,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "status": self.status,
            "external_id": self.external_id,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }
