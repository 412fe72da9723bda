from datetime import datetime, timezone

from pickem import db


class Pick(db.Model):
    __tablename__ = "picks"

    id = db.Column(db.Integer, primary_key=True)

    # Pick identification
    user_id = db.Column(db.Integer, nullable=False)
    league_id = db.Column(db.Integer, db.ForeignKey("leagues.id"), nullable=False)
    week = db.Column(db.Integer, nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey("games.id"), nullable=False)

    # Pick details
    team_id = db.Column(db.Integer, db.ForeignKey("teams.id"), nullable=False)

    # Result (win/draw/loss), NULL until the game is completed
    result = db.Column(db.String(10))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    team = db.relationship("Team", foreign_keys=[team_id])
    league = db.relationship("League", foreign_keys=[league_id])

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint(
            "user_id", "league_id", "week", name="unique_user_league_week_pick"
        ),
        db.CheckConstraint(
            "result IS NULL OR result IN ('win', 'draw', 'loss')",
            name="valid_pick_result",
        ),
        db.Index("idx_pick_user_league", "user_id", "league_id"),
        db.Index("idx_pick_game", "game_id"),
        db.Index("idx_pick_result", "result"),
    )

    def __repr__(self):
        return f"<Pick user_id={self.user_id} league_id={self.league_id} week={self.week} result={self.result}>"

    @staticmethod
    def upsert(user_id, league_id, game, team_id):
        """
        Create or replace the user's pick for the game's week.

        There is never more than one pick per user, league and week: an
        existing pick for that week is switched to the new game and team and
        its result is cleared.
        """
        if not game.involves_team(team_id):
            raise ValueError(f"Team {team_id} is not playing in game {game.id}")

        pick = Pick.query.filter_by(
            user_id=user_id, league_id=league_id, week=game.week
        ).first()

        if pick is None:
            pick = Pick(user_id=user_id, league_id=league_id, week=game.week)
            db.session.add(pick)

        pick.game_id = game.id
        pick.team_id = team_id
        pick.result = None
        return pick

    @staticmethod
    def count_for_games(game_ids):
        """Number of picks referencing any of the given games"""
        if not game_ids:
            return 0
        return Pick.query.filter(Pick.game_id.in_(game_ids)).count()

    def to_dict(self):
        """Convert pick to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "league_id": self.league_id,
            "week": self.week,
            "game_id": self.game_id,
            "team": self.team.to_dict() if self.team else None,
            "result": self.result,
        }
