from datetime import datetime, timezone

from pickem import db


class Team(db.Model):
    __tablename__ = "teams"

    id = db.Column(db.Integer, primary_key=True)

    # Team identification
    name = db.Column(db.String(100), nullable=False)
    short_name = db.Column(db.String(100))
    abbreviation = db.Column(db.String(10), index=True)
    sports_league = db.Column(db.String(20), nullable=False, default="EPL")

    # External ID for API integration
    external_id = db.Column(db.String(50), index=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    home_games = db.relationship(
        "Game",
        foreign_keys="Game.home_team_id",
        backref=db.backref("home_team", lazy="joined"),
        lazy="dynamic",
    )
    away_games = db.relationship(
        "Game",
        foreign_keys="Game.away_team_id",
        backref=db.backref("away_team", lazy="joined"),
        lazy="dynamic",
    )

    __table_args__ = (db.Index("idx_team_league_name", "sports_league", "name"),)

    def __repr__(self):
        return f"<Team {self.name}>"

    def matches_api_team(self, api_team):
        """
        Check whether a provider team record refers to this team.

        Football Data returns {"name": "Liverpool FC", "shortName": "Liverpool",
        "tla": "LIV"}; our names may be stored in either form.
        """
        if not api_team:
            return False

        our_names = {n.casefold() for n in (self.name, self.short_name) if n}
        api_names = {
            n.casefold()
            for n in (api_team.get("name"), api_team.get("shortName"))
            if n
        }
        if our_names & api_names:
            return True

        tla = api_team.get("tla")
        return bool(tla and self.abbreviation and tla.upper() == self.abbreviation.upper())

    def to_dict(self):
        """Convert team to dictionary for API responses"""
        return {
            "id": self.id,
            "name": self.name,
            "short_name": self.short_name,
            "abbreviation": self.abbreviation,
        }
