"""Shared pytest fixtures: an in-memory app and a small EPL schedule."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from pickem import cache, create_app, db
from pickem.models import Game, League, LeagueMembership, Pick, Team
from pickem.utils.data_sync import DataSync, FootballDataClient
from pickem.utils.status_mapping import STATUS_NOT_STARTED

SEASON = "2025/2026"

# Tuesday after matchday 1
NOW = datetime(2025, 8, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
        cache.clear()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def api_headers():
    return {"X-API-Key": "test-scoring-key"}


@pytest.fixture
def teams(app):
    teams = {
        "ARS": Team(name="Arsenal FC", short_name="Arsenal", abbreviation="ARS"),
        "CHE": Team(name="Chelsea FC", short_name="Chelsea", abbreviation="CHE"),
        "LIV": Team(name="Liverpool FC", short_name="Liverpool", abbreviation="LIV"),
        "EVE": Team(name="Everton FC", short_name="Everton", abbreviation="EVE"),
    }
    db.session.add_all(teams.values())
    db.session.commit()
    return teams


@pytest.fixture
def league(app):
    league = League(name="Office League", sports_league="EPL", season=SEASON)
    db.session.add(league)
    db.session.commit()
    return league


@pytest.fixture
def make_game(teams):
    """Factory for games; start_time is stored as naive UTC"""

    def _make_game(
        week,
        home="ARS",
        away="CHE",
        start_time=None,
        status=STATUS_NOT_STARTED,
        home_score=None,
        away_score=None,
        external_id=None,
        season=SEASON,
    ):
        start_time = start_time or datetime(2025, 8, 16, 14, 0) + timedelta(
            weeks=week - 1
        )
        game = Game(
            sports_league="EPL",
            season=season,
            week=week,
            home_team_id=teams[home].id,
            away_team_id=teams[away].id,
            start_time=start_time,
            status=status,
            home_score=home_score,
            away_score=away_score,
            external_id=external_id,
        )
        db.session.add(game)
        db.session.commit()
        return game

    return _make_game


@pytest.fixture
def make_membership(league):
    def _make_membership(user_id, team_name=None, target_league=None):
        membership = LeagueMembership(
            user_id=user_id,
            league_id=(target_league or league).id,
            team_name=team_name or f"Player {user_id}",
        )
        db.session.add(membership)
        db.session.commit()
        return membership

    return _make_membership


@pytest.fixture
def make_pick(league):
    def _make_pick(user_id, game, team_id, result=None, target_league=None):
        pick = Pick(
            user_id=user_id,
            league_id=(target_league or league).id,
            week=game.week,
            game_id=game.id,
            team_id=team_id,
            result=result,
        )
        db.session.add(pick)
        db.session.commit()
        return pick

    return _make_pick


@pytest.fixture
def provider():
    """Football Data client double; individual lookups find nothing by default"""
    provider = MagicMock(spec=FootballDataClient)
    provider.fetch_matches.return_value = []
    provider.fetch_season_matches.return_value = []
    provider.fetch_match.return_value = None
    return provider


@pytest.fixture
def data_sync(app, provider):
    return DataSync(client=provider)


def api_match(
    external_id,
    status="FINISHED",
    home=2,
    away=1,
    utc_date="2025-08-16T14:00:00Z",
    matchday=1,
):
    """Football Data v4 match record"""
    return {
        "id": external_id,
        "utcDate": utc_date,
        "status": status,
        "matchday": matchday,
        "homeTeam": {"name": "Arsenal FC", "shortName": "Arsenal", "tla": "ARS"},
        "awayTeam": {"name": "Chelsea FC", "shortName": "Chelsea", "tla": "CHE"},
        "score": {
            "fullTime": {
                "home": None if status == "TIMED" else home,
                "away": None if status == "TIMED" else away,
            }
        },
    }
