import pytest

from pickem import db
from pickem.models import Pick
from pickem.utils.status_mapping import STATUS_COMPLETED


class TestPickUpsert:
    def test_creates_pick(self, make_game, teams, league):
        game = make_game(1)

        pick = Pick.upsert(1, league.id, game, teams["ARS"].id)
        db.session.commit()

        assert pick.week == 1
        assert pick.result is None
        assert Pick.query.count() == 1

    def test_replaces_pick_for_same_week(self, make_game, teams, league):
        first = make_game(1)
        second = make_game(1, home="LIV", away="EVE")
        original = Pick.upsert(1, league.id, first, teams["ARS"].id)
        original.result = "win"
        db.session.commit()

        replaced = Pick.upsert(1, league.id, second, teams["EVE"].id)
        db.session.commit()

        assert replaced.id == original.id
        assert (replaced.game_id, replaced.team_id) == (second.id, teams["EVE"].id)
        assert replaced.result is None
        assert Pick.query.count() == 1

    def test_rejects_team_outside_game(self, make_game, teams, league):
        game = make_game(1)

        with pytest.raises(ValueError):
            Pick.upsert(1, league.id, game, teams["LIV"].id)

    def test_count_for_games(self, make_game, teams, make_pick):
        game = make_game(1)
        make_pick(1, game, teams["ARS"].id)
        make_pick(2, game, teams["CHE"].id)

        assert Pick.count_for_games([game.id]) == 2
        assert Pick.count_for_games([]) == 0


class TestTeamMatching:
    def test_matches_full_or_short_name(self, teams):
        arsenal = teams["ARS"]

        assert arsenal.matches_api_team({"name": "Arsenal FC"})
        assert arsenal.matches_api_team({"shortName": "arsenal"})

    def test_matches_tla(self, teams):
        assert teams["LIV"].matches_api_team({"name": "Liverpool", "tla": "LIV"})

    def test_rejects_other_team(self, teams):
        assert not teams["ARS"].matches_api_team(
            {"name": "Chelsea FC", "shortName": "Chelsea", "tla": "CHE"}
        )
        assert not teams["ARS"].matches_api_team(None)


class TestGame:
    def test_team_scores(self, make_game, teams):
        game = make_game(1, status=STATUS_COMPLETED, home_score=2, away_score=0)

        assert game.get_team_score(teams["ARS"].id) == 2
        assert game.get_opponent_score(teams["ARS"].id) == 0
        assert game.get_team_score(teams["LIV"].id) is None
        assert game.has_final_score
