from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import requests

from pickem import db
from pickem.models import Game
from pickem.utils.data_sync import DataSync, FootballDataClient, map_api_season
from pickem.utils.exceptions import ProviderError, SyncConfigurationError
from pickem.utils.status_mapping import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_NOT_STARTED,
)
from tests.conftest import NOW, api_match


def _response(status_code=200, payload=None, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = "Error" if not response.ok else "OK"
    response.headers = headers or {}
    response.json.return_value = payload or {}
    return response


class TestFootballDataClient:
    @pytest.fixture
    def client(self):
        client = FootballDataClient(api_key="secret", request_delay=6.0)
        client.session = MagicMock()
        return client

    def test_auth_header(self):
        client = FootballDataClient(api_key="secret")
        assert client.session.headers["X-Auth-Token"] == "secret"

    def test_fetch_matches_uses_date_window(self, client):
        client.session.get.return_value = _response(payload={"matches": [api_match(1)]})

        matches = client.fetch_matches("2025-08-17", "2025-08-26")

        assert matches == [api_match(1)]
        url = client.session.get.call_args.args[0]
        assert url == "https://api.football-data.org/v4/competitions/PL/matches"
        assert client.session.get.call_args.kwargs["params"] == {
            "dateFrom": "2025-08-17",
            "dateTo": "2025-08-26",
        }

    def test_fetch_season_matches(self, client):
        client.session.get.return_value = _response(payload={"matches": []})

        assert client.fetch_season_matches(2025) == []
        assert client.session.get.call_args.kwargs["params"] == {"season": "2025"}

    @patch("pickem.utils.data_sync.time.sleep")
    def test_bulk_failure_raises_provider_error(self, sleep, client):
        client.session.get.return_value = _response(status_code=403)

        with pytest.raises(ProviderError) as exc_info:
            client.fetch_matches("2025-08-17", "2025-08-26")

        assert exc_info.value.status_code == 403

    @patch("pickem.utils.data_sync.time.sleep")
    def test_bulk_network_failure_raises_provider_error(self, sleep, client):
        client.session.get.side_effect = requests.exceptions.ConnectionError("down")

        with pytest.raises(ProviderError):
            client.fetch_matches("2025-08-17", "2025-08-26")

        assert client.session.get.call_count == 3

    @patch("pickem.utils.data_sync.time.sleep")
    def test_rate_limited_request_is_retried(self, sleep, client):
        client.session.get.side_effect = [
            _response(status_code=429, headers={"X-RequestCounter-Reset": "12"}),
            _response(payload={"matches": [api_match(1)]}),
        ]

        assert len(client.fetch_matches("2025-08-17", "2025-08-26")) == 1
        sleep.assert_called_once_with(12.0)

    def test_missing_api_key_is_a_configuration_error(self):
        client = FootballDataClient(api_key=None)

        with pytest.raises(SyncConfigurationError):
            client.fetch_matches("2025-08-17", "2025-08-26")

    @patch("pickem.utils.data_sync.time.sleep")
    def test_fetch_match_waits_before_request(self, sleep, client):
        client.session.get.return_value = _response(payload=api_match(42))

        assert client.fetch_match("42")["id"] == 42
        sleep.assert_called_once_with(6.0)
        assert client.session.get.call_args.args[0].endswith("/matches/42")

    @patch("pickem.utils.data_sync.time.sleep")
    def test_fetch_match_not_found_returns_none(self, sleep, client):
        client.session.get.return_value = _response(status_code=404)

        assert client.fetch_match("42") is None
        assert client.session.get.call_count == 1

    @patch("pickem.utils.data_sync.time.sleep")
    def test_fetch_match_server_error_returns_none(self, sleep, client):
        client.session.get.return_value = _response(status_code=503)

        assert client.fetch_match("42") is None

    @patch("pickem.utils.data_sync.time.sleep")
    def test_fetch_match_network_error_returns_none(self, sleep, client):
        client.session.get.side_effect = requests.exceptions.Timeout("slow")

        assert client.fetch_match("42") is None


def test_map_api_season():
    assert map_api_season("2025") == "2025/2026"
    assert map_api_season(2024) == "2024/2025"


class TestBulkPhase:
    def test_completes_game_from_bulk_record(self, data_sync, provider, make_game):
        game = make_game(1, external_id="1001")
        provider.fetch_matches.return_value = [api_match(1001, home=3, away=1)]

        result = data_sync.sync_game_scores(now=NOW)

        game = db.session.get(Game, game.id)
        assert game.status == STATUS_COMPLETED
        assert (game.home_score, game.away_score) == (3, 1)
        assert game.last_updated is not None
        assert result["games_updated"] == 1
        assert result["bulk_games_processed"] == 1
        assert [g.id for g in result["completed_games"]] == [game.id]

    def test_bulk_window_uses_lookback_and_lookahead(self, data_sync, provider):
        data_sync.sync_game_scores(now=NOW)

        provider.fetch_matches.assert_called_once_with("2025-08-17", "2025-08-26")

    def test_live_game_is_not_a_completion(self, data_sync, provider, make_game):
        game = make_game(1, external_id="1001")
        provider.fetch_matches.return_value = [api_match(1001, status="IN_PLAY", home=1, away=0)]

        result = data_sync.sync_game_scores(now=NOW)

        assert db.session.get(Game, game.id).status == STATUS_IN_PROGRESS
        assert result["completed_games"] == []

    def test_rerun_without_new_data_changes_nothing(self, data_sync, provider, make_game):
        game = make_game(1, external_id="1001")
        provider.fetch_matches.return_value = [api_match(1001)]
        data_sync.sync_game_scores(now=NOW)
        stamped = db.session.get(Game, game.id).last_updated

        result = data_sync.sync_game_scores(now=datetime(2025, 8, 19, 13, 0))

        assert result["games_updated"] == 0
        assert result["completed_games"] == []
        assert db.session.get(Game, game.id).last_updated == stamped

    def test_start_time_follows_provider(self, data_sync, provider, make_game):
        game = make_game(2, external_id="1002")
        provider.fetch_matches.return_value = [
            api_match(1002, status="TIMED", utc_date="2025-08-24T16:30:00Z")
        ]

        data_sync.sync_game_scores(now=NOW)

        assert db.session.get(Game, game.id).start_time == datetime(2025, 8, 24, 16, 30)

    def test_unknown_external_id_aborts_before_writing(
        self, data_sync, provider, make_game
    ):
        game = make_game(1, external_id="1001")
        provider.fetch_matches.return_value = [api_match(1001), api_match(9999)]

        with pytest.raises(SyncConfigurationError):
            data_sync.sync_game_scores(now=NOW)

        game = db.session.get(Game, game.id)
        assert game.status == STATUS_NOT_STARTED
        assert game.home_score is None
        provider.fetch_match.assert_not_called()

    def test_record_without_id_aborts(self, data_sync, provider, make_game):
        make_game(1, external_id="1001")
        record = api_match(1001)
        del record["id"]
        provider.fetch_matches.return_value = [record]

        with pytest.raises(SyncConfigurationError):
            data_sync.sync_game_scores(now=NOW)

    def test_provider_failure_propagates(self, data_sync, provider):
        provider.fetch_matches.side_effect = ProviderError("boom", status_code=500)

        with pytest.raises(ProviderError):
            data_sync.sync_game_scores(now=NOW)


class TestOverduePhase:
    def test_overdue_game_is_looked_up_individually(
        self, data_sync, provider, make_game
    ):
        game = make_game(1, external_id="1001")
        provider.fetch_match.return_value = api_match(1001, home=0, away=0)

        result = data_sync.sync_game_scores(now=NOW)

        provider.fetch_match.assert_called_once_with("1001")
        game = db.session.get(Game, game.id)
        assert game.status == STATUS_COMPLETED
        assert (game.home_score, game.away_score) == (0, 0)
        assert result["overdue_games_found"] == 1
        assert result["individual_api_calls"] == 1
        assert len(result["completed_games"]) == 1

    def test_before_lookup_runs_ahead_of_each_individual_call(
        self, data_sync, provider, make_game
    ):
        make_game(1, external_id="1001")
        make_game(1, home="LIV", away="EVE", external_id="1002")
        make_game(1, home="ARS", away="EVE")
        before_lookup = MagicMock()

        result = data_sync.sync_game_scores(now=NOW, before_lookup=before_lookup)

        assert result["individual_api_calls"] == 2
        assert before_lookup.call_count == 2

    def test_overdue_game_in_bulk_response_is_not_looked_up(
        self, data_sync, provider, make_game
    ):
        make_game(1, external_id="1001")
        provider.fetch_matches.return_value = [api_match(1001)]

        result = data_sync.sync_game_scores(now=NOW)

        provider.fetch_match.assert_not_called()
        assert result["overdue_games_found"] == 1
        assert result["individual_api_calls"] == 0
        assert result["games_updated"] == 1

    def test_overdue_game_without_external_id_is_skipped(
        self, data_sync, provider, make_game
    ):
        make_game(1)

        result = data_sync.sync_game_scores(now=NOW)

        provider.fetch_match.assert_not_called()
        assert result["overdue_games_found"] == 1

    def test_not_found_leaves_game_untouched(self, data_sync, provider, make_game):
        game = make_game(1, external_id="1001")

        result = data_sync.sync_game_scores(now=NOW)

        assert result["individual_api_calls"] == 1
        assert result["games_updated"] == 0
        assert db.session.get(Game, game.id).status == STATUS_NOT_STARTED

    def test_future_and_started_games_are_not_overdue(self, data_sync, make_game):
        make_game(2, external_id="1002")
        make_game(1, home="LIV", away="EVE", status=STATUS_IN_PROGRESS, external_id="1003")

        assert data_sync.find_overdue_games(NOW) == []

    def test_excluded_seasons_are_not_overdue(self, data_sync, make_game):
        make_game(30, season="2024/2025", start_time=datetime(2025, 3, 1, 15, 0))
        current = make_game(1)

        assert [g.id for g in data_sync.find_overdue_games(NOW)] == [current.id]

    def test_find_game_in_bulk_response_by_teams_and_date(self, app, make_game):
        game = make_game(1)
        records = [
            api_match(5, utc_date="2025-08-23T14:00:00Z"),
            api_match(6, utc_date="2025-08-17T11:30:00Z"),
        ]

        assert DataSync.find_game_in_bulk_response(game, records)["id"] == 6

    def test_find_game_in_bulk_response_requires_both_teams(self, app, make_game):
        game = make_game(1, home="LIV", away="EVE")

        assert DataSync.find_game_in_bulk_response(game, [api_match(6)]) is None


class TestBackfill:
    def test_assigns_ids_by_matchday_date_and_teams(
        self, data_sync, provider, make_game
    ):
        week_one = make_game(1)
        week_two = make_game(2)
        unmatched = make_game(3, home="LIV", away="EVE")
        provider.fetch_season_matches.return_value = [
            api_match(501, matchday=1, utc_date="2025-08-16T14:00:00Z"),
            api_match(502, matchday=2, utc_date="2025-08-24T14:00:00Z"),
        ]

        results = data_sync.backfill_external_ids(2025)

        provider.fetch_season_matches.assert_called_once_with(2025)
        assert db.session.get(Game, week_one.id).external_id == "501"
        assert db.session.get(Game, week_two.id).external_id == "502"
        assert db.session.get(Game, unmatched.id).external_id is None
        assert results["season"] == "2025/2026"
        assert (results["processed"], results["successful"], results["failed"]) == (3, 2, 1)
        assert results["before"]["with_external_id"] == 0
        assert results["after"]["with_external_id"] == 2

    def test_date_too_far_off_is_not_matched(self, data_sync, provider, make_game):
        game = make_game(1)
        provider.fetch_season_matches.return_value = [
            api_match(501, matchday=1, utc_date="2025-08-20T14:00:00Z")
        ]

        results = data_sync.backfill_external_ids(2025)

        assert results["failed"] == 1
        assert db.session.get(Game, game.id).external_id is None

    def test_full_coverage_skips_provider(self, data_sync, provider, make_game):
        make_game(1, external_id="501")

        results = data_sync.backfill_external_ids(2025)

        provider.fetch_season_matches.assert_not_called()
        assert results["processed"] == 0
