import logging
import time
from datetime import timedelta
from functools import wraps

import requests
from flask import current_app
from sqlalchemy import and_, not_, or_

from pickem import db
from pickem.models import Game
from pickem.utils.exceptions import ProviderError, SyncConfigurationError
from pickem.utils.status_mapping import (
    STATUS_COMPLETED,
    STATUS_NOT_STARTED,
    map_api_status,
)
from pickem.utils.timezone_utils import (
    convert_to_app_timezone,
    get_utc_time,
    parse_api_datetime,
    to_db_datetime,
)

logger = logging.getLogger(__name__)


def rate_limit_decorator(max_retries=3, base_delay=1.0, backoff_factor=2.0):
    """
    Decorator to retry API requests on rate limiting, server errors and
    network failures with exponential backoff.

    The last response is returned as-is once retries are exhausted so the
    caller decides what a 429 or 5xx means for it.
    """

    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            for attempt in range(max_retries):
                last_attempt = attempt == max_retries - 1
                delay = base_delay * (backoff_factor**attempt)

                try:
                    response = func(self, *args, **kwargs)
                except requests.exceptions.RequestException as e:
                    if last_attempt:
                        raise
                    logger.warning(
                        f"Request failed: {e}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    time.sleep(delay)
                    continue

                if last_attempt:
                    return response

                if response.status_code == 429:  # Too Many Requests
                    retry_after = _retry_after_seconds(response, delay)
                    logger.warning(
                        f"Rate limited. Waiting {retry_after}s before retry {attempt + 1}/{max_retries}"
                    )
                    time.sleep(retry_after)
                    continue

                if response.status_code >= 500:  # Server errors
                    logger.warning(
                        f"Server error {response.status_code}. Waiting {delay}s before retry {attempt + 1}/{max_retries}"
                    )
                    time.sleep(delay)
                    continue

                return response

        return wrapper

    return decorator


def _retry_after_seconds(response, default):
    # Football Data reports the reset time in X-RequestCounter-Reset
    for header in ("Retry-After", "X-RequestCounter-Reset"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except ValueError:
            continue
    return default


def map_api_season(api_season, sports_league="EPL"):
    """Map the provider's season start year to our season label ("2025" -> "2025/2026")"""
    if sports_league == "EPL":
        year = int(api_season)
        return f"{year}/{year + 1}"
    return str(api_season)


def describe_api_match(api_match):
    home = (api_match.get("homeTeam") or {}).get("shortName")
    away = (api_match.get("awayTeam") or {}).get("shortName")
    return f"{home} vs {away} on {api_match.get('utcDate')}"


class FootballDataClient:
    """
    Thin client for the Football Data API (v4)
    """

    def __init__(
        self,
        api_key,
        base_url="https://api.football-data.org/v4",
        competition_code="PL",
        request_delay=6.0,
        timeout=30,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.competition_code = competition_code
        self.request_delay = request_delay
        self.timeout = timeout
        self.request_count = 0

        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "Pickem-Reconciler/1.0"})
        if api_key:
            self.session.headers.update({"X-Auth-Token": api_key})

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get("FOOTBALLDATA_API_KEY"),
            base_url=config.get(
                "FOOTBALLDATA_API_BASE_URL", "https://api.football-data.org/v4"
            ),
            competition_code=config.get("COMPETITION_CODE", "PL"),
            request_delay=config.get("INDIVIDUAL_REQUEST_DELAY", 6.0),
            timeout=config.get("PROVIDER_TIMEOUT", 30),
        )

    def _require_api_key(self):
        if not self.api_key:
            raise SyncConfigurationError(
                "FOOTBALLDATA_API_KEY environment variable is required"
            )

    @rate_limit_decorator(max_retries=3, base_delay=2.0)
    def _make_api_request(self, url, params=None):
        """Make API request with retry logic"""
        self.request_count += 1
        return self.session.get(url, params=params, timeout=self.timeout)

    def _get_competition_matches(self, params):
        self._require_api_key()
        url = f"{self.base_url}/competitions/{self.competition_code}/matches"

        try:
            response = self._make_api_request(url, params=params)
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Football Data API request failed: {e}") from e

        if not response.ok:
            raise ProviderError(
                f"Football Data API request failed: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        return response.json().get("matches") or []

    def fetch_matches(self, date_from, date_to):
        """Fetch competition matches between two dates (YYYY-MM-DD, inclusive)"""
        logger.info(
            f"Fetching bulk games from Football Data API: {date_from} to {date_to}"
        )
        matches = self._get_competition_matches(
            {"dateFrom": date_from, "dateTo": date_to}
        )
        logger.info(f"Successfully fetched {len(matches)} games from Football Data API")
        return matches

    def fetch_season_matches(self, season_year):
        """Fetch every competition match of a season (start year, e.g. 2025)"""
        logger.info(f"Fetching {self.competition_code} {season_year} fixtures")
        matches = self._get_competition_matches({"season": str(season_year)})
        logger.info(f"Successfully fetched {len(matches)} fixtures from API")
        return matches

    def fetch_match(self, external_id):
        """
        Fetch a single match by provider id.

        Waits ``request_delay`` seconds first to stay under the provider's
        rate limit. Returns None when the match is not available (404) or the
        request fails.
        """
        self._require_api_key()
        logger.info(f"Fetching individual game from Football Data API: {external_id}")

        if self.request_delay:
            time.sleep(self.request_delay)

        url = f"{self.base_url}/matches/{external_id}"
        try:
            response = self._make_api_request(url)
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching individual game {external_id}: {e}")
            return None

        if response.status_code == 404:
            logger.info(f"Game not found in Football Data API: {external_id}")
            return None

        if not response.ok:
            logger.error(
                f"Error fetching individual game {external_id}: "
                f"{response.status_code} {response.reason}"
            )
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON for individual game {external_id}: {e}")
            return None


class DataSync:
    """
    Reconciles stored games with the Football Data API.

    A bulk query covers the recent and upcoming window; overdue games the
    bulk response does not cover are looked up one at a time.
    """

    def __init__(
        self,
        client=None,
        sports_league=None,
        lookback_days=None,
        lookahead_days=None,
        excluded_seasons=None,
    ):
        config = current_app.config
        self.client = client or FootballDataClient.from_config(config)
        self.sports_league = sports_league or config.get("SPORTS_LEAGUE", "EPL")
        self.lookback_days = (
            lookback_days
            if lookback_days is not None
            else config.get("SYNC_LOOKBACK_DAYS", 2)
        )
        self.lookahead_days = (
            lookahead_days
            if lookahead_days is not None
            else config.get("SYNC_LOOKAHEAD_DAYS", 7)
        )
        self.excluded_seasons = (
            excluded_seasons
            if excluded_seasons is not None
            else config.get("OVERDUE_EXCLUDED_SEASONS", [])
        )

    def bulk_window(self, now):
        """dateFrom/dateTo for the bulk query, as dates in the app timezone"""
        today = convert_to_app_timezone(now).date()
        date_from = today - timedelta(days=self.lookback_days)
        date_to = today + timedelta(days=self.lookahead_days)
        return date_from.isoformat(), date_to.isoformat()

    def sync_game_scores(self, now=None, before_lookup=None):
        """
        Bring stored games in line with the provider.

        Raises SyncConfigurationError before writing anything from the bulk
        response if any bulk record cannot be tied to a stored game.
        ``before_lookup`` is called ahead of every individual lookup; the
        reconciliation run uses it to renew its lease.

        Returns:
            dict with bulk_games_processed, overdue_games_found,
            individual_api_calls, games_updated and completed_games (games
            that moved into completed during this call)
        """
        now = now or get_utc_time()

        date_from, date_to = self.bulk_window(now)
        bulk_matches = self.client.fetch_matches(date_from, date_to)

        # Scan before applying the bulk response so overdue games it covers
        # are recognised and not looked up again
        overdue_games = self.find_overdue_games(now)

        matched_pairs = self.resolve_bulk_games(bulk_matches)

        games_updated = 0
        completed_games = []

        for game, api_match in matched_pairs:
            changed, completed = self.apply_match_update(game, api_match, now)
            if changed:
                games_updated += 1
            if completed:
                completed_games.append(game)

        individual_api_calls = 0
        for game in overdue_games:
            if self.find_game_in_bulk_response(game, bulk_matches):
                continue

            if not game.external_id:
                logger.warning(
                    f"Overdue game {game.id} has no external ID for individual lookup"
                )
                continue

            if before_lookup:
                before_lookup()

            api_match = self.client.fetch_match(game.external_id)
            individual_api_calls += 1

            if not api_match:
                continue

            if str(api_match.get("id")) != game.external_id:
                logger.error(
                    f"Individual lookup for game {game.id} returned match {api_match.get('id')}, "
                    f"expected {game.external_id}; skipping"
                )
                continue

            changed, completed = self.apply_match_update(game, api_match, now)
            if changed:
                games_updated += 1
            if completed:
                completed_games.append(game)

        logger.info(
            f"Game sync: {len(bulk_matches)} bulk games, {len(overdue_games)} overdue, "
            f"{individual_api_calls} individual calls, {games_updated} updated, "
            f"{len(completed_games)} newly completed"
        )

        return {
            "bulk_games_processed": len(bulk_matches),
            "overdue_games_found": len(overdue_games),
            "individual_api_calls": individual_api_calls,
            "games_updated": games_updated,
            "completed_games": completed_games,
        }

    def resolve_bulk_games(self, api_matches):
        """
        Pair every bulk record with the stored game carrying its external id.

        The external id is the only key used here: a record without one, or
        one no stored game carries, means schedule and provider have drifted
        apart and must be fixed out-of-band.
        """
        pairs = []
        for api_match in api_matches:
            if not api_match.get("id"):
                raise SyncConfigurationError(
                    f"CRITICAL: API game missing external ID - cannot process game: "
                    f"{describe_api_match(api_match)}"
                )

            external_id = str(api_match["id"])
            game = Game.query.filter_by(external_id=external_id).first()
            if game is None:
                raise SyncConfigurationError(
                    f"CRITICAL: No database game found with external ID {external_id} "
                    f"for API game: {describe_api_match(api_match)}. "
                    f"Run 'manage.py sync backfill-ids' to add missing external IDs."
                )

            logger.debug(f"Game matched by external ID: {external_id}")
            pairs.append((game, api_match))

        return pairs

    def find_overdue_games(self, now):
        """Games still marked not started whose kick-off has passed"""
        query = Game.query.filter(
            Game.status == STATUS_NOT_STARTED,
            Game.start_time < to_db_datetime(now),
        )

        for sports_league, season in self.excluded_seasons:
            query = query.filter(
                not_(and_(Game.sports_league == sports_league, Game.season == season))
            )

        overdue_games = query.order_by(Game.start_time).all()
        logger.info(f"Found {len(overdue_games)} overdue games")
        return overdue_games

    @staticmethod
    def find_game_in_bulk_response(game, api_matches):
        """
        Locate a stored game in a bulk response.

        Tries the external id first, then home and away team names with a
        kick-off date no more than one day apart.
        """
        if game.external_id:
            for api_match in api_matches:
                if str(api_match.get("id")) == game.external_id:
                    return api_match

        if not game.home_team or not game.away_team or not game.start_time:
            return None

        game_date = game.start_time_utc.date()
        for api_match in api_matches:
            api_start = parse_api_datetime(api_match.get("utcDate"))
            if api_start is None or abs((api_start.date() - game_date).days) > 1:
                continue

            if game.home_team.matches_api_team(
                api_match.get("homeTeam")
            ) and game.away_team.matches_api_team(api_match.get("awayTeam")):
                return api_match

        return None

    def apply_match_update(self, game, api_match, now=None):
        """
        Copy the provider's view of a match onto a stored game.

        Nothing is written when no stored value would change.

        Returns:
            (changed, completed) - completed is True when the game moved into
            completed with this update
        """
        now = now or get_utc_time()

        new_status = map_api_status(api_match.get("status"))
        full_time = (api_match.get("score") or {}).get("fullTime") or {}
        new_start_time = (
            to_db_datetime(parse_api_datetime(api_match.get("utcDate")))
            or game.start_time
        )

        new_values = {
            "status": new_status,
            "home_score": full_time.get("home"),
            "away_score": full_time.get("away"),
            "start_time": new_start_time,
            "external_id": str(api_match["id"]),
        }

        previous_status = game.status
        completed = previous_status != STATUS_COMPLETED and new_status == STATUS_COMPLETED

        changes = {
            field: value
            for field, value in new_values.items()
            if getattr(game, field) != value
        }
        if not changes:
            return False, False

        for field, value in changes.items():
            setattr(game, field, value)
        game.last_updated = to_db_datetime(now)
        db.session.commit()

        logger.info(f"Updated game {game.id}: {previous_status} → {new_status}")
        return True, completed

    def backfill_external_ids(self, season_year):
        """
        Record provider ids on stored games of a season that lack one.

        Games are matched on matchday, kick-off within two days and both team
        names. Safe to re-run: games that already have an id are untouched.
        """
        season = map_api_season(season_year, self.sports_league)
        before = self.external_id_coverage(season)

        if before["missing"] == 0:
            logger.info(f"All {season} games already have external IDs")
            return {
                "season": season,
                "processed": 0,
                "successful": 0,
                "failed": 0,
                "errors": [],
                "before": before,
                "after": before,
            }

        api_matches = self.client.fetch_season_matches(season_year)

        games = (
            Game.query.filter(
                Game.sports_league == self.sports_league,
                Game.season == season,
                or_(Game.external_id.is_(None), Game.external_id == ""),
            )
            .order_by(Game.week, Game.start_time)
            .all()
        )

        results = {"processed": 0, "successful": 0, "failed": 0, "errors": []}

        for game in games:
            results["processed"] += 1
            try:
                api_match = self.find_backfill_match(game, api_matches)
                if api_match is None:
                    raise LookupError(
                        f"No matching API game found for DB game: {game.id} (Week {game.week})"
                    )

                external_id = str(api_match["id"])
                if Game.query.filter_by(external_id=external_id).first():
                    raise LookupError(
                        f"External ID {external_id} already belongs to another game "
                        f"(DB game {game.id}, Week {game.week})"
                    )

                game.external_id = external_id
                game.last_updated = to_db_datetime(get_utc_time())
                db.session.commit()

                results["successful"] += 1
                logger.info(f"Updated game {game.id} with external ID: {external_id}")

            except LookupError as e:
                results["failed"] += 1
                results["errors"].append(str(e))
                logger.warning(str(e))

        results.update(
            {
                "season": season,
                "before": before,
                "after": self.external_id_coverage(season),
            }
        )
        return results

    @staticmethod
    def find_backfill_match(game, api_matches):
        for api_match in api_matches:
            if api_match.get("matchday") != game.week:
                continue

            api_start = parse_api_datetime(api_match.get("utcDate"))
            if api_start is None or abs(api_start - game.start_time_utc) > timedelta(
                days=2
            ):
                continue

            if game.home_team.matches_api_team(
                api_match.get("homeTeam")
            ) and game.away_team.matches_api_team(api_match.get("awayTeam")):
                return api_match

        return None

    def external_id_coverage(self, season):
        base = Game.query.filter(
            Game.sports_league == self.sports_league, Game.season == season
        )
        total = base.count()
        with_id = base.filter(
            Game.external_id.isnot(None), Game.external_id != ""
        ).count()
        return {"total": total, "with_external_id": with_id, "missing": total - with_id}
