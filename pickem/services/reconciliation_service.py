"""
Reconciliation runs

One run pulls provider data into the game table, rescores when finished
games have picks on them, and moves every league's week watermarks forward.
"""

import time

from flask import current_app

from pickem import db
from pickem.models import Pick, ReconciliationLease
from pickem.utils.cache_utils import invalidate_standings_cache
from pickem.utils.data_sync import DataSync
from pickem.utils.exceptions import ReconciliationError, ReconciliationInProgressError
from pickem.utils.logging_config import ContextualLogger
from pickem.utils.scoring import run_scoring_calculation
from pickem.utils.timezone_utils import get_utc_time
from pickem.utils.week_tracking import update_league_week_tracking

LEASE_NAME = "reconciliation"


class ReconciliationService:
    def __init__(self, data_sync=None, lease_seconds=None):
        self.data_sync = data_sync
        self.lease_seconds = lease_seconds or current_app.config.get(
            "RECONCILE_LEASE_SECONDS", 900
        )

    def run(self, now=None):
        """
        Execute one reconciliation run.

        Raises:
            ReconciliationInProgressError: another run holds the lease
            SyncConfigurationError, ProviderError: the sync phase failed

        Returns:
            dict: run summary
        """
        holder = ReconciliationLease.new_holder_id()
        log = ContextualLogger(__name__, {"run_id": holder[:8]})

        if not ReconciliationLease.acquire(LEASE_NAME, holder, self.lease_seconds):
            log.warning("Reconciliation already in progress, skipping run")
            raise ReconciliationInProgressError(
                "A reconciliation run is already in progress"
            )

        started = time.monotonic()
        log.info("=== Reconciliation Started ===")

        try:
            data_sync = self.data_sync or DataSync()
            sync_result = data_sync.sync_game_scores(
                now=now, before_lookup=lambda: self._renew_lease(holder, log)
            )

            completed_game_ids = [game.id for game in sync_result["completed_games"]]
            picks_affected = Pick.count_for_games(completed_game_ids)

            scoring_result = {"picks_updated": 0, "memberships_updated": 0}
            if completed_game_ids and picks_affected:
                log.info(
                    f"{len(completed_game_ids)} games completed with {picks_affected} picks, running scoring"
                )
                # Scoring reads last_completed_week, so it has to be current first
                update_league_week_tracking()
                scoring_result = run_scoring_calculation()
            elif completed_game_ids:
                log.info(
                    f"{len(completed_game_ids)} games completed but no picks reference them, skipping scoring"
                )
            else:
                log.info("No games completed, skipping scoring")

            leagues_updated = update_league_week_tracking()

            invalidate_standings_cache()

            summary = {
                "bulk_games_processed": sync_result["bulk_games_processed"],
                "overdue_games_found": sync_result["overdue_games_found"],
                "individual_api_calls": sync_result["individual_api_calls"],
                "games_updated": sync_result["games_updated"],
                "games_completed": len(completed_game_ids),
                "picks_affected": picks_affected,
                "picks_updated": scoring_result["picks_updated"],
                "memberships_updated": scoring_result["memberships_updated"],
                "leagues_updated": leagues_updated,
                "execution_time": round(time.monotonic() - started, 2),
                "completed_at": get_utc_time().isoformat(),
            }

            log.info(
                f"=== Reconciliation Completed: {summary['games_updated']} games updated, "
                f"{summary['games_completed']} completed, {summary['picks_updated']} picks scored "
                f"in {summary['execution_time']}s ==="
            )
            return summary

        except Exception as e:
            db.session.rollback()
            log.error(f"Reconciliation failed: {e}", exc_info=True)
            raise

        finally:
            ReconciliationLease.release(LEASE_NAME, holder)

    def _renew_lease(self, holder, log):
        """Push back the expiry of the lease this run holds"""
        if not ReconciliationLease.acquire(LEASE_NAME, holder, self.lease_seconds):
            log.error("Reconciliation lease lost to another run, aborting")
            raise ReconciliationError("Reconciliation lease lost during individual lookups")
