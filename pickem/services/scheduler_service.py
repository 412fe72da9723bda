"""
Pick'em Automatic Reconciliation Scheduler Service

Runs the reconciliation job in the background with APScheduler.
"""

import atexit
import logging
from datetime import datetime, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pickem import db
from pickem.services.reconciliation_service import ReconciliationService
from pickem.utils.exceptions import ReconciliationInProgressError

logger = logging.getLogger(__name__)

JOB_ID = "reconcile_game_scores"


class SchedulerService:
    """Manages automatic background reconciliation runs"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.sync_stats = self._empty_stats()

        if app:
            self.init_app(app)

    @staticmethod
    def _empty_stats():
        return {
            "last_sync": None,
            "total_syncs": 0,
            "successful_syncs": 0,
            "failed_syncs": 0,
            "skipped_syncs": 0,
            "last_error": None,
            "games_updated": 0,
            "last_summary": None,
        }

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.scheduler = BackgroundScheduler(daemon=True, timezone="UTC")

        # Register shutdown
        atexit.register(self.shutdown)

        # Start scheduler if enabled
        if app.config.get("SCHEDULER_ENABLED", True):
            self.start()

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            # Clear any existing jobs
            self.scheduler.remove_all_jobs()

            interval = self.app.config.get("RECONCILE_INTERVAL_MINUTES", 15)
            self.scheduler.add_job(
                func=self._reconcile,
                trigger=IntervalTrigger(minutes=interval),
                id=JOB_ID,
                name="Reconcile Game Scores",
                max_instances=1,
                coalesce=True,
                misfire_grace_time=300,
            )

            self.scheduler.start()
            self.is_running = True

            logger.info(f"Scheduler started: reconciliation every {interval} minutes")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _reconcile(self):
        """Scheduled reconciliation run"""
        with self.app.app_context():
            try:
                summary = ReconciliationService().run()
                self._update_stats(True, summary)

            except ReconciliationInProgressError:
                self.sync_stats["skipped_syncs"] += 1
                logger.info("Scheduled reconciliation skipped: run already in progress")

            except Exception as e:
                db.session.rollback()
                self._update_stats(False)
                self.sync_stats["last_error"] = str(e)
                logger.error(f"Error in scheduled reconciliation: {e}", exc_info=True)

    def _update_stats(self, success, summary=None):
        """Update sync statistics"""
        self.sync_stats["last_sync"] = datetime.now(timezone.utc)
        self.sync_stats["total_syncs"] += 1

        if success:
            self.sync_stats["successful_syncs"] += 1
            self.sync_stats["games_updated"] += summary["games_updated"]
            self.sync_stats["last_summary"] = summary
            self.sync_stats["last_error"] = None
        else:
            self.sync_stats["failed_syncs"] += 1

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = job.next_run_time
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        stats = dict(self.sync_stats)
        if stats["last_sync"]:
            stats["last_sync"] = stats["last_sync"].isoformat()

        return {"is_running": self.is_running, "jobs": jobs, "stats": stats}


# Global scheduler instance
scheduler_service = SchedulerService()
