from unittest.mock import patch

import pytest

from pickem.services.scheduler_service import SchedulerService
from pickem.utils.exceptions import ProviderError, ReconciliationInProgressError


@pytest.fixture
def scheduler(app):
    service = SchedulerService()
    service.app = app
    return service


@pytest.fixture
def reconciliation():
    with patch(
        "pickem.services.scheduler_service.ReconciliationService"
    ) as service_cls:
        yield service_cls.return_value


def test_successful_run_updates_stats(scheduler, reconciliation):
    reconciliation.run.return_value = {"games_updated": 3}

    scheduler._reconcile()

    stats = scheduler.get_status()["stats"]
    assert stats["successful_syncs"] == 1
    assert stats["games_updated"] == 3
    assert stats["last_summary"] == {"games_updated": 3}
    assert stats["last_sync"] is not None


def test_run_in_progress_is_counted_as_skipped(scheduler, reconciliation):
    reconciliation.run.side_effect = ReconciliationInProgressError("busy")

    scheduler._reconcile()

    stats = scheduler.sync_stats
    assert stats["skipped_syncs"] == 1
    assert stats["total_syncs"] == 0


def test_failure_is_recorded(scheduler, reconciliation):
    reconciliation.run.side_effect = ProviderError("provider down")

    scheduler._reconcile()

    stats = scheduler.sync_stats
    assert stats["failed_syncs"] == 1
    assert stats["last_error"] == "provider down"


def test_not_started_without_app_config(scheduler):
    status = scheduler.get_status()

    assert status["is_running"] is False
    assert status["jobs"] == []
