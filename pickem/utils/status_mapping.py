"""
Translation of Football Data API match statuses to our three game states.
"""

import logging

logger = logging.getLogger(__name__)

STATUS_NOT_STARTED = "not_started"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

GAME_STATUSES = (STATUS_NOT_STARTED, STATUS_IN_PROGRESS, STATUS_COMPLETED)

API_STATUS_MAP = {
    "SCHEDULED": STATUS_NOT_STARTED,
    "TIMED": STATUS_NOT_STARTED,
    "LIVE": STATUS_IN_PROGRESS,
    "IN_PLAY": STATUS_IN_PROGRESS,
    "PAUSED": STATUS_IN_PROGRESS,
    "HALFTIME": STATUS_IN_PROGRESS,
    "FINISHED": STATUS_COMPLETED,
    "AWARDED": STATUS_COMPLETED,
    # Postponed/cancelled/suspended fixtures are settled as they stand
    "POSTPONED": STATUS_COMPLETED,
    "CANCELLED": STATUS_COMPLETED,
    "SUSPENDED": STATUS_COMPLETED,
}


def map_api_status(api_status):
    """
    Map a provider status code to not_started / in_progress / completed.

    Unknown codes fall back to not_started and are logged for review.
    """
    internal = API_STATUS_MAP.get(api_status)
    if internal is None:
        logger.warning(
            f"Unrecognized provider status {api_status!r}, treating as {STATUS_NOT_STARTED}"
        )
        return STATUS_NOT_STARTED
    return internal
