"""
Week watermarks for leagues.

Each league carries three markers derived from its competition's schedule:

* ``current_game_week``   - latest week with a started or completed game
* ``current_pick_week``   - earliest week with a game not yet started
* ``last_completed_week`` - latest week in which every game is completed

They are recomputed from scratch on every run, so a manual schedule
correction is picked up on the next pass.
"""

import logging

from sqlalchemy import case, func

from pickem import db
from pickem.models import Game, League
from pickem.utils.status_mapping import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_NOT_STARTED,
)
from pickem.utils.timezone_utils import get_utc_time, to_db_datetime

logger = logging.getLogger(__name__)


def _competition_games(sports_league, season):
    return db.session.query(Game).filter(
        Game.sports_league == sports_league, Game.season == season
    )


def calculate_current_game_week(sports_league, season):
    """Latest week with games in progress or completed (None if none)"""
    return (
        _competition_games(sports_league, season)
        .filter(Game.status.in_([STATUS_IN_PROGRESS, STATUS_COMPLETED]))
        .with_entities(func.max(Game.week))
        .scalar()
    )


def calculate_current_pick_week(sports_league, season):
    """Earliest week with games not yet started (None if none)"""
    return (
        _competition_games(sports_league, season)
        .filter(Game.status == STATUS_NOT_STARTED)
        .with_entities(func.min(Game.week))
        .scalar()
    )


def calculate_last_completed_week(sports_league, season):
    """Largest week in which all games are completed (None if none)"""
    completed_count = func.sum(case((Game.status == STATUS_COMPLETED, 1), else_=0))

    completed_weeks = (
        _competition_games(sports_league, season)
        .with_entities(Game.week)
        .group_by(Game.week)
        .having(completed_count == func.count(Game.id))
        .subquery()
    )

    return db.session.query(func.max(completed_weeks.c.week)).scalar()


def calculate_week_watermarks(league):
    """All three watermarks for a league's competition"""
    return {
        "current_game_week": calculate_current_game_week(
            league.sports_league, league.season
        ),
        "current_pick_week": calculate_current_pick_week(
            league.sports_league, league.season
        ),
        "last_completed_week": calculate_last_completed_week(
            league.sports_league, league.season
        ),
    }


def update_league_week_tracking():
    """
    Recompute week watermarks for every active league.

    Leagues are only written when a watermark moves. Returns the number of
    leagues processed successfully.
    """
    logger.info("Updating league week tracking...")

    leagues_updated = 0
    for league in League.get_active_leagues():
        try:
            watermarks = calculate_week_watermarks(league)

            if watermarks != league.week_watermarks:
                league.current_game_week = watermarks["current_game_week"]
                league.current_pick_week = watermarks["current_pick_week"]
                league.last_completed_week = watermarks["last_completed_week"]
                league.last_week_update = to_db_datetime(get_utc_time())
                db.session.commit()

                logger.info(
                    f"Updated league {league.name}: game_week={watermarks['current_game_week']}, "
                    f"pick_week={watermarks['current_pick_week']}, "
                    f"last_completed_week={watermarks['last_completed_week']}"
                )

            leagues_updated += 1

        except Exception as e:
            db.session.rollback()
            logger.error(
                f"Error updating week tracking for league {league.name}: {e}",
                exc_info=True,
            )

    logger.info(f"League week tracking completed: {leagues_updated} leagues updated")
    return leagues_updated
