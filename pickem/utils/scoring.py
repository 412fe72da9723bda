"""
Scoring Engine for the Pick'em application

This module turns completed games into pick results (win/draw/loss) and
recomputes every league member's points and strikes from those results.
Standings are always rebuilt from the picks, never incremented, so a pass
can be repeated any number of times with the same outcome.
"""

import logging
import time

from pickem import db
from pickem.models import Game, League, LeagueMembership, Pick
from pickem.utils.status_mapping import STATUS_COMPLETED
from pickem.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)

POINTS_FOR_RESULT = {"win": 3, "draw": 1, "loss": 0}


def calculate_pick_result(game, picked_team_id):
    """
    Calculate the result of a pick.

    Returns:
        "draw" for a level score
        "win" if the picked side outscored the other side, otherwise "loss"
        None while the game is not completed, a score is missing, or the
        picked team did not play in the game

    Args:
        game: Game the pick refers to
        picked_team_id: id of the team the participant picked
    """
    if game is None or not game.has_final_score:
        return None

    picked_score = game.get_team_score(picked_team_id)
    opponent_score = game.get_opponent_score(picked_team_id)
    if picked_score is None or opponent_score is None:
        return None

    if picked_score == opponent_score:
        return "draw"

    return "win" if picked_score > opponent_score else "loss"


def calculate_points_and_strikes(picks, last_completed_week):
    """
    Compute a participant's standing from their resolved picks.

    Only picks with a result in a fully completed week (week <= watermark)
    count. Every settled week without such a pick costs one strike, exactly
    like a loss.

    Args:
        picks: iterable of objects with ``week`` and ``result`` attributes
        last_completed_week: the league's watermark, None meaning no week settled

    Returns:
        dict with points, strikes, loss_strikes and missing_pick_strikes
    """
    watermark = last_completed_week or 0

    points = 0
    loss_strikes = 0
    weeks_with_picks = set()

    for pick in picks:
        if pick.result is None or pick.week > watermark:
            continue

        weeks_with_picks.add(pick.week)
        points += POINTS_FOR_RESULT.get(pick.result, 0)
        if pick.result == "loss":
            loss_strikes += 1

    missing_pick_strikes = max(0, watermark - len(weeks_with_picks))

    return {
        "points": points,
        "strikes": loss_strikes + missing_pick_strikes,
        "loss_strikes": loss_strikes,
        "missing_pick_strikes": missing_pick_strikes,
    }


def update_pick_results():
    """Resolve every pick still waiting for a result; returns the number updated"""
    logger.info("Starting pick result updates...")

    pending_picks = (
        Pick.query.join(Game, Pick.game_id == Game.id)
        .filter(Pick.result.is_(None), Game.status == STATUS_COMPLETED)
        .order_by(Pick.id)
        .all()
    )
    logger.info(f"Found {len(pending_picks)} unresolved picks for completed games")

    updated_count = 0
    for pick in pending_picks:
        try:
            game = pick.game
            result = calculate_pick_result(game, pick.team_id)

            if result is None:
                if not game.involves_team(pick.team_id):
                    logger.warning(
                        f"Pick {pick.id} is for team {pick.team_id}, which is not playing in game {game.id}"
                    )
                continue

            pick.result = result
            db.session.commit()
            updated_count += 1
            logger.info(
                f"Updated pick {pick.id}: {result} (Game {game.id}, Week {game.week})"
            )

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error processing pick {pick.id}: {e}", exc_info=True)

    logger.info(f"Completed pick result updates: {updated_count} picks updated")
    return updated_count


def calculate_scores_and_strikes():
    """
    Recompute points and strikes for every active league membership.

    Returns the number of memberships whose stored standing changed.
    """
    logger.info("Starting score and strikes calculation...")

    memberships = LeagueMembership.get_active_memberships()
    league_week_map = {
        league.id: league.last_completed_week or 0
        for league in League.get_active_leagues()
    }

    logger.info(f"Found {len(memberships)} active league memberships to process")

    updated_count = 0
    for membership in memberships:
        try:
            last_completed_week = league_week_map.get(membership.league_id, 0)

            picks = Pick.query.filter(
                Pick.user_id == membership.user_id,
                Pick.league_id == membership.league_id,
                Pick.result.isnot(None),
                Pick.week <= last_completed_week,
            ).all()

            standing = calculate_points_and_strikes(picks, last_completed_week)

            if membership.apply_standing(standing):
                db.session.commit()
                updated_count += 1
                logger.info(
                    f"Updated {membership.team_name}: {standing['points']} points, "
                    f"{standing['strikes']} strikes ({standing['loss_strikes']} losses + "
                    f"{standing['missing_pick_strikes']} missed weeks, from {len(picks)} picks)"
                )

        except Exception as e:
            db.session.rollback()
            logger.error(
                f"Error processing membership {membership.id}: {e}", exc_info=True
            )

    logger.info(f"Strike calculation complete. Updated {updated_count} players.")
    return updated_count


def run_scoring_calculation():
    """Resolve pick results, then rebuild all standings"""
    started = time.monotonic()
    logger.info("=== Scoring Calculation Started ===")

    picks_updated = update_pick_results()
    memberships_updated = calculate_scores_and_strikes()

    execution_time = round(time.monotonic() - started, 2)
    completed_at = get_utc_time().isoformat()

    logger.info(
        f"=== Scoring Calculation Completed: {picks_updated} pick results, "
        f"{memberships_updated} memberships updated in {execution_time}s ==="
    )

    return {
        "picks_updated": picks_updated,
        "memberships_updated": memberships_updated,
        "execution_time": execution_time,
        "completed_at": completed_at,
    }
