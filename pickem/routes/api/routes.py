import hmac
import logging
from datetime import datetime, timezone
from functools import wraps

from flask import abort, current_app, jsonify, request

from pickem import db, limiter
from pickem.models import League
from pickem.routes.api import bp
from pickem.services.reconciliation_service import ReconciliationService
from pickem.services.scheduler_service import scheduler_service
from pickem.utils.cache_utils import (
    STANDINGS_KEY_PREFIX,
    cached_route,
    invalidate_standings_cache,
)
from pickem.utils.exceptions import ReconciliationInProgressError
from pickem.utils.scoring import run_scoring_calculation

logger = logging.getLogger(__name__)


def admin_rate_limit():
    return current_app.config.get("ADMIN_RATE_LIMIT", "10 per minute")


def require_api_key(f):
    """Reject requests whose X-API-Key does not match SCORING_API_KEY"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("SCORING_API_KEY")
        provided = request.headers.get("X-API-Key")

        if not expected or not provided:
            logger.warning(f"Admin request without API key from {request.remote_addr}")
            return jsonify({"success": False, "error": "Unauthorized"}), 401

        if not hmac.compare_digest(provided.encode(), expected.encode()):
            logger.warning(f"Admin request with invalid API key from {request.remote_addr}")
            return jsonify({"success": False, "error": "Unauthorized"}), 401

        return f(*args, **kwargs)

    return decorated_function


@bp.route("/admin/update-game-scores", methods=["POST"])
@limiter.limit(admin_rate_limit)
@require_api_key
def update_game_scores():
    """Run a full reconciliation (sync, scoring, week tracking)"""
    try:
        summary = ReconciliationService().run()
    except ReconciliationInProgressError as e:
        return jsonify({"success": False, "error": str(e)}), 409
    except Exception as e:
        db.session.rollback()
        logger.error(f"Game score update failed: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500

    return jsonify(
        {
            "success": True,
            "data": summary,
            "message": (
                f"Reconciliation completed: {summary['games_updated']} games updated, "
                f"{summary['games_completed']} completed, {summary['picks_updated']} picks scored"
            ),
        }
    )


@bp.route("/admin/recompute-scores", methods=["POST"])
@limiter.limit(admin_rate_limit)
@require_api_key
def recompute_scores():
    """Rebuild pick results and standings without talking to the provider"""
    try:
        result = run_scoring_calculation()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Score recomputation failed: {e}", exc_info=True)
        return jsonify({"success": False, "error": str(e)}), 500

    invalidate_standings_cache()

    return jsonify(
        {
            "success": True,
            "data": result,
            "message": (
                f"Scoring completed: {result['picks_updated']} picks, "
                f"{result['memberships_updated']} memberships updated"
            ),
        }
    )


@bp.route("/admin/scheduler/status")
@require_api_key
def scheduler_status():
    return jsonify({"success": True, "data": scheduler_service.get_status()})


@bp.route("/leagues/<int:league_id>/standings")
@cached_route(timeout=300, key_prefix=STANDINGS_KEY_PREFIX)
def league_standings(league_id):
    """Standings and week watermarks for a league"""
    league = db.session.get(League, league_id)
    if league is None:
        abort(404)

    return {
        "league": league.to_dict(),
        "standings": [membership.to_dict() for membership in league.get_standings()],
    }


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    return jsonify(
        {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}
    )
