#!/usr/bin/env python3
"""
Pick'em Management CLI

Command-line management for the Pick'em reconciler: run reconciliations,
recompute standings, inspect week tracking and maintain provider ids.
"""

import os

# CLI commands never start the background scheduler
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import click  # noqa: E402
from flask.cli import with_appcontext  # noqa: E402
from flask_migrate import downgrade, migrate, upgrade  # noqa: E402
from sqlalchemy import text  # noqa: E402

from pickem import create_app, db  # noqa: E402
from pickem.models import Game, League, LeagueMembership, ReconciliationLease  # noqa: E402
from pickem.services.reconciliation_service import (  # noqa: E402
    LEASE_NAME,
    ReconciliationService,
)
from pickem.utils.cache_utils import invalidate_standings_cache  # noqa: E402
from pickem.utils.data_sync import DataSync  # noqa: E402
from pickem.utils.exceptions import (  # noqa: E402
    ReconciliationError,
    ReconciliationInProgressError,
)
from pickem.utils.scoring import run_scoring_calculation  # noqa: E402
from pickem.utils.status_mapping import STATUS_COMPLETED  # noqa: E402
from pickem.utils.week_tracking import (  # noqa: E402
    calculate_week_watermarks,
    update_league_week_tracking,
)

app = create_app()


@click.group()
def cli():
    """Pick'em Management CLI"""
    pass


# Reconciliation Commands
@cli.group()
def reconcile():
    """Reconciliation commands"""
    pass


@reconcile.command("run")
@with_appcontext
def run_reconciliation():
    """Run a full reconciliation (sync, scoring, week tracking)"""
    try:
        click.echo("Starting reconciliation...")
        summary = ReconciliationService().run()

        click.echo("✅ Reconciliation completed")
        for key, value in summary.items():
            click.echo(f"   {key}: {value}")

    except ReconciliationInProgressError as e:
        click.echo(f"⚠️  {e}")
    except ReconciliationError as e:
        click.echo(f"❌ Reconciliation failed: {e}")
        raise SystemExit(1)


@reconcile.command("release-lease")
@with_appcontext
def release_lease():
    """Drop a stuck reconciliation lease"""
    if ReconciliationLease.force_release(LEASE_NAME):
        click.echo("✅ Reconciliation lease released")
    else:
        click.echo("No reconciliation lease held")


# Scoring Commands
@cli.group()
def scores():
    """Scoring commands"""
    pass


@scores.command("recompute")
@with_appcontext
def recompute():
    """Recompute pick results and standings for every active league"""
    try:
        result = run_scoring_calculation()
        invalidate_standings_cache()
        click.echo(
            f"✅ Updated {result['picks_updated']} picks and "
            f"{result['memberships_updated']} memberships in {result['execution_time']}s"
        )
    except Exception as e:
        db.session.rollback()
        click.echo(f"❌ Error recomputing scores: {str(e)}")


# Week Tracking Commands
@cli.group()
def weeks():
    """Week tracking commands"""
    pass


@weeks.command("update")
@with_appcontext
def update_weeks():
    """Recompute week watermarks for all active leagues"""
    leagues_updated = update_league_week_tracking()
    invalidate_standings_cache()
    click.echo(f"✅ Week tracking updated for {leagues_updated} leagues")


@weeks.command("show")
@with_appcontext
def show_weeks():
    """Show stored and calculated week watermarks per league"""
    leagues = League.get_active_leagues()
    if not leagues:
        click.echo("No active leagues")
        return

    for league in leagues:
        stored = league.week_watermarks
        calculated = calculate_week_watermarks(league)
        marker = "✅" if stored == calculated else "⚠️ "

        click.echo(f"{marker} {league.name} ({league.sports_league} {league.season})")
        for key in ("current_game_week", "current_pick_week", "last_completed_week"):
            click.echo(f"   {key}: stored={stored[key]} calculated={calculated[key]}")


# Data Sync Commands
@cli.group()
def sync():
    """Data synchronization commands"""
    pass


@sync.command("scores")
@with_appcontext
def sync_scores():
    """Sync game scores from the provider without scoring"""
    try:
        click.echo("Syncing game scores...")
        result = DataSync().sync_game_scores()
        click.echo(
            f"✅ {result['bulk_games_processed']} bulk games, "
            f"{result['individual_api_calls']} individual lookups, "
            f"{result['games_updated']} games updated, "
            f"{len(result['completed_games'])} newly completed"
        )
    except ReconciliationError as e:
        click.echo(f"❌ Error syncing scores: {str(e)}")


@sync.command("backfill-ids")
@click.argument("year", type=int)
@with_appcontext
def backfill_ids(year):
    """Add provider ids to a season's games (YEAR is the season start year)"""
    try:
        click.echo(f"Backfilling external IDs for {year}...")
        results = DataSync().backfill_external_ids(year)

        before, after = results["before"], results["after"]
        click.echo(
            f"✅ {results['season']}: {results['successful']}/{results['processed']} games updated, "
            f"{results['failed']} failed"
        )
        click.echo(
            f"   Coverage: {before['with_external_id']}/{before['total']} → "
            f"{after['with_external_id']}/{after['total']}"
        )
        for error in results["errors"]:
            click.echo(f"   ⚠️  {error}")

    except ReconciliationError as e:
        click.echo(f"❌ Error backfilling external IDs: {str(e)}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except Exception as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


# Database Migration Commands
@cli.group()
def db_migrate():
    """Database migration commands"""
    pass


@db_migrate.command()
@click.option("-m", "--message", required=True, help="Migration message")
@with_appcontext
def create_migration(message):
    """Create a new migration"""
    try:
        migrate(message=message)
        click.echo(f"✅ Migration created: {message}")
    except Exception as e:
        click.echo(f"❌ Error creating migration: {str(e)}")


@db_migrate.command()
@click.option("--revision", default="head", help="Revision to upgrade to")
@with_appcontext
def apply_migrations(revision):
    """Apply migrations to database"""
    try:
        upgrade(revision=revision)
        click.echo(f"✅ Migrations applied to {revision}")
    except Exception as e:
        click.echo(f"❌ Error applying migrations: {str(e)}")


@db_migrate.command()
@click.option("--revision", required=True, help="Revision to downgrade to")
@with_appcontext
def rollback_migration(revision):
    """Rollback migrations to specific revision"""
    try:
        downgrade(revision=revision)
        click.echo(f"✅ Rolled back to {revision}")
    except Exception as e:
        click.echo(f"❌ Error rolling back: {str(e)}")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("⚽ Pick'em Reconciler Status")
    click.echo("=" * 40)

    # Database connection
    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except Exception as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    lease = db.session.get(ReconciliationLease, LEASE_NAME)
    if lease:
        click.echo(f"⏳ Reconciliation lease held until {lease.expires_at} UTC")
    else:
        click.echo("✅ Reconciliation lease: free")

    leagues = League.get_active_leagues()
    click.echo(f"🏆 Active Leagues: {len(leagues)}")
    for league in leagues:
        click.echo(
            f"   {league.name}: pick week {league.current_pick_week}, "
            f"last completed week {league.last_completed_week}"
        )

    member_count = LeagueMembership.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Memberships: {member_count}")

    game_count = Game.query.count()
    completed_count = Game.query.filter_by(status=STATUS_COMPLETED).count()
    missing_ids = Game.query.filter(Game.external_id.is_(None)).count()
    click.echo(f"⚽ Games: {completed_count}/{game_count} completed")
    if missing_ids:
        click.echo(
            f"⚠️  {missing_ids} games without external ID (run 'sync backfill-ids')"
        )


if __name__ == "__main__":
    with app.app_context():
        cli()
