"""
Clawg Backend - Signal Engine
Token market data aggregation and agent signal scoring

FEATURES:
- Multi-source token metrics (Uniswap pools on-chain, GeckoTerminal)
- Periodic token snapshots with holder carry-forward
- Engagement, growth, quality and audience analytics
- Composite signal score (build + token + social + verification)

ARCHITECTURE:
- Blueprints: HTTP layer (thin wrappers)
- Services: Business logic (no HTTP)
- Admin: Isolated, feature-flagged
"""

import os
import logging
from flask import Flask
from flask_cors import CORS
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger

# App imports
from clawg.config import (
    DATABASE_URL, VERSION, ENABLE_ADMIN, ENABLE_SCHEDULER,
    IS_PRODUCTION, ENV, SNAPSHOT_INTERVAL_MINUTES,
    ANALYTICS_CRON_MINUTE, SIGNAL_CRON_MINUTE
)
from clawg.models import db

# =============================================================================
# LOGGING
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# =============================================================================
# APP FACTORY
# =============================================================================

def create_app(database_url=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    CORS(app)

    # Database configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = database_url or DATABASE_URL
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Initialize extensions
    db.init_app(app)

    # Register blueprints
    register_blueprints(app)

    # Create tables
    with app.app_context():
        db.create_all()
        logger.info("✅ Database tables created")

    return app


def register_blueprints(app):
    """
    Register blueprints based on environment and feature flags.

    PRODUCTION: Core blueprints only
    DEVELOPMENT: Core + Admin
    """
    from clawg.blueprints import (
        public_bp,
        tokens_bp,
        signal_bp,
        cron_bp,
    )

    # Core blueprints - always registered
    app.register_blueprint(public_bp)
    app.register_blueprint(tokens_bp)
    app.register_blueprint(signal_bp)
    app.register_blueprint(cron_bp)

    logger.info(f"✅ Core blueprints registered (ENV={ENV})")

    # Admin blueprint - conditional
    if ENABLE_ADMIN or not IS_PRODUCTION:
        from clawg.admin import admin_bp
        app.register_blueprint(admin_bp)
        logger.info("✅ Admin blueprint registered (ENABLE_ADMIN=true)")
    else:
        logger.info("⚠️ Admin blueprint DISABLED (production mode)")


# =============================================================================
# SCHEDULER
# =============================================================================

scheduler = None


def scheduled_snapshot_refresh():
    """Record a fresh snapshot for every linked token."""
    from clawg.services.jobs import BatchJobs

    with app.app_context():
        try:
            result = BatchJobs().refresh_snapshots()
            logger.info(f"[Scheduler] Snapshots: {result.processed} recorded, {result.failed} failed")
        except Exception as e:
            logger.error(f"[Scheduler] Snapshot refresh error: {e}")
            db.session.rollback()


def scheduled_analytics_recompute():
    """Hourly engagement, growth, audience and quality recompute."""
    from clawg.services.jobs import BatchJobs

    with app.app_context():
        try:
            result = BatchJobs().recompute_analytics()
            logger.info(f"[Scheduler] Analytics: {result.processed} updated, {result.failed} failed")
        except Exception as e:
            logger.error(f"[Scheduler] Analytics recompute error: {e}")
            db.session.rollback()


def scheduled_signal_recompute():
    """Hourly signal score recompute for verified agents."""
    from clawg.services.jobs import BatchJobs

    with app.app_context():
        try:
            result = BatchJobs().recompute_signal_scores()
            logger.info(f"[Scheduler] Signal: {result.processed} scored, {result.skipped} unverified skipped")
        except Exception as e:
            logger.error(f"[Scheduler] Signal recompute error: {e}")
            db.session.rollback()


def start_scheduler():
    """Initialize and start the background scheduler."""
    global scheduler

    if scheduler is not None:
        logger.info("[Scheduler] Already running")
        return

    scheduler = BackgroundScheduler(daemon=True)

    # Token snapshots - every SNAPSHOT_INTERVAL_MINUTES
    scheduler.add_job(
        scheduled_snapshot_refresh,
        IntervalTrigger(minutes=SNAPSHOT_INTERVAL_MINUTES),
        id='snapshot_refresh',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    # Analytics - top of every hour
    scheduler.add_job(
        scheduled_analytics_recompute,
        CronTrigger(minute=ANALYTICS_CRON_MINUTE),
        id='analytics_recompute',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    # Signal - after analytics so social components are fresh
    scheduler.add_job(
        scheduled_signal_recompute,
        CronTrigger(minute=SIGNAL_CRON_MINUTE),
        id='signal_recompute',
        replace_existing=True,
        max_instances=1,
        coalesce=True
    )

    scheduler.start()

    # Set scheduler reference in admin module if available
    if ENABLE_ADMIN or not IS_PRODUCTION:
        from clawg.admin.admin_bp import set_scheduler
        set_scheduler(scheduler)

    logger.info("[Scheduler] ✅ Started successfully!")
    logger.info(f"  - Token snapshots: every {SNAPSHOT_INTERVAL_MINUTES} minutes")
    logger.info(f"  - Analytics recompute: hourly at :{ANALYTICS_CRON_MINUTE:02d}")
    logger.info(f"  - Signal recompute: hourly at :{SIGNAL_CRON_MINUTE:02d}")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    global scheduler
    if scheduler:
        scheduler.shutdown()
        scheduler = None
        logger.info("[Scheduler] Stopped")


# =============================================================================
# CREATE APP INSTANCE
# =============================================================================

app = create_app()


# =============================================================================
# MAIN
# =============================================================================

# Start the scheduler (only in production or when explicitly enabled)
if ENABLE_SCHEDULER:
    start_scheduler()

if __name__ == '__main__':
    start_scheduler()
    port = int(os.environ.get('PORT', 5000))
    logger.info(f"Clawg Signal Engine v{VERSION} on port {port}")
    app.run(host='0.0.0.0', port=port, debug=not IS_PRODUCTION)
