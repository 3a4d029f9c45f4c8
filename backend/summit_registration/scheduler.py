"""
Background scheduler for periodic maintenance.

Uses APScheduler to sweep expired access codes out of the store every
CLEANUP_INTERVAL_MINUTES.
"""

import logging

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from summit_registration.core.config import settings
from summit_registration.db.session import Database
from summit_registration.services.code_store import CodeStore

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def cleanup_expired_codes(database: Database) -> int:
    """Delete expired access codes. Returns the number removed."""
    db = database.session()
    try:
        deleted = CodeStore(db).cleanup()
    finally:
        db.close()

    if deleted:
        logger.info(f"🧹 Scheduled cleanup removed {deleted} expired access codes")
    return deleted


def _on_job_error(event):
    logger.error(f"Scheduled job FAILED: job_id={event.job_id} error={event.exception}")
    if event.traceback:
        logger.error(f"Traceback for job {event.job_id}:\n{event.traceback}")


def _on_job_missed(event):
    logger.warning(f"Scheduled job MISSED: job_id={event.job_id} scheduled_run_time={event.scheduled_run_time}")


def init_scheduler(database: Database):
    """
    Start the background scheduler with the cleanup job.

    Called once from the application lifespan.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,  # Combine missed executions
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )

    scheduler.add_job(
        func=cleanup_expired_codes,
        args=[database],
        trigger=IntervalTrigger(minutes=settings.CLEANUP_INTERVAL_MINUTES),
        id="cleanup_expired_codes",
        name="Delete Expired Access Codes",
        replace_existing=True,
    )
    logger.info(f"Scheduled job: cleanup_expired_codes (every {settings.CLEANUP_INTERVAL_MINUTES} minutes)")

    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)

    scheduler.start()
    logger.info("Background scheduler started successfully")
    return scheduler


def shutdown_scheduler():
    """Gracefully shut the scheduler down on application exit"""
    global scheduler

    if scheduler is not None:
        scheduler.shutdown(wait=True)
        logger.info("Background scheduler shutdown complete")
        scheduler = None
