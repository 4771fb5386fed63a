# vulnscope/scheduler.py
"""
Background Scheduler for CVE Checks
───────────────────────────────────
Uses APScheduler to run a bulk technology CVE check once a week.

Setup in the app factory (__init__.py):
    from vulnscope.scheduler import init_scheduler
    init_scheduler(app, tracker)

Overlapping fires are dropped: APScheduler never runs two instances of
the job (max_instances=1), and the tracker's own in-progress guard also
skips a fire while an on-demand bulk check is still running.
"""
from __future__ import annotations

import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger("scheduler")
logger.setLevel(logging.INFO)

CHECK_INTERVAL_DAYS = 7
JOB_ID = "weekly_cve_check"

_scheduler: BackgroundScheduler | None = None


def run_scheduled_check(tracker):
    """One scheduled fire. Never raises into APScheduler."""
    logger.info("Running scheduled weekly CVE check...")
    try:
        summary = tracker.run_bulk_check()
    except Exception as e:
        logger.error(f"Scheduled CVE check failed: {e}")
        return None

    if summary is None:
        logger.info("Scheduled CVE check skipped: previous check still running")
    return summary


def init_scheduler(app, tracker):
    """Initialize and start the background scheduler."""
    global _scheduler

    if os.environ.get("FLASK_NO_SCHEDULER") or app.config.get("FLASK_NO_SCHEDULER"):
        logger.info("Scheduler disabled via FLASK_NO_SCHEDULER")
        return None

    if _scheduler is not None:
        logger.info("Scheduler already running")
        return _scheduler

    _scheduler = BackgroundScheduler(daemon=True)

    _scheduler.add_job(
        func=run_scheduled_check,
        args=[tracker],
        trigger=IntervalTrigger(days=CHECK_INTERVAL_DAYS),
        id=JOB_ID,
        name="Weekly technology CVE check",
        replace_existing=True,
        max_instances=1,  # Prevent overlapping runs
        coalesce=True,
    )

    _scheduler.start()
    logger.info(f"Background scheduler started (CVE check every {CHECK_INTERVAL_DAYS} days)")
    return _scheduler


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
