"""
In-process timer for job processing.

Optional alternative to an external cron hitting /api/cron/process-jobs:
when JOB_TIMER_ENABLED=true the app calls process_pending_jobs() every
JOB_TIMER_SECONDS.
"""

import logging
from datetime import datetime
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from jobrunner.core.config import get_settings
from jobrunner.services.job_scheduler import JobScheduler

logger = logging.getLogger(__name__)

PROCESS_JOBS_ID = "process_pending_jobs"

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None


async def process_jobs_task():
    """Timer tick: run one batch of due jobs"""
    try:
        processed = await JobScheduler().process_pending_jobs()
        if processed:
            logger.info(f"Timer processed {processed} jobs")
    except Exception as e:
        logger.exception(f"Error in job processing tick: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Timer job {event.job_id} crashed: {event.exception}")
    else:
        logger.debug(f"Timer job {event.job_id} executed at {datetime.now()}")


def create_scheduler(settings=None) -> AsyncIOScheduler:
    """Create and configure the timer"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = settings or get_settings()
    scheduler = AsyncIOScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.JOB_TIMER_ENABLED:
        scheduler.add_job(
            process_jobs_task,
            IntervalTrigger(seconds=settings.JOB_TIMER_SECONDS),
            id=PROCESS_JOBS_ID,
            name="Process Pending Jobs",
            replace_existing=True,
            max_instances=1,  # never overlap ticks
            coalesce=True
        )
        logger.info(f"Job processing timer added: every {settings.JOB_TIMER_SECONDS}s")
    else:
        logger.info("Job processing timer is disabled. Set JOB_TIMER_ENABLED=true to enable")

    return scheduler


async def start_scheduler(settings=None):
    """Start the timer"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler(settings)

    if not scheduler.running:
        scheduler.start()
        logger.info("Timer started")

        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: {job.trigger}")


async def stop_scheduler():
    """Stop the timer gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Timer stopped")
    scheduler = None


async def get_scheduler_status():
    """Get current timer status and job information"""
    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
