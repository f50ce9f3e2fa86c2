"""
Cron endpoints

Called by an external scheduler (Vercel cron, GitHub Actions, crontab + curl)
with `Authorization: Bearer <CRON_SECRET>`.
"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from jobrunner.core.exceptions import JobStoreError
from jobrunner.core.security import require_cron_secret
from jobrunner.dependencies import get_job_scheduler
from jobrunner.schemas.job import ProcessJobsResponse, SeedJobsResponse
from jobrunner.services.job_scheduler import JobScheduler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cron", tags=["cron"], dependencies=[require_cron_secret()])


def _store_unavailable(message: str, error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"success": False, "error": message, "details": str(error)},
    )


@router.get("/process-jobs", response_model=ProcessJobsResponse)
@router.post("/process-jobs", response_model=ProcessJobsResponse)
async def process_jobs(scheduler: JobScheduler = Depends(get_job_scheduler)):
    """Run one batch of due jobs"""
    try:
        processed = await scheduler.process_pending_jobs()
    except JobStoreError as e:
        logger.error(f"Error processing jobs: {str(e)}")
        return _store_unavailable("Failed to process jobs", e)

    return ProcessJobsResponse(
        processed_count=processed,
        message=f"Processed {processed} jobs",
    )


@router.post("/init-jobs", response_model=SeedJobsResponse)
async def init_jobs(scheduler: JobScheduler = Depends(get_job_scheduler)):
    """Seed one pending job for every recurring type that has none"""
    try:
        scheduled = await scheduler.seed_recurring_jobs()
    except JobStoreError as e:
        logger.error(f"Error seeding recurring jobs: {str(e)}")
        return _store_unavailable("Failed to initialize jobs", e)

    return SeedJobsResponse(
        scheduled=scheduled,
        message=f"Scheduled {sum(1 for job_id in scheduled.values() if job_id)} recurring jobs",
    )
