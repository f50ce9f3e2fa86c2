"""
Job administration endpoints
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobrunner.core.enums import JobStatus
from jobrunner.core.exceptions import JobStoreError
from jobrunner.core.security import require_cron_secret
from jobrunner.core.utils import ensure_utc, utc_now
from jobrunner.dependencies import get_job_scheduler
from jobrunner.schemas.job import JobRead, JobScheduleRequest, JobScheduleResponse, JobStatusSummary
from jobrunner.services.job_registry import is_registered
from jobrunner.services.job_scheduler import JobScheduler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/jobs", tags=["jobs"], dependencies=[require_cron_secret()])


@router.post("", response_model=JobScheduleResponse, status_code=status.HTTP_201_CREATED)
async def schedule_job(
    request: JobScheduleRequest,
    scheduler: JobScheduler = Depends(get_job_scheduler),
):
    if not is_registered(request.job_type, scheduler.registry):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown job type: {request.job_type}"
        )

    scheduled_for = ensure_utc(request.scheduled_for) or utc_now()
    job_id = await scheduler.schedule_job(request.job_type, request.payload, scheduled_for)
    if job_id is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Failed to schedule job")

    return JobScheduleResponse(job_id=job_id, job_type=request.job_type, scheduled_for=scheduled_for)


@router.get("", response_model=List[JobRead])
async def list_jobs(
    job_status: Optional[JobStatus] = Query(None, alias="status"),
    job_type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    scheduler: JobScheduler = Depends(get_job_scheduler),
):
    try:
        return await scheduler.store.list_jobs(status=job_status, job_type=job_type, limit=limit)
    except JobStoreError as e:
        logger.error(f"Error listing jobs: {str(e)}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/summary", response_model=JobStatusSummary)
async def job_summary(scheduler: JobScheduler = Depends(get_job_scheduler)):
    try:
        counts = await scheduler.store.count_by_status()
    except JobStoreError as e:
        logger.error(f"Error counting jobs: {str(e)}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return JobStatusSummary(**counts)


@router.get("/{job_id}", response_model=JobRead)
async def get_job(job_id: str, scheduler: JobScheduler = Depends(get_job_scheduler)):
    try:
        job = await scheduler.store.get(job_id)
    except JobStoreError as e:
        logger.error(f"Error loading job {job_id}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Job {job_id} not found")
    return job
