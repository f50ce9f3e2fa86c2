"""
Polling job scheduler.

Nothing runs in the background here: an invoker (cron endpoint, CLI, the
optional in-process timer) awaits `process_pending_jobs()` which runs one
batch of due jobs and returns how many it handled.

Lifecycle of a row: pending -> running -> completed | failed. Recurring job
types get a fresh pending row once an occurrence finishes, due
`interval` after its completion.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional, Union

from jobrunner.core.config import get_settings
from jobrunner.core.enums import JobStatus, JobType
from jobrunner.core.exceptions import JobStoreError, JobTimeoutError
from jobrunner.core.utils import describe_error, ensure_utc, utc_now
from jobrunner.schemas.job import JobRead
from jobrunner.services.job_registry import JOB_REGISTRY, JobDefinition, get_definition, recurring_job_types
from jobrunner.services.job_store import JobStore, SQLAlchemyJobStore

logger = logging.getLogger(__name__)


class JobScheduler:
    """
    Schedules background jobs into a JobStore and runs the due ones.

    Handlers come from the registry (JOB_REGISTRY by default). Batch size,
    handler deadline and the stale threshold default to the settings.
    """

    def __init__(
        self,
        store: Optional[JobStore] = None,
        registry: Optional[Mapping[str, JobDefinition]] = None,
        *,
        batch_size: Optional[int] = None,
        handler_timeout: Optional[float] = None,
        stale_after: Optional[timedelta] = None,
    ):
        settings = get_settings()
        self.store = store if store is not None else SQLAlchemyJobStore()
        self.registry = registry if registry is not None else JOB_REGISTRY
        self.batch_size = batch_size if batch_size is not None else settings.JOB_BATCH_SIZE
        self.handler_timeout = (
            handler_timeout if handler_timeout is not None else settings.JOB_HANDLER_TIMEOUT_SECONDS
        )
        self.stale_after = stale_after if stale_after is not None else timedelta(minutes=settings.STALE_JOB_MINUTES)

    async def schedule_job(
        self,
        job_type: Union[str, JobType],
        payload: Optional[Dict[str, Any]] = None,
        scheduled_for: Optional[datetime] = None,
    ) -> Optional[str]:
        """
        Insert a pending job.

        Returns the new job id, or None when the store rejected the insert.
        """
        job_type = job_type.value if isinstance(job_type, JobType) else str(job_type)
        scheduled_for = ensure_utc(scheduled_for) or utc_now()

        if job_type not in self.registry:
            logger.warning(f"Scheduling unregistered job type '{job_type}'; it will fail when processed")

        try:
            job_id = await self.store.insert(job_type, dict(payload or {}), scheduled_for)
        except JobStoreError as e:
            logger.error(f"Failed to schedule {job_type} job: {e}")
            return None

        logger.info(f"Scheduled {job_type} job {job_id} for {scheduled_for.isoformat()}")
        return job_id

    async def process_pending_jobs(self) -> int:
        """
        Run one batch of due jobs concurrently.

        Returns the number of jobs this call claimed. Errors from individual
        jobs are recorded on the rows; only a failure to read the batch is
        raised (JobStoreError).
        """
        jobs = await self.store.select_due(utc_now(), self.batch_size)
        if not jobs:
            logger.debug("No pending jobs due")
            return 0

        logger.info(f"Processing {len(jobs)} due jobs")
        outcomes = await asyncio.gather(*(self._process_job(job) for job in jobs))
        return sum(1 for claimed in outcomes if claimed)

    async def _process_job(self, job: JobRead) -> bool:
        try:
            claimed = await self.store.claim(job.id)
        except JobStoreError as e:
            logger.error(f"Could not claim job {job.id}: {e}")
            return False

        if not claimed:
            logger.info(f"Job {job.id} was claimed by another worker, skipping")
            return False

        definition = None
        try:
            definition = get_definition(job.job_type, self.registry)
            result = await self._run_handler(definition, job.payload or {})
        except Exception as e:
            completed_at = utc_now()
            logger.error(f"Job {job.id} ({job.job_type}) failed: {describe_error(e)}")
            written = await self._record_outcome(job, {
                "status": JobStatus.FAILED,
                "error": describe_error(e),
                "completed_at": completed_at,
            })
        else:
            completed_at = utc_now()
            logger.info(f"Job {job.id} ({job.job_type}) completed")
            written = await self._record_outcome(job, {
                "status": JobStatus.COMPLETED,
                "result": _as_result(result),
                "completed_at": completed_at,
            })

        # A row left running is rescheduled by recover_stale_jobs once it fails it.
        if written and definition is not None and definition.recurring:
            await self._schedule_next_run(job, completed_at + definition.interval)

        return True

    async def _run_handler(self, definition: JobDefinition, payload: Dict[str, Any]) -> Any:
        timeout = definition.timeout if definition.timeout is not None else self.handler_timeout
        if not timeout or timeout <= 0:
            return await definition.handler(dict(payload))

        try:
            return await asyncio.wait_for(definition.handler(dict(payload)), timeout=timeout)
        except asyncio.TimeoutError:
            raise JobTimeoutError(f"Timed out after {timeout:g} seconds") from None

    async def _record_outcome(self, job: JobRead, fields: Dict[str, Any]) -> bool:
        """Write the terminal state; True only if the row was still running and got updated."""
        try:
            written = await self.store.update(job.id, fields, expected_status=JobStatus.RUNNING)
        except JobStoreError:
            logger.exception(f"Failed to record outcome for job {job.id}")
            return False

        if not written:
            logger.warning(f"Job {job.id} was no longer running when its outcome was recorded")
        return written

    async def _schedule_next_run(self, job: JobRead, next_run: datetime) -> None:
        try:
            next_id = await self.store.insert(job.job_type, dict(job.payload or {}), next_run)
        except JobStoreError as e:
            logger.error(f"Failed to reschedule {job.job_type} after job {job.id}: {e}")
            return
        logger.info(f"Next {job.job_type} job {next_id} scheduled for {next_run.isoformat()}")

    async def recover_stale_jobs(self, stale_after: Optional[timedelta] = None) -> int:
        """
        Fail jobs stuck in `running` longer than `stale_after`.

        Rows are never moved back to pending; recurring types get their next
        occurrence scheduled so the chain does not stop.
        """
        stale_after = stale_after or self.stale_after
        now = utc_now()
        minutes = int(stale_after.total_seconds() // 60)

        stale_jobs = await self.store.select_stale_running(now - stale_after)
        recovered = 0
        for job in stale_jobs:
            written = await self.store.update(
                job.id,
                {
                    "status": JobStatus.FAILED,
                    "error": f"Abandoned: still running after {minutes} minutes",
                    "completed_at": now,
                },
                expected_status=JobStatus.RUNNING,
            )
            if not written:
                continue

            recovered += 1
            logger.warning(f"Marked abandoned job {job.id} ({job.job_type}) as failed")

            definition = self.registry.get(job.job_type)
            if definition is not None and definition.recurring:
                await self._schedule_next_run(job, now)

        return recovered

    async def seed_recurring_jobs(self) -> Dict[str, Optional[str]]:
        """
        Schedule one immediate job for every recurring type without a pending one.

        Returns {job_type: job_id or None} for the types it tried to schedule.
        """
        pending = await self.store.pending_counts_by_type()
        scheduled = {}
        for job_type in recurring_job_types(self.registry):
            if pending.get(job_type, 0) > 0:
                logger.info(f"{job_type} already has a pending job, skipping")
                continue
            scheduled[job_type] = await self.schedule_job(job_type)
        return scheduled


def _as_result(value: Any) -> Dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    return {"value": value}
