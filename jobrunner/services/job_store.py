"""Persistence for background jobs.

The scheduler only talks to the store through `JobStore`; the SQLAlchemy
implementation is the production one.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from jobrunner.core.enums import JobStatus
from jobrunner.core.exceptions import JobStoreError
from jobrunner.core.utils import utc_now
from jobrunner.models.job import BackgroundJob
from jobrunner.schemas.job import JobRead

# Driver connect failures (refused, unreachable, timed out) surface as OSError,
# not as SQLAlchemy errors, when a connection is first opened.
STORE_ERRORS = (SQLAlchemyError, OSError)


class JobStore(ABC):
    """Narrow CRUD contract the scheduler depends on."""

    @abstractmethod
    async def insert(self, job_type: str, payload: Dict[str, Any], scheduled_for: datetime) -> str:
        """Insert a pending job and return its id"""
        pass

    @abstractmethod
    async def select_due(self, now: datetime, limit: int) -> List[JobRead]:
        """Pending jobs with scheduled_for <= now, oldest first"""
        pass

    @abstractmethod
    async def claim(self, job_id: str) -> bool:
        """Atomically move a job from pending to running; False if someone else got it"""
        pass

    @abstractmethod
    async def update(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[JobStatus] = None,
    ) -> bool:
        """Update one row, optionally only while it is in `expected_status`"""
        pass

    @abstractmethod
    async def get(self, job_id: str) -> Optional[JobRead]:
        pass

    @abstractmethod
    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[str] = None,
        limit: int = 50,
    ) -> List[JobRead]:
        pass

    @abstractmethod
    async def count_by_status(self) -> Dict[str, int]:
        pass

    @abstractmethod
    async def pending_counts_by_type(self) -> Dict[str, int]:
        pass

    @abstractmethod
    async def select_stale_running(self, updated_before: datetime, limit: int = 100) -> List[JobRead]:
        pass


class SQLAlchemyJobStore(JobStore):
    """`JobStore` backed by the `background_jobs` table.

    Every operation opens its own short-lived session so concurrent job
    tasks never share one.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        if session_factory is None:
            from jobrunner.database import async_session
            session_factory = async_session
        self.session_factory = session_factory

    async def insert(self, job_type: str, payload: Dict[str, Any], scheduled_for: datetime) -> str:
        try:
            async with self.session_factory() as db:
                job = BackgroundJob(
                    job_type=job_type,
                    status=JobStatus.PENDING.value,
                    payload=payload or {},
                    scheduled_for=scheduled_for,
                )
                db.add(job)
                await db.commit()
                return job.id
        except STORE_ERRORS as e:
            raise JobStoreError(f"Failed to insert {job_type} job: {e}") from e

    async def select_due(self, now: datetime, limit: int) -> List[JobRead]:
        stmt = (
            select(BackgroundJob)
            .where(BackgroundJob.status == JobStatus.PENDING.value)
            .where(BackgroundJob.scheduled_for <= now)
            .order_by(BackgroundJob.scheduled_for.asc())
            .limit(int(limit))
        )
        return await self._fetch(stmt, "select due jobs")

    async def claim(self, job_id: str) -> bool:
        stmt = (
            update(BackgroundJob)
            .where(BackgroundJob.id == job_id)
            .where(BackgroundJob.status == JobStatus.PENDING.value)
            .values(status=JobStatus.RUNNING.value, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt, f"claim job {job_id}")

    async def update(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_status: Optional[JobStatus] = None,
    ) -> bool:
        values = {
            k: (v.value if isinstance(v, JobStatus) else v)
            for k, v in fields.items()
        }
        values.setdefault("updated_at", utc_now())
        stmt = update(BackgroundJob).where(BackgroundJob.id == job_id)
        if expected_status is not None:
            stmt = stmt.where(BackgroundJob.status == JobStatus(expected_status).value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        return await self._execute_update(stmt, f"update job {job_id}")

    async def get(self, job_id: str) -> Optional[JobRead]:
        try:
            async with self.session_factory() as db:
                job = await db.get(BackgroundJob, job_id)
                return JobRead.from_orm_model(job) if job else None
        except STORE_ERRORS as e:
            raise JobStoreError(f"Failed to load job {job_id}: {e}") from e

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        job_type: Optional[str] = None,
        limit: int = 50,
    ) -> List[JobRead]:
        stmt = select(BackgroundJob).order_by(BackgroundJob.created_at.desc()).limit(int(limit))
        if status:
            stmt = stmt.where(BackgroundJob.status == JobStatus(status).value)
        if job_type:
            stmt = stmt.where(BackgroundJob.job_type == str(job_type))
        return await self._fetch(stmt, "list jobs")

    async def count_by_status(self) -> Dict[str, int]:
        stmt = (
            select(BackgroundJob.status, func.count(BackgroundJob.id))
            .group_by(BackgroundJob.status)
        )
        counts = {s.value: 0 for s in JobStatus}
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                for status, count in result.all():
                    counts[status] = int(count)
        except STORE_ERRORS as e:
            raise JobStoreError(f"Failed to count jobs: {e}") from e
        return counts

    async def pending_counts_by_type(self) -> Dict[str, int]:
        stmt = (
            select(BackgroundJob.job_type, func.count(BackgroundJob.id))
            .where(BackgroundJob.status == JobStatus.PENDING.value)
            .group_by(BackgroundJob.job_type)
        )
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                return {job_type: int(count) for job_type, count in result.all()}
        except STORE_ERRORS as e:
            raise JobStoreError(f"Failed to count pending jobs: {e}") from e

    async def select_stale_running(self, updated_before: datetime, limit: int = 100) -> List[JobRead]:
        stmt = (
            select(BackgroundJob)
            .where(BackgroundJob.status == JobStatus.RUNNING.value)
            .where(BackgroundJob.updated_at < updated_before)
            .order_by(BackgroundJob.updated_at.asc())
            .limit(int(limit))
        )
        return await self._fetch(stmt, "select stale jobs")

    async def _fetch(self, stmt, action: str) -> List[JobRead]:
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                return [JobRead.from_orm_model(job) for job in result.scalars().all()]
        except STORE_ERRORS as e:
            raise JobStoreError(f"Failed to {action}: {e}") from e

    async def _execute_update(self, stmt, action: str) -> bool:
        try:
            async with self.session_factory() as db:
                result = await db.execute(stmt)
                await db.commit()
                return result.rowcount == 1
        except STORE_ERRORS as e:
            raise JobStoreError(f"Failed to {action}: {e}") from e
