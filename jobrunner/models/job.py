import uuid

from sqlalchemy import Column, DateTime, Index, JSON, String, Text

from jobrunner.core.enums import JobStatus
from jobrunner.core.utils import utc_now
from jobrunner.database import Base


class BackgroundJob(Base):
    """
    One occurrence of a background job.

    Rows are append-mostly: recurrence inserts a new row for the next
    occurrence instead of rewinding this one, and `scheduled_for` is never
    changed after insert.
    """

    __tablename__ = "background_jobs"
    __table_args__ = (
        Index("ix_background_jobs_status_scheduled_for", "status", "scheduled_for"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_type = Column(String(64), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=JobStatus.PENDING.value, index=True)  # pending, running, completed, failed
    payload = Column(JSON, nullable=False, default=dict)
    result = Column(JSON, nullable=True)
    error = Column(Text, nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<BackgroundJob(id={self.id}, type={self.job_type}, status={self.status})>"
