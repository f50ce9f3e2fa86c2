"""
Schemas for background jobs and the cron/admin endpoints.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from jobrunner.core.enums import JobStatus
from jobrunner.core.utils import ensure_utc
from jobrunner.schemas.base import BaseSchema, TimestampedSchema


class JobRead(TimestampedSchema):
    id: str
    job_type: str
    status: JobStatus
    payload: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Any] = None
    error: Optional[str] = None
    scheduled_for: datetime
    completed_at: Optional[datetime] = None

    @field_validator('payload', mode='before')
    @classmethod
    def empty_payload(cls, v):
        return v or {}

    @field_validator('scheduled_for', 'completed_at', mode='after')
    @classmethod
    def job_times_as_utc(cls, v):
        return ensure_utc(v)


class JobScheduleRequest(BaseModel):
    job_type: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    scheduled_for: Optional[datetime] = None


class JobScheduleResponse(BaseSchema):
    success: bool = True
    job_id: str
    job_type: str
    scheduled_for: datetime


class ProcessJobsResponse(BaseSchema):
    success: bool = True
    processed_count: int
    message: str


class SeedJobsResponse(BaseSchema):
    success: bool = True
    scheduled: Dict[str, Optional[str]]
    message: str


class JobStatusSummary(BaseSchema):
    pending: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
