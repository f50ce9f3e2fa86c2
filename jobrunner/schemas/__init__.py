"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema, TimestampedSchema

# Job schemas
from .job import (
    JobRead,
    JobScheduleRequest,
    JobScheduleResponse,
    JobStatusSummary,
    ProcessJobsResponse,
    SeedJobsResponse,
)
