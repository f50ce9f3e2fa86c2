"""
Shared enums and constants used across the application.
"""

from enum import Enum


class JobStatus(str, Enum):
    """Lifecycle of a background job row: pending -> running -> completed | failed"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class JobType(str, Enum):
    """Closed set of job types known to the registry"""
    CACHE_CLEANUP = "cache_cleanup"
    REFRESH_TOP_ASSETS = "refresh_top_assets"
    REFRESH_GLOBAL_DATA = "refresh_global_data"
    REFRESH_NEWS = "refresh_news"
    REFRESH_MARKET_SNAPSHOT = "refresh_market_snapshot"
    RECOVER_STALE_JOBS = "recover_stale_jobs"


class FearGreedClassification(str, Enum):
    FEAR = "Fear"
    NEUTRAL = "Neutral"
    GREED = "Greed"
