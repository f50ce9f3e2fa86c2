"""
Job type registry.

Maps each job type to what runs it and how often it repeats. The scheduler
only ever looks things up here, so adding a job type means adding an entry
rather than touching the processing loop.
"""

from dataclasses import dataclass
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from jobrunner.core.enums import JobType
from jobrunner.core.exceptions import UnknownJobTypeError
from jobrunner.services import job_handlers

JobHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class JobDefinition:
    handler: JobHandler
    interval: Optional[timedelta] = None  # None means one-off
    timeout: Optional[float] = None  # seconds; None uses JOB_HANDLER_TIMEOUT_SECONDS
    description: str = ""

    @property
    def recurring(self) -> bool:
        return self.interval is not None


JOB_REGISTRY: Mapping[str, JobDefinition] = MappingProxyType({
    JobType.CACHE_CLEANUP.value: JobDefinition(
        handler=job_handlers.cache_cleanup,
        interval=timedelta(hours=1),
        description="Delete expired api_cache entries",
    ),
    JobType.REFRESH_TOP_ASSETS.value: JobDefinition(
        handler=job_handlers.refresh_top_assets,
        interval=timedelta(minutes=30),
        description="Refresh top asset listings",
    ),
    JobType.REFRESH_GLOBAL_DATA.value: JobDefinition(
        handler=job_handlers.refresh_global_data,
        interval=timedelta(hours=1),
        description="Refresh cached global market metrics",
    ),
    JobType.REFRESH_NEWS.value: JobDefinition(
        handler=job_handlers.refresh_news,
        interval=timedelta(minutes=15),
        description="Refresh cached news feed",
    ),
    JobType.REFRESH_MARKET_SNAPSHOT.value: JobDefinition(
        handler=job_handlers.refresh_market_snapshot,
        interval=timedelta(hours=1),
        description="Record a market snapshot with dominance and fear & greed",
    ),
    JobType.RECOVER_STALE_JOBS.value: JobDefinition(
        handler=job_handlers.recover_stale_jobs,
        interval=timedelta(minutes=15),
        description="Fail jobs left running by a crashed invoker",
    ),
})


def _key(job_type: Union[str, JobType]) -> str:
    return job_type.value if isinstance(job_type, JobType) else str(job_type)


def get_definition(
    job_type: Union[str, JobType],
    registry: Optional[Mapping[str, JobDefinition]] = None,
) -> JobDefinition:
    registry = JOB_REGISTRY if registry is None else registry
    try:
        return registry[_key(job_type)]
    except KeyError:
        raise UnknownJobTypeError(_key(job_type)) from None


def is_registered(
    job_type: Union[str, JobType],
    registry: Optional[Mapping[str, JobDefinition]] = None,
) -> bool:
    registry = JOB_REGISTRY if registry is None else registry
    return _key(job_type) in registry


def recurring_job_types(registry: Optional[Mapping[str, JobDefinition]] = None) -> List[str]:
    registry = JOB_REGISTRY if registry is None else registry
    return [job_type for job_type, definition in registry.items() if definition.recurring]
