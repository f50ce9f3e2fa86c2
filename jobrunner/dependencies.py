from jobrunner.services.job_scheduler import JobScheduler


def get_job_scheduler() -> JobScheduler:
    """Scheduler bound to the application database; overridden in tests."""
    return JobScheduler()
