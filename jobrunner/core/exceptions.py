class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class JobSchedulerError(BaseServiceError):
    """Base exception for job scheduler errors."""
    pass

class JobStoreError(JobSchedulerError):
    """Raised when the job store cannot be read or written."""
    pass

class UnknownJobTypeError(JobSchedulerError):
    """Raised when a job type has no entry in the registry."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(f"Unknown job type: {job_type}")

class JobTimeoutError(JobSchedulerError):
    """Raised when a handler exceeds its deadline."""
    pass

class MarketDataError(BaseServiceError):
    """Base exception for market data provider errors."""
    pass

class MarketDataAPIError(MarketDataError):
    """Raised when market data API calls fail."""
    pass

class MarketDataConfigError(MarketDataError):
    """Raised when the market data provider is not configured."""
    pass
