from tests.mocks.job_store import InMemoryJobStore

__all__ = ["InMemoryJobStore"]
