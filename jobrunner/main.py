# jobrunner/main.py

import logging
import subprocess
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jobrunner.core.config import get_settings
from jobrunner.core.logging_config import configure_logging
from jobrunner.routes import cron, health, jobs
from jobrunner.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """alembic upgrade head, logged rather than raised so the app still boots"""
    logger.info("Running database migrations...")
    try:
        result = subprocess.run(['alembic', 'upgrade', 'head'], capture_output=True, text=True)
    except OSError as e:
        logger.error(f"Migration error: {e}")
        return

    if result.returncode == 0:
        logger.info("Migrations completed successfully")
    else:
        logger.error(f"Migration failed: {result.stderr}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"Starting jobrunner ({settings.ENVIRONMENT})")

    if settings.RUN_MIGRATIONS:
        run_migrations()

    if settings.JOB_TIMER_ENABLED:
        await start_scheduler(settings)
    try:
        yield  # This is where the app runs
    finally:
        await stop_scheduler()


app = FastAPI(
    title="jobrunner",
    description="Persisted, polling-based background job scheduler",
    lifespan=lifespan
)

# Cron and job routers carry their own bearer-secret dependency
app.include_router(cron.router)
app.include_router(jobs.router)
app.include_router(health.router)  # Health check should be accessible without auth
