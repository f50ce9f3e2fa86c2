from fastapi import APIRouter
from sqlalchemy import inspect, text

from jobrunner.database import engine
from jobrunner.scheduler import get_scheduler_status

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic health check, with the in-process timer's state"""
    return {
        "status": "healthy",
        "service": "jobrunner",
        "timer": await get_scheduler_status(),
    }


@router.get("/health/db")
async def database_health():
    """Check database connectivity and tables"""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        return {
            "status": "healthy",
            "database": "connected",
            "tables_count": len(tables),
            "tables": sorted(tables)
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "database": "error",
            "error": str(e)
        }
