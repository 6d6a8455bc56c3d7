"""Health check endpoint."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_policy_cache, get_session
from app.services.policy_cache import PolicyCache

router = APIRouter()


@router.get("/health")
async def health_check(
    db: Annotated[AsyncSession, Depends(get_session)],
    cache: Annotated[PolicyCache, Depends(get_policy_cache)],
) -> dict:
    """
    Health check endpoint.

    Verifies that the API is running and the database is accessible. An
    unreachable cache only degrades the status; evaluation still works.

    Returns:
        dict: Health status with API, database and cache status
    """
    # Check database connectivity
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"

    cache_status = "healthy" if await cache.health_check() else "unavailable"

    healthy = db_status == "healthy" and cache_status == "healthy"
    return {
        "status": "healthy" if healthy else "degraded",
        "api": "healthy",
        "database": db_status,
        "cache": cache_status,
    }
