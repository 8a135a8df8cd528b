"""
Health check endpoint with database and sync status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.container import ServiceContainer
from api.dependencies import get_container, get_db
from schemas.api import HealthCheckResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    container: ServiceContainer = Depends(get_container)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Sync freshness per tracked category and API call success ratio
    """
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    return HealthCheckResponse(
        database_connected=db_connected,
        sync=container.metrics.get_health(),
    )
