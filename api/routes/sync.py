"""
Manual warehouse syncs and scheduled job status
"""

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError as FilterValidationError
from typing import Any, Dict, List, Optional
import logging

from api.container import ServiceContainer
from api.dependencies import get_container, require_api_key
from core.exceptions import RetryExhaustedError, SyncException
from ingestion.entities import WAREHOUSE_ENTITIES
from schemas.api import SyncResponse
from schemas.sync import JobStatusResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sync", tags=["Sync"], dependencies=[Depends(require_api_key)])


@router.get("/jobs", response_model=List[JobStatusResponse])
async def list_jobs(container: ServiceContainer = Depends(get_container)):
    """State and counters of every scheduled job"""
    return container.scheduler.get_jobs()


@router.post("/{entity}", response_model=SyncResponse)
async def sync_entity(
    entity: str,
    filters: Optional[Dict[str, Any]] = Body(None, description="Entity filter fields"),
    container: ServiceContainer = Depends(get_container)
):
    """
    Sync one warehouse entity now.

    The body holds the entity's filter fields, e.g. ``{"facility_id": "F1"}``
    for leases. Unknown fields are rejected.
    """
    definition = WAREHOUSE_ENTITIES.get(entity)
    if definition is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown entity '{entity}'",
        )

    try:
        entity_filter = definition.filter_class.model_validate(filters or {})
    except FilterValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False),
        )

    try:
        result = await container.warehouse_sync.sync(entity, entity_filter)
    except RetryExhaustedError as e:
        logger.error(f"Manual {entity} sync failed: {e}")
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=e.message)
    except SyncException as e:
        logger.error(f"Manual {entity} sync failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    return SyncResponse(message=f"{definition.label.capitalize()} sync completed", details=result)
