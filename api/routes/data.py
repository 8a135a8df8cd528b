"""
Local data retrieval endpoints with pagination and filtering
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from api.dependencies import get_db, require_api_key
from schemas.api import (
    FacilityListResponse,
    FacilityResponse,
    PaginationMetadata,
    TenantListResponse,
    TenantResponse,
)
from models import Facility, Tenant
from typing import Any, Dict, List, Optional, Tuple
import time
import uuid
import math
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Data"], dependencies=[Depends(require_api_key)])


async def _paginate(db: AsyncSession, model, filters: List[Any], order_by: tuple, page: int, page_size: int) -> Tuple[list, PaginationMetadata]:
    count_query = select(func.count()).select_from(model)
    query = select(model)
    if filters:
        count_query = count_query.where(and_(*filters))
        query = query.where(and_(*filters))

    total_items = (await db.execute(count_query)).scalar()
    total_pages = math.ceil(total_items / page_size) if total_items > 0 else 0

    query = query.order_by(*order_by).offset((page - 1) * page_size).limit(page_size)
    items = (await db.execute(query)).scalars().all()

    return items, PaginationMetadata(
        current_page=page,
        page_size=page_size,
        total_items=total_items,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_previous=page > 1
    )


@router.get("/facilities", response_model=FacilityListResponse)
async def list_facilities(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=1000, description="Items per page"),
    state: Optional[str] = Query(None, description="Filter by state"),
    status: Optional[str] = Query(None, description="Filter by facility status"),
    db: AsyncSession = Depends(get_db)
):
    """Retrieve synced facilities"""
    start_time = time.time()
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    applied: Dict[str, Any] = {k: v for k, v in {"state": state, "status": status}.items() if v is not None}
    filters = [getattr(Facility, k) == v for k, v in applied.items()]

    items, pagination = await _paginate(db, Facility, filters, (Facility.id,), page, page_size)

    logger.info(
        f"[{request_id}] GET /facilities returned {len(items)} items "
        f"in {(time.time() - start_time) * 1000:.2f}ms"
    )
    return FacilityListResponse(
        items=[FacilityResponse.model_validate(item) for item in items],
        pagination=pagination,
        filters_applied=applied,
    )


@router.get("/tenants", response_model=TenantListResponse)
async def list_tenants(
    request: Request,
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=1000, description="Items per page"),
    facility_id: Optional[str] = Query(None, description="Filter by facility"),
    is_good_standing: Optional[bool] = Query(None, description="Filter by good standing"),
    db: AsyncSession = Depends(get_db)
):
    """Retrieve synced tenants"""
    start_time = time.time()
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")

    applied: Dict[str, Any] = {
        k: v for k, v in {"facility_id": facility_id, "is_good_standing": is_good_standing}.items()
        if v is not None
    }
    filters = [getattr(Tenant, k) == v for k, v in applied.items()]

    items, pagination = await _paginate(
        db, Tenant, filters, (Tenant.facility_id, Tenant.unit_number), page, page_size
    )

    logger.info(
        f"[{request_id}] GET /tenants returned {len(items)} items "
        f"in {(time.time() - start_time) * 1000:.2f}ms"
    )
    return TenantListResponse(
        items=[TenantResponse.model_validate(item) for item in items],
        pagination=pagination,
        filters_applied=applied,
    )
