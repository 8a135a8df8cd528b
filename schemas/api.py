"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime
from models.base import utcnow
from schemas.sync import SyncResult


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field(default="healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=utcnow)
    database_connected: bool
    sync: Dict[str, Any] = Field(default_factory=dict, description="Sync freshness and API success verdict")

    @model_validator(mode="after")
    def determine_status(self):
        """Database down is unhealthy; stale or failing syncs are degraded"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif self.sync.get("status") != "healthy":
            self.status = "degraded"
        else:
            self.status = "healthy"
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2024-01-15T10:30:00",
                "database_connected": True,
                "sync": {
                    "status": "healthy",
                    "details": {
                        "facilities": {"status": "healthy", "last_success": "2024-01-15T06:00:00"},
                        "api": {"status": "healthy", "total_calls": 120, "success_rate": 0.99},
                    },
                },
            }
        }
    )


# ============================================================================
# Local Data Schemas
# ============================================================================

class FacilityResponse(BaseModel):
    """Facility row"""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    timezone: Optional[str] = None
    status: Optional[str] = None
    gmb_place_id: Optional[str] = None
    gmb_link: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TenantResponse(BaseModel):
    """Tenant row"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    facility_id: str
    unit_number: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    move_in_date: Optional[date] = None
    move_out_date: Optional[date] = None
    is_good_standing: bool
    notification_opt_in: bool
    created_at: datetime
    updated_at: datetime


class PaginationMetadata(BaseModel):
    """Pagination metadata"""
    total_items: int
    total_pages: int
    current_page: int
    page_size: int
    has_next: bool
    has_previous: bool


class FacilityListResponse(BaseModel):
    """Paginated facilities"""
    items: List[FacilityResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


class TenantListResponse(BaseModel):
    """Paginated tenants"""
    items: List[TenantResponse]
    pagination: PaginationMetadata
    filters_applied: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Sync Schemas
# ============================================================================

class SyncResponse(BaseModel):
    """Result of a manually triggered sync"""
    message: str
    details: SyncResult


class WebhookAck(BaseModel):
    """Webhook acknowledgement"""
    received: bool = True
    handled: bool
