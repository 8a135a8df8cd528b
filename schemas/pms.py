"""
Payload schemas for the property-management system (Cubby) REST API and
its webhooks. Field aliases follow the PMS's camelCase names.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Optional


class PMSModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _as_str(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


class PMSFacility(PMSModel):
    """Facility as returned by GET /facilities"""
    id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    timezone: Optional[str] = None
    status: Optional[str] = None

    @field_validator("id", "zip", "phone", mode="before")
    @classmethod
    def coerce_to_str(cls, value):
        return _as_str(value)

    def to_record(self) -> Dict[str, Any]:
        # Explicit nulls clear the column; fields the PMS omitted are left alone
        return self.model_dump(exclude_unset=True)


class NotificationPreferences(PMSModel):
    opt_in: bool = Field(default=False, alias="optIn")


class PMSTenant(PMSModel):
    """Tenant as returned by GET /facilities/{id}/tenants"""
    id: Optional[str] = None
    name: Optional[str] = None
    unit_number: Optional[str] = Field(default=None, alias="unitNumber")
    phone: Optional[str] = None
    email: Optional[str] = None
    move_in_date: Optional[str] = Field(default=None, alias="moveInDate")
    move_out_date: Optional[str] = Field(default=None, alias="moveOutDate")
    payment_status: Optional[str] = Field(default=None, alias="paymentStatus")
    auction_status: Optional[Any] = Field(default=None, alias="auctionStatus")
    balance: Optional[float] = None
    notification_preferences: Optional[NotificationPreferences] = Field(
        default=None, alias="notificationPreferences"
    )
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @field_validator("id", "unit_number", "phone", mode="before")
    @classmethod
    def coerce_to_str(cls, value):
        return _as_str(value)


class WebhookPayload(PMSModel):
    """Inbound webhook body: {event, data}"""
    event: str
    data: Dict[str, Any] = Field(default_factory=dict)


class WebhookEvent:
    TENANT_CREATED = "tenant.created"
    TENANT_UPDATED = "tenant.updated"
    FACILITY_CREATED = "facility.created"
    FACILITY_UPDATED = "facility.updated"
