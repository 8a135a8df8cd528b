"""
PMS (Cubby) integration endpoints: inbound webhook, manual syncs, lookups
and the metrics/health snapshots
"""

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import ValidationError as PayloadValidationError
from typing import Any, Dict, Optional
import hashlib
import hmac
import logging

from api.container import ServiceContainer
from api.dependencies import get_container, get_pms_sync, require_api_key
from core.exceptions import (
    AuthenticationError,
    BadRequestError,
    RetryExhaustedError,
    SyncException,
    ValidationError,
    WebhookSignatureError,
)
from ingestion.pms_sync import PMSSyncService
from schemas.api import SyncResponse, WebhookAck
from schemas.pms import WebhookPayload

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/cubby", tags=["Cubby PMS"])


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]):
    """
    Check an HMAC-SHA256 hex digest of the raw body in constant time.

    Raises:
        WebhookSignatureError: Missing secret, missing or wrong signature
    """
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")
    if not signature:
        raise WebhookSignatureError("Missing webhook signature")
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature.strip().lower(), expected):
        raise WebhookSignatureError("Invalid webhook signature")


def _upstream_error(e: SyncException, what: str) -> HTTPException:
    if isinstance(e, (BadRequestError, AuthenticationError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"PMS rejected {what}")
    if isinstance(e, RetryExhaustedError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=f"PMS unavailable for {what}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {what}")


@router.post("/webhook", response_model=WebhookAck)
async def webhook(
    request: Request,
    x_cubby_signature: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container),
    pms_sync: PMSSyncService = Depends(get_pms_sync)
):
    """Signature-checked event delivery from the PMS"""
    body = await request.body()
    try:
        verify_signature(body, x_cubby_signature, container.settings.CUBBY_WEBHOOK_SECRET)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected webhook: {e.message}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        payload = WebhookPayload.model_validate_json(body)
    except PayloadValidationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed webhook payload")

    try:
        handled = await pms_sync.handle_webhook(payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except SyncException as e:
        logger.error(f"Webhook {payload.event} failed: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to process webhook")

    return WebhookAck(handled=handled)


@router.post("/sync/facilities", response_model=SyncResponse, dependencies=[Depends(require_api_key)])
async def sync_facilities(pms_sync: PMSSyncService = Depends(get_pms_sync)):
    try:
        result = await pms_sync.sync_facilities()
    except SyncException as e:
        logger.error(f"Manual facility sync failed: {e}")
        raise _upstream_error(e, "sync facilities")
    return SyncResponse(message="Facility sync completed", details=result)


@router.post("/sync/tenants/{facility_id}", response_model=SyncResponse, dependencies=[Depends(require_api_key)])
async def sync_tenants(facility_id: str, pms_sync: PMSSyncService = Depends(get_pms_sync)):
    try:
        result = await pms_sync.sync_tenants(facility_id)
    except SyncException as e:
        logger.error(f"Manual tenant sync for {facility_id} failed: {e}")
        raise _upstream_error(e, "sync tenants")
    return SyncResponse(message="Tenant sync completed", details=result)


@router.get("/tenants/{tenant_id}", dependencies=[Depends(require_api_key)])
async def get_tenant(tenant_id: str, pms_sync: PMSSyncService = Depends(get_pms_sync)) -> Dict[str, Any]:
    try:
        return await pms_sync.get_tenant_details(tenant_id)
    except SyncException as e:
        raise _upstream_error(e, "fetch tenant")


@router.get("/facilities/{facility_id}", dependencies=[Depends(require_api_key)])
async def get_facility(facility_id: str, pms_sync: PMSSyncService = Depends(get_pms_sync)) -> Dict[str, Any]:
    try:
        return await pms_sync.get_facility_details(facility_id)
    except SyncException as e:
        raise _upstream_error(e, "fetch facility")


@router.get("/metrics", dependencies=[Depends(require_api_key)])
async def get_metrics(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    return container.metrics.get_metrics()


@router.get("/health", dependencies=[Depends(require_api_key)])
async def get_health(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    return container.metrics.get_health()
