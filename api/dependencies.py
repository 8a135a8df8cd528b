"""
FastAPI dependencies: service container, database sessions and API-key auth
"""

from typing import AsyncGenerator, Optional
import hmac
import logging

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.container import ServiceContainer
from ingestion.pms_sync import PMSSyncService

logger = logging.getLogger(__name__)


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_db(container: ServiceContainer = Depends(get_container)) -> AsyncGenerator[AsyncSession, None]:
    """Session per request, always closed"""
    async with container.session_maker() as session:
        yield session


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def require_api_key(
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
    container: ServiceContainer = Depends(get_container)
):
    """
    Accept ``Authorization: Bearer <key>`` or ``X-API-Key: <key>``.

    With no API_KEY configured every protected route answers 401.
    """
    expected = container.settings.API_KEY
    provided = _bearer_token(authorization) or x_api_key
    if not expected or not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_pms_sync(container: ServiceContainer = Depends(get_container)) -> PMSSyncService:
    if container.pms_sync is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PMS integration is not configured",
        )
    return container.pms_sync
