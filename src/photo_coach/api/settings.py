"""API key management endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, HTTPException, Request, Response, status

from photo_coach.api.models import ApiKeyRequest, ApiKeyStatus

if TYPE_CHECKING:
    from photo_coach.containers import AppContainer

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/api-key")
async def api_key_status(request: Request) -> ApiKeyStatus:
    """Report whether an API key is configured."""
    container: AppContainer = request.app.state.container
    service = container.credential_service
    return ApiKeyStatus(
        configured=service.has_api_key(), masked_key=service.masked_api_key()
    )


@router.put("/api-key")
async def save_api_key(body: ApiKeyRequest, request: Request) -> ApiKeyStatus:
    """Store a new API key."""
    container: AppContainer = request.app.state.container
    service = container.credential_service
    try:
        service.save_api_key(body.api_key)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    return ApiKeyStatus(configured=True, masked_key=service.masked_api_key())


@router.delete("/api-key", status_code=status.HTTP_204_NO_CONTENT)
async def delete_api_key(request: Request) -> Response:
    """Remove the stored API key."""
    container: AppContainer = request.app.state.container
    if not container.credential_service.delete_api_key():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
