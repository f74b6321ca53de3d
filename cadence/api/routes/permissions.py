"""Permission routes: approval pages and the runner-side gate."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from cadence.api.dependencies import Orchestrator, get_broker
from cadence.api.schemas.permissions import (
    AuthorizeRequest,
    AuthorizeResponse,
    PermissionResponse,
    ResolveRequest,
)
from cadence.core.errors import PermissionAlreadyResolvedError, PermissionNotFoundError
from cadence.permissions.broker import PermissionBroker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/permissions", tags=["permissions"])


# =============================================================================
# Runner Gate
# =============================================================================


@router.post("/authorize", response_model=AuthorizeResponse)
async def authorize(
    data: AuthorizeRequest,
    broker: Annotated[PermissionBroker, Depends(get_broker)],
) -> AuthorizeResponse:
    """Check for an unused grant of exactly this call and consume it."""
    permission_id = await broker.authorize(data.endpoint, data.args)
    return AuthorizeResponse(authorized=permission_id is not None, permission_id=permission_id)


# =============================================================================
# Approval
# =============================================================================


@router.get("/{permission_id}", response_model=PermissionResponse)
async def get_permission(
    permission_id: str,
    broker: Annotated[PermissionBroker, Depends(get_broker)],
) -> PermissionResponse:
    """Get a permission request.

    Raises:
        HTTPException: 404 if the request does not exist
    """
    try:
        request = await broker.get(permission_id)
    except PermissionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return PermissionResponse.model_validate(request)


@router.post("/{permission_id}/resolve", response_model=PermissionResponse)
async def resolve_permission(
    permission_id: str,
    data: ResolveRequest,
    orchestrator: Orchestrator,
    broker: Annotated[PermissionBroker, Depends(get_broker)],
) -> PermissionResponse:
    """Approve or decline a pending request and resume the waiting conversation.

    Raises:
        HTTPException: 400 if action is not approve or decline
        HTTPException: 404 if the request does not exist
        HTTPException: 409 if the request was already resolved
    """
    try:
        request = await broker.resolve(permission_id, data.action)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except PermissionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except PermissionAlreadyResolvedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    # The decision is stored; a failed resume must not turn it into an error
    try:
        await orchestrator.on_permission_resolved(request)
    except Exception as e:
        logger.error(f"Failed to resume conversation for permission {permission_id}: {e}", exc_info=True)

    return PermissionResponse.model_validate(request)
