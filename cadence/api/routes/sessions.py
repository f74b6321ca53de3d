"""Session routes for browsing conversations."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from cadence.api.dependencies import get_sessions
from cadence.api.schemas.sessions import (
    SessionListResponse,
    SessionMessageListResponse,
    SessionMessageResponse,
    SessionResponse,
)
from cadence.core.errors import SessionNotFoundError
from cadence.sessions.manager import SessionManager

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    sessions: Annotated[SessionManager, Depends(get_sessions)],
    source: str | None = Query(None, description="Filter by source (web, telegram, whatsapp)"),
) -> SessionListResponse:
    """List sessions, most recently active first."""
    rows = await sessions.list_sessions(source)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(row) for row in rows],
        total=len(rows),
    )


@router.get("/{session_id}/messages", response_model=SessionMessageListResponse)
async def list_messages(
    session_id: str,
    sessions: Annotated[SessionManager, Depends(get_sessions)],
) -> SessionMessageListResponse:
    """List a session's messages, oldest first.

    Raises:
        HTTPException: 404 if the session does not exist
    """
    try:
        rows = await sessions.list_messages(session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return SessionMessageListResponse(
        session_id=session_id,
        messages=[
            SessionMessageResponse(
                id=row.id,
                role=row.role,
                text=row.text,
                tool_calls=row.tool_calls or [],
                pending=row.is_pending,
                created_at=row.created_at,
            )
            for row in rows
        ],
        total=len(rows),
    )
