"""Agent routes: run a turn and answer a parked question."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from cadence.agent.outcomes import Outcome
from cadence.api.dependencies import get_conversation, get_sessions
from cadence.api.schemas.agent import OutcomeResponse, ResumeRequest, TriggerRequest
from cadence.core.errors import NothingPendingError, SessionNotFoundError
from cadence.sessions.conversation import ConversationService
from cadence.sessions.manager import SessionManager

router = APIRouter(prefix="/agent", tags=["agent"])


def _to_response(session_id: str, outcome: Outcome) -> OutcomeResponse:
    return OutcomeResponse(session_id=session_id, **outcome.to_dict())


# =============================================================================
# Trigger Turn
# =============================================================================


@router.post("/trigger", response_model=OutcomeResponse)
async def trigger(
    data: TriggerRequest,
    conversation: Annotated[ConversationService, Depends(get_conversation)],
    sessions: Annotated[SessionManager, Depends(get_sessions)],
) -> OutcomeResponse:
    """Run one agent turn for a web session.

    If the session is waiting on a question, the prompt is taken as the
    answer and the parked turn resumes.

    Raises:
        HTTPException: 404 if session_id does not exist
    """
    session_id = data.session_id or await sessions.create_web_session()
    try:
        outcome = await conversation.handle(session_id, data.prompt)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return _to_response(session_id, outcome)


# =============================================================================
# Resume Turn
# =============================================================================


@router.post("/resume", response_model=OutcomeResponse)
async def resume(
    data: ResumeRequest,
    conversation: Annotated[ConversationService, Depends(get_conversation)],
) -> OutcomeResponse:
    """Answer the question a session's parked turn is waiting on.

    Raises:
        HTTPException: 404 if the session does not exist
        HTTPException: 409 if nothing is pending in the session
    """
    try:
        outcome = await conversation.resume(data.session_id, data.answer)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except NothingPendingError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _to_response(data.session_id, outcome)
