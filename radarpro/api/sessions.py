from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response

from radarpro.dependencies import get_session_manager, require_user
from radarpro.models import User
from radarpro.schemas import ReportRead, SessionOpen, SessionRead
from radarpro.services.sessions import ClientSession, SessionManager

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _read(session: ClientSession, sessions: SessionManager) -> SessionRead:
    return SessionRead(
        user_id=session.user_id,
        active_reports=len(session.relay.view),
        relay_connected=session.relay.is_connected,
        expiry_service_running=sessions.sweeper.is_running,
    )


@router.post("", response_model=SessionRead, status_code=201)
async def open_session(
    body: SessionOpen | None = None,
    user: User = Depends(require_user),
    sessions: SessionManager = Depends(get_session_manager),
):
    session = await sessions.open(user.id)
    if body is not None and body.latitude is not None and body.longitude is not None:
        session.coordinator.set_location(body.latitude, body.longitude)
    return _read(session, sessions)


@router.delete("/{user_id}", status_code=204)
async def close_session(
    user_id: str,
    user: User = Depends(require_user),
    sessions: SessionManager = Depends(get_session_manager),
):
    if user.id != user_id:
        raise HTTPException(403, "Cannot close another user's session")
    if not await sessions.close(user_id):
        raise HTTPException(404, "No open session for this user")
    return Response(status_code=204)


@router.get("/{user_id}/reports", response_model=list[ReportRead])
async def session_reports(user_id: str, sessions: SessionManager = Depends(get_session_manager)):
    """The session's live view of active reports."""
    session = sessions.get(user_id)
    if session is None:
        raise HTTPException(404, "No open session for this user")
    return session.reports()
