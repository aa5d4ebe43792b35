"""FastAPI dependency providers for the acting user and shared services."""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from radarpro.db import crud
from radarpro.db.engine import get_db
from radarpro.models import User
from radarpro.services.expiry_sweeper import ExpirySweeper
from radarpro.services.report_store import SqlReportStore
from radarpro.services.sessions import ClientSession, SessionManager


def get_store(request: Request) -> SqlReportStore:
    return request.app.state.store


def get_sweeper(request: Request) -> ExpirySweeper:
    return request.app.state.sweeper


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


async def require_user(
    x_user_id: str = Header(default=""),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the acting user from the ``X-User-Id`` header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-Id header required")
    user = await crud.get_user(db, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


async def require_client_session(
    user: User = Depends(require_user),
    sessions: SessionManager = Depends(get_session_manager),
) -> ClientSession:
    """The acting user's client session, opened on first use."""
    return await sessions.open(user.id)
