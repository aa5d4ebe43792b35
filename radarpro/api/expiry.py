from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from radarpro.dependencies import get_session_manager, get_sweeper
from radarpro.services.expiry import ReportCategory, ttl_table
from radarpro.services.expiry_sweeper import ExpirySweeper
from radarpro.services.sessions import SessionManager

router = APIRouter(prefix="/api/expiry", tags=["expiry"])


@router.get("/status")
async def expiry_status(
    sweeper: ExpirySweeper = Depends(get_sweeper),
    sessions: SessionManager = Depends(get_session_manager),
):
    return {**sweeper.status(), "active_sessions": len(sessions.active_user_ids)}


@router.get("/policy")
async def expiry_policy():
    table = ttl_table()
    return {
        "ttl_minutes": table,
        "never_expires": [c.value for c in ReportCategory if c.value not in table],
    }


@router.post("/sweep")
async def run_sweep(sweeper: ExpirySweeper = Depends(get_sweeper)):
    """Run one sweep now, independent of the periodic timer."""
    result = await sweeper.sweep_once()
    return asdict(result)
