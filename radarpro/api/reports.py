from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from radarpro.dependencies import get_store, require_user
from radarpro.models import User
from radarpro.schemas import ExpiryRead, MediaFileCreate, ReportCreate, ReportRead, ReportUpdate
from radarpro.services.expiry import expiry_snapshot, is_valid_category
from radarpro.services.report_store import SqlReportStore

router = APIRouter(prefix="/api/reports", tags=["reports"])


async def _own_report(report_id: str, user: User, store: SqlReportStore) -> ReportRead:
    report = await store.fetch_by_id(report_id)
    if not report:
        raise HTTPException(404, "Report not found")
    if report.user_id != user.id:
        raise HTTPException(403, "Only the author can change this report")
    return report


@router.get("", response_model=list[ReportRead])
async def list_active_reports(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    store: SqlReportStore = Depends(get_store),
):
    return await store.fetch_active(limit=limit, offset=offset)


@router.post("", response_model=ReportRead, status_code=201)
async def create_report(
    body: ReportCreate,
    user: User = Depends(require_user),
    store: SqlReportStore = Depends(get_store),
):
    if not is_valid_category(body.category):
        raise HTTPException(400, f"Unknown category: {body.category}")
    return await store.create_report(user.id, body.category, body.description, body.latitude, body.longitude)


@router.get("/{report_id}", response_model=ReportRead)
async def get_report(report_id: str, store: SqlReportStore = Depends(get_store)):
    report = await store.fetch_by_id(report_id)
    if not report:
        raise HTTPException(404, "Report not found")
    return report


@router.patch("/{report_id}", response_model=ReportRead)
async def update_report(
    report_id: str,
    body: ReportUpdate,
    user: User = Depends(require_user),
    store: SqlReportStore = Depends(get_store),
):
    await _own_report(report_id, user, store)
    report = await store.update_report(report_id, **body.model_dump(exclude_none=True))
    if not report:
        raise HTTPException(404, "Report not found")
    return report


@router.post("/{report_id}/resolve", response_model=ReportRead)
async def resolve_report(
    report_id: str,
    user: User = Depends(require_user),
    store: SqlReportStore = Depends(get_store),
):
    await _own_report(report_id, user, store)
    report = await store.resolve_report(report_id)
    if not report:
        raise HTTPException(404, "Report not found")
    return report


@router.delete("/{report_id}", status_code=204)
async def delete_report(
    report_id: str,
    user: User = Depends(require_user),
    store: SqlReportStore = Depends(get_store),
):
    await _own_report(report_id, user, store)
    if not await store.delete_report(report_id):
        raise HTTPException(404, "Report not found")
    return Response(status_code=204)


@router.post("/{report_id}/media", response_model=ReportRead, status_code=201)
async def add_media(
    report_id: str,
    body: MediaFileCreate,
    user: User = Depends(require_user),
    store: SqlReportStore = Depends(get_store),
):
    if body.file_type not in ("photo", "audio"):
        raise HTTPException(400, "file_type must be 'photo' or 'audio'")
    await _own_report(report_id, user, store)
    report = await store.add_media(report_id, body.file_type, body.file_url, body.file_name)
    if not report:
        raise HTTPException(404, "Report not found")
    return report


@router.get("/{report_id}/expiry", response_model=ExpiryRead)
async def get_report_expiry(report_id: str, store: SqlReportStore = Depends(get_store)):
    """Countdown values for one report, as shown on its expiry badge."""
    report = await store.fetch_by_id(report_id)
    if not report:
        raise HTTPException(404, "Report not found")
    snapshot = expiry_snapshot(report.category, report.updated_at or report.created_at)
    return ExpiryRead(report_id=report.id, category=report.category, **snapshot)
