from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from radarpro.dependencies import require_client_session
from radarpro.schemas import (
    CategorySettingsUpdate, NotificationPreferences, NotificationStatistics,
    NotificationStatusUpdate, StoredNotification,
)
from radarpro.services.notification_store import preference_key
from radarpro.services.sessions import ClientSession

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[StoredNotification])
async def list_notifications(
    status: str | None = None,
    priority: str | None = None,
    category: str | None = None,
    session: ClientSession = Depends(require_client_session),
):
    return await session.history.query(status=status, priority=priority, category=category)


@router.get("/stats", response_model=NotificationStatistics)
async def notification_stats(session: ClientSession = Depends(require_client_session)):
    return await session.history.statistics()


@router.post("/read-all")
async def mark_all_read(session: ClientSession = Depends(require_client_session)):
    return {"updated": await session.history.mark_all_read()}


@router.post("/cleanup")
async def cleanup_notifications(
    days: int | None = Query(default=None, ge=0),
    session: ClientSession = Depends(require_client_session),
):
    if days is None:
        prefs = await session.preferences.load()
        days = prefs.global_settings.auto_cleanup_days
    return {"removed": await session.history.cleanup(days)}


@router.get("/settings", response_model=NotificationPreferences)
async def get_notification_settings(session: ClientSession = Depends(require_client_session)):
    return await session.preferences.load()


@router.put("/settings", response_model=NotificationPreferences)
async def replace_settings(
    body: NotificationPreferences,
    session: ClientSession = Depends(require_client_session),
):
    return await session.preferences.replace(body)


@router.patch("/settings/{category}", response_model=NotificationPreferences)
async def update_category_settings(
    category: str,
    body: CategorySettingsUpdate,
    session: ClientSession = Depends(require_client_session),
):
    if preference_key(category) is None:
        raise HTTPException(400, f"Unknown category: {category}")
    return await session.preferences.update_category(category, body)


@router.post("/test/{category}", response_model=StoredNotification)
async def send_test_notification(category: str, session: ClientSession = Depends(require_client_session)):
    if preference_key(category) is None:
        raise HTTPException(400, f"Unknown category: {category}")
    notification = await session.coordinator.send_test_notification(category)
    if notification is None:
        raise HTTPException(500, "Test notification could not be created")
    return notification


@router.post("/{notification_id}/status", response_model=StoredNotification)
async def update_status(
    notification_id: str,
    body: NotificationStatusUpdate,
    session: ClientSession = Depends(require_client_session),
):
    notification = await session.history.update_status(notification_id, body.status)
    if not notification:
        raise HTTPException(404, "Notification not found")
    return notification


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(notification_id: str, session: ClientSession = Depends(require_client_session)):
    if not await session.history.delete(notification_id):
        raise HTTPException(404, "Notification not found")
    return Response(status_code=204)
