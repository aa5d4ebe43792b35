"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from radarpro.api.users import router as users_router
from radarpro.api.reports import router as reports_router
from radarpro.api.expiry import router as expiry_router
from radarpro.api.sessions import router as sessions_router
from radarpro.api.notifications import router as notifications_router
from radarpro.api.websocket import router as websocket_router

api_router = APIRouter()
api_router.include_router(users_router)
api_router.include_router(reports_router)
api_router.include_router(expiry_router)
api_router.include_router(sessions_router)
api_router.include_router(notifications_router)
api_router.include_router(websocket_router)
