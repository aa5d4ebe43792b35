from __future__ import annotations
from pydantic import BaseModel, Field


class SessionOpen(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class SessionRead(BaseModel):
    user_id: str
    active_reports: int
    relay_connected: bool
    expiry_service_running: bool
