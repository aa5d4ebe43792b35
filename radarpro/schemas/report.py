from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field
from radarpro.schemas.user import UserRead


class MediaFileCreate(BaseModel):
    file_type: str  # photo | audio
    file_url: str
    file_name: str


class MediaFileRead(BaseModel):
    id: str
    report_id: str
    file_type: str
    file_url: str
    file_name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ReportCreate(BaseModel):
    category: str
    description: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class ReportUpdate(BaseModel):
    description: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class ReportRead(BaseModel):
    id: str
    user_id: str
    category: str
    description: str
    latitude: float
    longitude: float
    status: str = "active"
    created_at: datetime
    updated_at: datetime
    user: UserRead | None = None
    media_files: list[MediaFileRead] = []

    model_config = {"from_attributes": True}

    @property
    def author_name(self) -> str:
        return self.user.display_name if self.user else "Anonymous"


class ExpiryRead(BaseModel):
    report_id: str
    category: str
    ttl_minutes: int | None
    expires_at: datetime | None
    remaining_minutes: int | None
    is_expired: bool
    is_about_to_expire: bool
