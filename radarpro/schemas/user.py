from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel


class UserCreate(BaseModel):
    email: str
    username: str | None = None
    notification_radius: int = 5000


class UserRead(BaseModel):
    id: str
    email: str
    username: str | None = None
    avatar_url: str | None = None
    notification_radius: int = 5000
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        return self.username or self.email.split("@", 1)[0] or "Anonymous"
