from __future__ import annotations
from datetime import datetime
from typing import Any, Literal
from pydantic import BaseModel, Field

from radarpro.models.base import utcnow


class WSMessage(BaseModel):
    event: str  # change | report_new | report_updated | report_expired | report_removed | notification
    report_id: str = ""
    data: dict[str, Any] = {}


class ChangeEvent(BaseModel):
    """A row-level change on the reports table."""

    event_type: Literal["insert", "update", "delete"]
    table: str = "reports"
    new: dict[str, Any] = {}
    old: dict[str, Any] = {}
    commit_timestamp: datetime = Field(default_factory=utcnow)

    @property
    def record_id(self) -> str:
        return self.new.get("id") or self.old.get("id") or ""
