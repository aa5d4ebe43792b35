from __future__ import annotations

from sqlalchemy import String, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from radarpro.models.base import Base, ULIDMixin, TimestampMixin


class User(Base, ULIDMixin, TimestampMixin):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    username: Mapped[str | None] = mapped_column(String(100), nullable=True, default=None)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True, default=None)
    notification_radius: Mapped[int] = mapped_column(Integer, default=5000)

    reports = relationship("Report", back_populates="user")
