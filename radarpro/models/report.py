from __future__ import annotations

from sqlalchemy import String, Text, Float, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from radarpro.models.base import Base, ULIDMixin, TimestampMixin


class Report(Base, ULIDMixin, TimestampMixin):
    __tablename__ = "reports"

    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    category: Mapped[str] = mapped_column(String(30), index=True)  # see services.expiry.ReportCategory
    description: Mapped[str] = mapped_column(Text)
    latitude: Mapped[float] = mapped_column(Float)
    longitude: Mapped[float] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)  # active | resolved | expired

    user = relationship("User", back_populates="reports", lazy="selectin")
    media_files = relationship(
        "MediaFile", back_populates="report", lazy="selectin",
        cascade="all, delete-orphan", order_by="MediaFile.created_at",
    )
