from __future__ import annotations

from sqlalchemy import String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from radarpro.models.base import Base, ULIDMixin


class MediaFile(Base, ULIDMixin):
    __tablename__ = "media_files"

    report_id: Mapped[str] = mapped_column(String(26), ForeignKey("reports.id", ondelete="CASCADE"), index=True)
    file_type: Mapped[str] = mapped_column(String(10))  # photo | audio
    file_url: Mapped[str] = mapped_column(String(500))
    file_name: Mapped[str] = mapped_column(String(255))

    report = relationship("Report", back_populates="media_files")
