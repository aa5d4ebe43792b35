"""SQLAlchemy ORM models for users, reports and their media."""

from radarpro.models.base import Base
from radarpro.models.user import User
from radarpro.models.report import Report
from radarpro.models.media_file import MediaFile

__all__ = ["Base", "User", "Report", "MediaFile"]
