"""SQLAlchemy ORM models for the drive package."""

from app.packages.drive.models.base import Base
from app.packages.drive.models.ai_request_log import AIRequestLog
from app.packages.drive.models.file_record import FileRecord
from app.packages.drive.models.user import Subscription, User
from app.packages.drive.models.workspace import Workspace

__all__ = [
    "Base",
    "AIRequestLog",
    "FileRecord",
    "Subscription",
    "User",
    "Workspace",
]
