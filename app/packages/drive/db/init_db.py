"""Database bootstrapping utilities."""

from __future__ import annotations

from app.packages.drive.core.logger import logger
from app.packages.drive.db import session as db_session
from app.packages.drive.models import Base  # noqa: F401 - registers every table on the metadata


def init_db() -> None:
    """Create all database tables if they do not exist.

    用户与订阅由外部认证、计费流程写入，这里不做任何种子数据。
    """
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("Database schema ensured (%s tables)", len(Base.metadata.tables))
