"""AI 请求日志：仅用于按自然日统计请求次数。"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.packages.drive.core.timezone import now as tz_now
from app.packages.drive.models.base import Base


class AIRequestLog(Base):
    __tablename__ = "ai_request_logs"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    type: Mapped[str] = mapped_column(String(64), default="generic_request")
    token_count: Mapped[int] = mapped_column(Integer, default=0)
    successful: Mapped[bool] = mapped_column(Boolean, default=True)
    # 与统计窗口使用同一时钟（配置时区），避免数据库时区差异
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=tz_now, index=True)
