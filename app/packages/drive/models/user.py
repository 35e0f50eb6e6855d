"""用户与订阅模型：只保留配额计算需要的字段。"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.packages.drive.core.constants import PLAN_FREE
from app.packages.drive.core.enums import SubscriptionStatusEnum
from app.packages.drive.models.base import Base, TimestampMixin


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    # 原始计划字段；是否生效还取决于订阅状态
    plan: Mapped[str] = mapped_column(String(20), default=PLAN_FREE)

    subscription: Mapped[Optional["Subscription"]] = relationship(
        "Subscription", back_populates="user", uselist=False, lazy="joined"
    )


class Subscription(TimestampMixin, Base):
    """订阅状态由计费流程维护，这里只读取。"""

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True
    )
    status: Mapped[str] = mapped_column(String(20), default=SubscriptionStatusEnum.INACTIVE.value)
    current_period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="subscription")
