"""配额服务：在消耗资源的操作之前，按用户的有效计划做准入判断。

每类资源提供两种入口：
- ``check_*`` 返回 ``QuotaCheck``，查询失败时直接抛出异常；
- ``can_*`` 返回布尔值，查询失败时按 ``on_error`` 策略放行或拒绝。

检查与随后的写入不在同一事务内，同一用户的并发上传可能共同越过上限，
超出量不超过并发请求中较小的一笔。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Union

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import FREE_PANEL_LIMIT, PLAN_FREE, UNLIMITED
from app.packages.drive.core.enums import OnErrorEnum, QuotaResourceEnum, SubscriptionStatusEnum
from app.packages.drive.core.exceptions import NotFoundError, QuotaExceededError
from app.packages.drive.core.logger import logger
from app.packages.drive.core.timezone import start_of_day
from app.packages.drive.crud.ai_request_log import ai_request_log_crud
from app.packages.drive.crud.file_record import file_record_crud
from app.packages.drive.crud.users import user_crud
from app.packages.drive.crud.workspaces import workspace_crud
from app.packages.drive.models.user import User
from app.packages.drive.services import panel_registry
from app.packages.drive.services.plans import PLAN_LIMITS, PlanLimits, get_plan_limits

ACTIVE_SUBSCRIPTION_STATUSES = {
    SubscriptionStatusEnum.ACTIVE.value,
    SubscriptionStatusEnum.TRIALING.value,
}

UserRef = Union[User, str]


@dataclass(frozen=True)
class QuotaCheck:
    resource: QuotaResourceEnum
    allowed: bool
    current: int
    limit: int
    plan: str

    @property
    def remaining(self) -> Optional[int]:
        if self.limit == UNLIMITED:
            return None
        return max(0, self.limit - self.current)


class QuotaService:
    def __init__(self, plans: Optional[Mapping[str, PlanLimits]] = None) -> None:
        self.plans = plans if plans is not None else PLAN_LIMITS

    # ----------------------------
    # 计划
    # ----------------------------
    def effective_plan(self, user: User) -> str:
        """订阅失效的付费计划按 FREE 计算。"""
        plan = (user.plan or "").strip().upper() or PLAN_FREE
        if plan not in self.plans:
            return PLAN_FREE
        if plan == PLAN_FREE:
            return plan
        subscription = user.subscription
        status = (subscription.status or "").upper() if subscription is not None else None
        if status not in ACTIVE_SUBSCRIPTION_STATUSES:
            return PLAN_FREE
        return plan

    def limits_for(self, user: User) -> PlanLimits:
        return get_plan_limits(self.effective_plan(user), self.plans)

    # ----------------------------
    # 检查（失败即抛出）
    # ----------------------------
    def check_storage(self, db: Session, user: UserRef, additional_bytes: int = 0) -> QuotaCheck:
        account = self._resolve_user(db, user)
        limits = self.limits_for(account)
        used = file_record_crud.sum_size(db, account.id)
        ceiling = limits.storage_bytes
        allowed = ceiling == UNLIMITED or used + additional_bytes <= ceiling
        return QuotaCheck(QuotaResourceEnum.STORAGE, allowed, used, ceiling, limits.name)

    def check_ai_requests(self, db: Session, user: UserRef) -> QuotaCheck:
        account = self._resolve_user(db, user)
        limits = self.limits_for(account)
        count = ai_request_log_crud.count_since(db, account.id, start_of_day())
        ceiling = limits.ai_requests_per_day
        allowed = ceiling == UNLIMITED or count < ceiling
        return QuotaCheck(QuotaResourceEnum.AI_REQUESTS, allowed, count, ceiling, limits.name)

    def check_workspaces(self, db: Session, user: UserRef) -> QuotaCheck:
        account = self._resolve_user(db, user)
        limits = self.limits_for(account)
        count = workspace_crud.count_by_owner(db, account.id)
        ceiling = limits.workspaces
        allowed = ceiling == UNLIMITED or count < ceiling
        return QuotaCheck(QuotaResourceEnum.WORKSPACES, allowed, count, ceiling, limits.name)

    def check_panels(
        self,
        db: Session,
        user: UserRef,
        current_panel_count: Optional[int] = None,
    ) -> QuotaCheck:
        """以服务端记录的面板数为准；客户端上报的数量只在更大时采用。"""
        account = self._resolve_user(db, user)
        limits = self.limits_for(account)
        count = panel_registry.count_panels(account.id)
        if current_panel_count is not None and current_panel_count > count:
            count = current_panel_count
        if limits.name == PLAN_FREE:
            return QuotaCheck(QuotaResourceEnum.PANELS, count < FREE_PANEL_LIMIT, count, FREE_PANEL_LIMIT, limits.name)
        return QuotaCheck(QuotaResourceEnum.PANELS, True, count, UNLIMITED, limits.name)

    # ----------------------------
    # 布尔判断（按策略处理失败）
    # ----------------------------
    def can_use_storage(
        self,
        db: Session,
        user: UserRef,
        additional_bytes: int = 0,
        *,
        on_error: OnErrorEnum = OnErrorEnum.REJECT,
    ) -> bool:
        return self._decide(db, user, lambda: self.check_storage(db, user, additional_bytes), on_error)

    def can_make_ai_request(
        self,
        db: Session,
        user: UserRef,
        *,
        on_error: OnErrorEnum = OnErrorEnum.REJECT,
    ) -> bool:
        return self._decide(db, user, lambda: self.check_ai_requests(db, user), on_error)

    def can_create_workspace(
        self,
        db: Session,
        user: UserRef,
        *,
        on_error: OnErrorEnum = OnErrorEnum.REJECT,
    ) -> bool:
        return self._decide(db, user, lambda: self.check_workspaces(db, user), on_error)

    def can_create_panel(
        self,
        db: Session,
        user: UserRef,
        current_panel_count: Optional[int] = None,
        *,
        on_error: OnErrorEnum = OnErrorEnum.REJECT,
    ) -> bool:
        return self._decide(db, user, lambda: self.check_panels(db, user, current_panel_count), on_error)

    @staticmethod
    def require(check: QuotaCheck) -> QuotaCheck:
        """未放行时抛出 ``QuotaExceededError``，放行时原样返回。"""
        if not check.allowed:
            raise QuotaExceededError(check.resource, current=check.current, limit=check.limit, plan=check.plan)
        return check

    # ----------------------------
    # 内部工具
    # ----------------------------
    @staticmethod
    def _resolve_user(db: Session, user: UserRef) -> User:
        if isinstance(user, User):
            return user
        account = user_crud.get(db, user)
        if account is None:
            raise NotFoundError("用户不存在")
        return account

    @staticmethod
    def _decide(
        db: Session,
        user: UserRef,
        check: Callable[[], QuotaCheck],
        on_error: OnErrorEnum,
    ) -> bool:
        try:
            return check().allowed
        except Exception as exc:
            db.rollback()
            admitted = on_error == OnErrorEnum.ADMIT
            user_id = user.id if isinstance(user, User) else user
            logger.warning(
                "Quota lookup failed for user %s (%s); %s by policy",
                user_id,
                exc,
                "admitting" if admitted else "rejecting",
            )
            return admitted


quota_service = QuotaService()
