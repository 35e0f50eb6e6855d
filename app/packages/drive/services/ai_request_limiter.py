"""AI 请求计数：AI 对话入口使用的配额包装层。

与存储、工作区这类计费资源不同，这里属于体验层面的限流：
任何查询或写入失败都放行请求，并记录警告日志。
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.packages.drive.core.constants import PLAN_FREE, UNLIMITED
from app.packages.drive.core.logger import logger
from app.packages.drive.crud.ai_request_log import ai_request_log_crud
from app.packages.drive.models.ai_request_log import AIRequestLog
from app.packages.drive.services.plans import PLAN_LIMITS
from app.packages.drive.services.quota_service import QuotaService, UserRef, quota_service as default_quota_service

REQUEST_CHECK_TYPE = "request_check"
GENERIC_REQUEST_TYPE = "generic_request"


@dataclass
class RequestLimitCheck:
    current_count: int
    limit: int
    is_limit_exceeded: bool
    remaining: int


@dataclass
class RequestAdmission:
    success: bool
    message: str
    current_count: Optional[int] = None
    limit: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class AIRequestLimiter:
    def __init__(self, quotas: Optional[QuotaService] = None) -> None:
        self.quotas = quotas or default_quota_service

    def check_ai_request_limits(self, db: Session, user: UserRef) -> RequestLimitCheck:
        try:
            check = self.quotas.check_ai_requests(db, user)
        except Exception as exc:
            db.rollback()
            logger.warning("AI limit lookup failed, falling back to FREE defaults: %s", exc)
            default_limit = PLAN_LIMITS[PLAN_FREE].ai_requests_per_day
            return RequestLimitCheck(0, default_limit, False, default_limit)
        return RequestLimitCheck(
            current_count=check.current,
            limit=check.limit,
            is_limit_exceeded=not check.allowed,
            # 无上限时 limit 与 remaining 都报告 -1
            remaining=UNLIMITED if check.remaining is None else check.remaining,
        )

    def increment_and_check(self, db: Session, user: UserRef) -> RequestAdmission:
        """未超限时写入一条 ``request_check`` 日志并放行。"""
        try:
            check = self.quotas.check_ai_requests(db, user)
            if not check.allowed:
                return RequestAdmission(
                    success=False,
                    message=f"已达到当前计划每日 {check.limit} 次 AI 请求的上限",
                    current_count=check.current,
                    limit=check.limit,
                )
            user_id = user if isinstance(user, str) else user.id
            self.record_ai_request(db, user_id, request_type=REQUEST_CHECK_TYPE)
        except Exception as exc:
            db.rollback()
            logger.warning("AI request admission failed open: %s", exc)
            return RequestAdmission(success=True, message="配额校验失败，已放行本次请求", error=str(exc))
        return RequestAdmission(
            success=True,
            message=f"请求已放行，今日已使用 {check.current + 1}/{check.limit} 次 AI 请求",
            current_count=check.current + 1,
            limit=check.limit,
        )

    @staticmethod
    def record_ai_request(
        db: Session,
        user_id: str,
        *,
        request_type: Optional[str] = None,
        token_count: int = 0,
        successful: bool = True,
    ) -> AIRequestLog:
        return ai_request_log_crud.create(
            db,
            {
                "user_id": user_id,
                "type": request_type or GENERIC_REQUEST_TYPE,
                "token_count": token_count,
                "successful": successful,
            },
        )


ai_request_limiter = AIRequestLimiter()
