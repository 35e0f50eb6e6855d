"""AI 请求计数路由：准入检查与请求日志。"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.usage import (
    AIRequestCheckResponse,
    AIRequestLogBody,
    AIRequestLogResponse,
)
from app.packages.drive.core.dependencies import get_current_user, get_db
from app.packages.drive.core.exceptions import QuotaExceededError
from app.packages.drive.core.enums import QuotaResourceEnum
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.ai_request_limiter import ai_request_limiter
from app.packages.drive.services.quota_service import quota_service

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/requests/check", response_model=AIRequestCheckResponse)
def check_ai_request(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """检查并计入一次 AI 请求；超限返回 429，内部错误时放行。"""
    admission = ai_request_limiter.increment_and_check(db, current_user)
    if not admission.success:
        raise QuotaExceededError(
            QuotaResourceEnum.AI_REQUESTS,
            current=admission.current_count or 0,
            limit=admission.limit or 0,
            plan=quota_service.effective_plan(current_user),
        )
    return create_response(
        admission.message,
        {
            "success": admission.success,
            "message": admission.message,
            "currentCount": admission.current_count,
            "limit": admission.limit,
            "error": admission.error,
        },
    )


@router.post("/requests/log", response_model=AIRequestLogResponse)
def log_ai_request(
    body: AIRequestLogBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    entry = ai_request_limiter.record_ai_request(
        db,
        current_user.id,
        request_type=body.type,
        token_count=body.tokenCount,
        successful=body.successful,
    )
    return create_response("AI 请求日志记录成功", {"logId": entry.id})
