"""用量概览路由：一次返回存储、AI 请求、工作区与面板的配额状态。"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.usage import UsageOverviewResponse
from app.packages.drive.core.dependencies import get_current_user, get_db
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services.quota_service import QuotaCheck, quota_service

router = APIRouter(tags=["usage"])


def _quota_item(check: QuotaCheck) -> dict:
    return {
        "current": check.current,
        "limit": check.limit,
        "allowed": check.allowed,
        "remaining": check.remaining,
    }


@router.get("/usage", response_model=UsageOverviewResponse)
def usage_overview(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    limits = quota_service.limits_for(current_user)
    data = {
        "plan": limits.name,
        "storage": _quota_item(quota_service.check_storage(db, current_user)),
        "aiRequests": _quota_item(quota_service.check_ai_requests(db, current_user)),
        "workspaces": _quota_item(quota_service.check_workspaces(db, current_user)),
        "panels": _quota_item(quota_service.check_panels(db, current_user)),
        "features": {
            "advancedFeatures": limits.advanced_features,
            "teamFeatures": limits.team_features,
            "prioritySupport": limits.priority_support,
        },
    }
    return create_response("获取用量成功", data)
