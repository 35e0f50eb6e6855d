"""工作区路由：新建前按计划上限检查数量。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.usage import (
    WorkspaceCreateBody,
    WorkspaceListResponse,
    WorkspaceResponse,
)
from app.packages.drive.core.constants import HTTP_STATUS_CREATED
from app.packages.drive.core.dependencies import get_current_user, get_db
from app.packages.drive.core.responses import create_response
from app.packages.drive.crud.workspaces import workspace_crud
from app.packages.drive.models.user import User
from app.packages.drive.services.quota_service import quota_service

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


@router.get("", response_model=WorkspaceListResponse)
def list_workspaces(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items = workspace_crud.list_by_owner(db, current_user.id)
    return create_response("获取工作区列表成功", [{"id": item.id, "name": item.name} for item in items])


@router.post("", response_model=WorkspaceResponse)
def create_workspace(
    body: WorkspaceCreateBody,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    quota_service.require(quota_service.check_workspaces(db, current_user))
    workspace = workspace_crud.create(db, {"owner_id": current_user.id, "name": body.name.strip()})
    response.status_code = HTTP_STATUS_CREATED
    return create_response("工作区创建成功", {"id": workspace.id, "name": workspace.name}, HTTP_STATUS_CREATED)
