"""面板路由：服务端登记打开的面板，FREE 计划最多同时打开 3 个。"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.usage import PanelListResponse, PanelOpenBody
from app.packages.drive.core.dependencies import get_current_user, get_db
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.user import User
from app.packages.drive.services import panel_registry
from app.packages.drive.services.quota_service import quota_service

router = APIRouter(prefix="/panels", tags=["panels"])


def _panel_data(user_id: str) -> dict:
    panels = panel_registry.list_panels(user_id)
    return {"panels": panels, "count": len(panels)}


@router.get("", response_model=PanelListResponse)
def list_panels(current_user: User = Depends(get_current_user)):
    return create_response("获取面板列表成功", _panel_data(current_user.id))


@router.post("", response_model=PanelListResponse)
def open_panel(
    body: PanelOpenBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    # 重复打开同一面板不占用新的名额
    if body.panelId not in panel_registry.list_panels(current_user.id):
        quota_service.require(quota_service.check_panels(db, current_user, body.currentPanelCount))
        panel_registry.open_panel(current_user.id, body.panelId)
    return create_response("面板已打开", _panel_data(current_user.id))


@router.delete("/{panel_id}", response_model=PanelListResponse)
def close_panel(panel_id: str, current_user: User = Depends(get_current_user)):
    panel_registry.close_panel(current_user.id, panel_id)
    return create_response("面板已关闭", _panel_data(current_user.id))
