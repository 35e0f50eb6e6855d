"""文件与文件夹操作路由。

会增加存储用量的接口（保存、更新、上传）先经过配额服务，
按本次请求的字节增量判断，超限时返回 507 与升级提示。
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile
from sqlalchemy.orm import Session

from app.packages.drive.api.v1.schemas.files import (
    DeleteResponse,
    FileItem,
    FileListResponse,
    FileResponse,
    FileSaveBody,
    FileUpdateBody,
    FolderCreateBody,
    MoveBody,
    SaveResponse,
)
from app.packages.drive.api.v1.schemas.usage import StorageUsageResponse
from app.packages.drive.core.constants import HTTP_STATUS_CREATED
from app.packages.drive.core.dependencies import get_current_user, get_db, get_storage_gateway
from app.packages.drive.core.enums import FileKindEnum
from app.packages.drive.core.logger import logger
from app.packages.drive.core.responses import create_response
from app.packages.drive.models.file_record import FileRecord
from app.packages.drive.models.user import User
from app.packages.drive.services.quota_service import quota_service
from app.packages.drive.services.storage_gateway import DEFAULT_RECENT_LIMIT, StorageGateway

router = APIRouter(tags=["files"])


def _to_item(db: Session, gateway: StorageGateway, record: FileRecord, *, include_content: bool = False) -> FileItem:
    return FileItem(
        id=record.id,
        name=record.name,
        type=record.kind,
        size=record.size_bytes or 0,
        path=gateway.compute_path(db, record),
        mimeType=record.mime_type,
        parentId=record.parent_id,
        workspaceId=record.workspace_id,
        storageKey=record.storage_key,
        storageUrl=record.storage_url,
        isPublic=bool(record.is_public),
        content=record.content if include_content else None,
        createdAt=record.create_time,
        updatedAt=record.update_time,
    )


def _require_storage(db: Session, user: User, additional_bytes: int) -> None:
    if additional_bytes > 0:
        quota_service.require(quota_service.check_storage(db, user, additional_bytes))


@router.get("/files")
def list_files(
    file_id: Optional[str] = Query(None, alias="id"),
    path: Optional[str] = Query(None),
    workspace_id: Optional[str] = Query(None, alias="workspace"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    """``id`` 返回单个文件；``path`` 指向文件夹时返回其内容；均未提供时返回根目录。"""
    if file_id:
        record = gateway.get_file(db, file_id, current_user.id)
        return create_response("获取文件成功", _to_item(db, gateway, record, include_content=True))

    if path:
        record = gateway.get_file_by_path(db, path, current_user.id, workspace_id)
        if record.is_folder:
            children = gateway.get_files_in_folder(db, record.id, current_user.id, workspace_id)
            return create_response("获取文件列表成功", [_to_item(db, gateway, item) for item in children])
        return create_response("获取文件成功", _to_item(db, gateway, record, include_content=True))

    items = gateway.get_root_files(db, current_user.id, workspace_id)
    return create_response("获取文件列表成功", [_to_item(db, gateway, item) for item in items])


@router.post("/files", response_model=SaveResponse)
def save_file(
    body: FileSaveBody,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    if body.type == FileKindEnum.FILE.value:
        new_size = len(body.content.encode("utf-8")) if body.content is not None else body.size
        existing = gateway.find_save_target(
            db,
            owner_id=current_user.id,
            name=body.name,
            path=body.path,
            parent_id=body.parentId,
            workspace_id=body.workspaceId,
        )
        _require_storage(db, current_user, new_size - (existing.size_bytes if existing is not None else 0))

    result = gateway.save_file(
        db,
        owner_id=current_user.id,
        name=body.name,
        kind=body.type,
        size=body.size,
        path=body.path,
        content=body.content,
        parent_id=body.parentId,
        workspace_id=body.workspaceId,
        storage_key=body.storageKey,
        storage_url=body.storageUrl,
    )
    data = {"outcome": result.outcome.value, "file": _to_item(db, gateway, result.record)}
    if result.created:
        response.status_code = HTTP_STATUS_CREATED
        return create_response("文件创建成功", data, HTTP_STATUS_CREATED)
    return create_response("文件更新成功", data)


@router.get("/files/recent", response_model=FileListResponse)
def recent_files(
    limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    items = gateway.get_recent_files(db, current_user.id, limit)
    return create_response("获取最近文件成功", [_to_item(db, gateway, item) for item in items])


@router.get("/files/usage", response_model=StorageUsageResponse)
def storage_usage(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    report = gateway.usage_report(db, current_user.id, quota_service.effective_plan(current_user))
    return create_response(
        "获取存储用量成功",
        {
            "usage": report["usage"],
            "usageInGB": report["usage_in_gb"],
            "limit": report["limit"],
            "limitInGB": report["limit_in_gb"],
            "percentage": report["percentage"],
            "plan": report["plan"],
        },
    )


@router.post("/files/upload", response_model=FileResponse)
async def upload_file(
    response: Response,
    file: UploadFile = File(...),
    parent_id: Optional[str] = Form(None, alias="parentId"),
    workspace_id: Optional[str] = Form(None, alias="workspaceId"),
    type_hint: Optional[str] = Form(None, alias="type"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    """上传单个文件：先按字节数做配额检查，再按落点策略写入。"""
    data = await file.read()
    _require_storage(db, current_user, len(data))
    record = gateway.store_content(
        db,
        owner_id=current_user.id,
        file_name=file.filename or "",
        data=data,
        parent_id=parent_id,
        workspace_id=workspace_id,
        type_hint=type_hint or file.content_type,
    )
    logger.info("files.upload user=%s file=%s size=%s external=%s", current_user.id, record.id, len(data), record.is_external)
    response.status_code = HTTP_STATUS_CREATED
    return create_response("文件上传成功", _to_item(db, gateway, record), HTTP_STATUS_CREATED)


@router.post("/files/move", response_model=FileResponse)
def move_file(
    body: MoveBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    record = gateway.move_file(db, body.fileId, body.targetFolderId, current_user.id)
    return create_response("文件移动成功", _to_item(db, gateway, record))


@router.post("/folders", response_model=FileResponse)
def create_folder(
    body: FolderCreateBody,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    record = gateway.create_folder(
        db,
        owner_id=current_user.id,
        name=body.name,
        parent_id=body.parentId,
        workspace_id=body.workspaceId,
    )
    response.status_code = HTTP_STATUS_CREATED
    return create_response("文件夹创建成功", _to_item(db, gateway, record), HTTP_STATUS_CREATED)


@router.get("/files/{file_id}/download")
def download_file(
    file_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    record = gateway.get_file(db, file_id, current_user.id)
    data, content_type = gateway.download_file(db, file_id, current_user.id)
    disposition = f"attachment; filename*=UTF-8''{quote(record.name)}"
    return Response(content=data, media_type=content_type, headers={"Content-Disposition": disposition})


@router.put("/files/{file_id}", response_model=FileResponse)
def update_file(
    file_id: str,
    body: FileUpdateBody,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    if body.newName:
        record = gateway.rename_file(db, file_id, body.newName, current_user.id)
        return create_response("重命名成功", _to_item(db, gateway, record))

    record = gateway.get_file(db, file_id, current_user.id)
    if body.content is not None:
        new_size = len(body.content.encode("utf-8"))
    else:
        new_size = body.size if body.size is not None else record.size_bytes
    _require_storage(db, current_user, new_size - (record.size_bytes or 0))
    record = gateway.update_file(db, file_id, current_user.id, content=body.content, size=body.size)
    return create_response("文件更新成功", _to_item(db, gateway, record, include_content=True))


@router.delete("/files/{file_id}", response_model=DeleteResponse)
def delete_file(
    file_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: StorageGateway = Depends(get_storage_gateway),
):
    deleted = gateway.delete_file(db, file_id, current_user.id)
    return create_response("文件删除成功", {"deletedIds": deleted})
