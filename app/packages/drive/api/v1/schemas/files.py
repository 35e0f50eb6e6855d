"""文件与文件夹操作的请求/响应模型。"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from app.packages.drive.api.v1.schemas.common import ResponseEnvelope


class FileItem(BaseModel):
    id: str
    name: str
    type: Literal["file", "folder"]
    size: int
    path: str
    mimeType: Optional[str] = None
    parentId: Optional[str] = None
    workspaceId: Optional[str] = None
    storageKey: Optional[str] = None
    storageUrl: Optional[str] = None
    isPublic: bool = False
    content: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class FileSaveBody(BaseModel):
    name: str = Field(..., min_length=1)
    type: Literal["file", "folder"] = "file"
    size: int = Field(0, ge=0)
    path: Optional[str] = None
    content: Optional[str] = None
    parentId: Optional[str] = None
    workspaceId: Optional[str] = None
    storageKey: Optional[str] = None
    storageUrl: Optional[str] = None


class FileUpdateBody(BaseModel):
    """``newName`` 存在时执行重命名，否则更新内容/大小。"""

    newName: Optional[str] = None
    content: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)


class FolderCreateBody(BaseModel):
    name: str = Field(..., min_length=1)
    parentId: Optional[str] = None
    workspaceId: Optional[str] = None


class MoveBody(BaseModel):
    fileId: str
    targetFolderId: Optional[str] = None


class SaveResultData(BaseModel):
    outcome: Literal["created", "updated"]
    file: FileItem


class DeleteResultData(BaseModel):
    deletedIds: list[str]


FileResponse = ResponseEnvelope[FileItem]
FileListResponse = ResponseEnvelope[list[FileItem]]
SaveResponse = ResponseEnvelope[SaveResultData]
DeleteResponse = ResponseEnvelope[DeleteResultData]
