"""存储网关：决定文件内容放在元数据表（内联）还是对象存储（外部），
并对调用方屏蔽内容的实际位置。

- 所有读写都按所有者过滤，不存在与不属于当前用户统一报告为 ``NotFoundError``；
- ``path`` 由祖先链名称在读取时拼出，重命名与移动后子孙路径自然跟随；
- 网关本身不做配额检查，调用方需先经过配额服务放行。
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.packages.drive.core.constants import BYTES_PER_GB, OBJECT_KEY_PREFIX, UNLIMITED
from app.packages.drive.core.enums import FileKindEnum, SaveOutcomeEnum
from app.packages.drive.core.exceptions import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    UpstreamFailure,
)
from app.packages.drive.core.logger import logger
from app.packages.drive.crud.file_record import file_record_crud
from app.packages.drive.models.file_record import FileRecord
from app.packages.drive.services.content_types import guess_content_type
from app.packages.drive.services.object_store import ObjectStore
from app.packages.drive.services.plans import get_plan_limits
from app.packages.drive.utils.path_utils import (
    join_path,
    norm_abs_path,
    path_from_names,
    sanitize_key_name,
    split_path,
)

DEFAULT_RECENT_LIMIT = 5


@dataclass
class SaveResult:
    outcome: SaveOutcomeEnum
    record: FileRecord

    @property
    def created(self) -> bool:
        return self.outcome == SaveOutcomeEnum.CREATED


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class StorageGateway:
    def __init__(
        self,
        object_store: ObjectStore,
        *,
        inline_max_bytes: int = 1024 * 1024,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        self.object_store = object_store
        self.inline_max_bytes = inline_max_bytes
        self._clock = clock

    # ----------------------------
    # 键与路径
    # ----------------------------
    def generate_file_key(self, owner_id: str, file_name: str) -> str:
        """``users/<owner>/<毫秒时间戳>_<净化后的文件名>``。"""
        return f"{OBJECT_KEY_PREFIX}/{owner_id}/{self._clock()}_{sanitize_key_name(file_name)}"

    def compute_path(self, db: Session, record: FileRecord) -> str:
        names: list[str] = [record.name]
        seen = {record.id}
        parent_id = record.parent_id
        while parent_id is not None:
            parent = file_record_crud.get_owned(db, parent_id, record.owner_id)
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            names.append(parent.name)
            parent_id = parent.parent_id
        return path_from_names(reversed(names))

    # ----------------------------
    # 查询
    # ----------------------------
    def get_file(self, db: Session, file_id: str, owner_id: str) -> FileRecord:
        record = file_record_crud.get_owned(db, file_id, owner_id)
        if record is None:
            raise NotFoundError()
        return record

    def get_file_by_path(
        self,
        db: Session,
        path: str,
        owner_id: str,
        workspace_id: Optional[str] = None,
    ) -> FileRecord:
        segments = [part for part in norm_abs_path(path).split("/") if part]
        if not segments:
            raise NotFoundError()
        current: Optional[FileRecord] = None
        for segment in segments:
            if current is not None and not current.is_folder:
                raise NotFoundError()
            current = file_record_crud.get_sibling_by_name(
                db,
                owner_id=owner_id,
                parent_id=current.id if current is not None else None,
                workspace_id=workspace_id,
                name=segment,
            )
            if current is None:
                raise NotFoundError()
        return current

    def get_files_in_folder(
        self,
        db: Session,
        folder_id: str,
        owner_id: str,
        workspace_id: Optional[str] = None,
    ) -> List[FileRecord]:
        folder = self._get_folder(db, folder_id, owner_id)
        if workspace_id is not None and folder.workspace_id != workspace_id:
            raise NotFoundError("文件夹不存在")
        return file_record_crud.list_children(
            db, owner_id=owner_id, parent_id=folder.id, workspace_id=folder.workspace_id
        )

    def get_root_files(self, db: Session, owner_id: str, workspace_id: Optional[str] = None) -> List[FileRecord]:
        return file_record_crud.list_children(
            db, owner_id=owner_id, parent_id=None, workspace_id=workspace_id, by_kind=True
        )

    def get_recent_files(self, db: Session, owner_id: str, limit: int = DEFAULT_RECENT_LIMIT) -> List[FileRecord]:
        if limit <= 0:
            return []
        return file_record_crud.list_recent_files(db, owner_id=owner_id, limit=limit)

    def get_user_storage_usage(self, db: Session, owner_id: str) -> int:
        return file_record_crud.sum_size(db, owner_id)

    def usage_report(self, db: Session, owner_id: str, plan: Optional[str]) -> dict:
        """存储用量概览：字节数、GB（两位小数）、计划上限与使用百分比。"""
        usage = self.get_user_storage_usage(db, owner_id)
        limits = get_plan_limits(plan)
        limit_bytes = limits.storage_bytes
        percentage = None
        if limit_bytes != UNLIMITED and limit_bytes > 0:
            percentage = round(usage / limit_bytes * 100, 2)
        return {
            "usage": usage,
            "usage_in_gb": round(usage / BYTES_PER_GB, 2),
            "limit": limit_bytes,
            "limit_in_gb": limits.storage_gb,
            "percentage": percentage,
            "plan": limits.name,
        }

    # ----------------------------
    # 写入
    # ----------------------------
    def create_file(
        self,
        db: Session,
        *,
        owner_id: str,
        name: str,
        kind: FileKindEnum | str = FileKindEnum.FILE,
        size: int = 0,
        path: Optional[str] = None,
        content: Optional[str] = None,
        parent_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
        storage_key: Optional[str] = None,
        storage_url: Optional[str] = None,
        is_public: bool = False,
    ) -> FileRecord:
        """新建一条记录；同一父目录下已有同名项时抛出 ``ConflictError``。"""
        kind = FileKindEnum(kind)
        name = self._validate_name(name)
        self._validate_payload(kind, size, content, storage_key)
        parent = self._resolve_parent(db, owner_id, name, path, parent_id, workspace_id)
        if parent is not None:
            workspace_id = parent.workspace_id
        self._ensure_unique(db, owner_id, parent, workspace_id, name)

        payload = {
            "owner_id": owner_id,
            "name": name,
            "kind": kind.value,
            "size_bytes": 0 if kind == FileKindEnum.FOLDER else size,
            "parent_id": parent.id if parent is not None else None,
            "workspace_id": workspace_id,
            "is_public": is_public,
        }
        if kind == FileKindEnum.FILE:
            payload["mime_type"] = guess_content_type(name)
            if storage_key:
                payload["storage_key"] = storage_key
                payload["storage_url"] = storage_url or self.object_store.url_for(storage_key)
            elif content is not None:
                payload["content"] = content
                payload["size_bytes"] = len(content.encode("utf-8"))
        return self._persist_new(db, payload)

    def update_file(
        self,
        db: Session,
        file_id: str,
        owner_id: str,
        *,
        content: Optional[str] = None,
        size: Optional[int] = None,
    ) -> FileRecord:
        """更新已有文件的内容或大小；外部存储的文件原地覆盖对象。"""
        record = self.get_file(db, file_id, owner_id)
        if record.is_folder:
            raise InvalidOperationError("文件夹没有可更新的内容")
        if size is not None and size < 0:
            raise InvalidOperationError("文件大小不能为负数")

        if content is not None:
            data = content.encode("utf-8")
            if record.is_external:
                self.object_store.put(record.storage_key, data, record.mime_type or guess_content_type(record.name))
            else:
                record.content = content
            record.size_bytes = len(data)
        elif size is not None:
            record.size_bytes = size
        return self._persist(db, record)

    def save_file(
        self,
        db: Session,
        *,
        owner_id: str,
        name: str,
        kind: FileKindEnum | str = FileKindEnum.FILE,
        size: int = 0,
        path: Optional[str] = None,
        content: Optional[str] = None,
        parent_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
        storage_key: Optional[str] = None,
        storage_url: Optional[str] = None,
    ) -> SaveResult:
        """按路径创建或更新：目标位置已有同名文件时更新，否则新建。"""
        kind = FileKindEnum(kind)
        name = self._validate_name(name)
        self._validate_payload(kind, size, content, storage_key)
        parent = self._resolve_parent(db, owner_id, name, path, parent_id, workspace_id)
        scope = parent.workspace_id if parent is not None else workspace_id
        existing = self._sibling(db, owner_id, parent, scope, name)
        if existing is None:
            record = self.create_file(
                db,
                owner_id=owner_id,
                name=name,
                kind=kind,
                size=size,
                content=content,
                parent_id=parent.id if parent is not None else None,
                workspace_id=scope,
                storage_key=storage_key,
                storage_url=storage_url,
            )
            return SaveResult(SaveOutcomeEnum.CREATED, record)

        if existing.kind != kind.value:
            raise ConflictError()
        if kind == FileKindEnum.FOLDER:
            return SaveResult(SaveOutcomeEnum.UPDATED, existing)
        if storage_key:
            replaced_key = existing.storage_key
            existing.storage_key = storage_key
            existing.storage_url = storage_url or self.object_store.url_for(storage_key)
            existing.content = None
            existing.size_bytes = size
            record = self._persist(db, existing)
            if replaced_key and replaced_key != storage_key:
                self._discard_object(replaced_key)
            return SaveResult(SaveOutcomeEnum.UPDATED, record)
        record = self.update_file(db, existing.id, owner_id, content=content, size=size)
        return SaveResult(SaveOutcomeEnum.UPDATED, record)

    def find_save_target(
        self,
        db: Session,
        *,
        owner_id: str,
        name: str,
        path: Optional[str] = None,
        parent_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
    ) -> Optional[FileRecord]:
        """返回 ``save_file`` 将会更新的记录；会新建时返回 ``None``。"""
        name = self._validate_name(name)
        parent = self._resolve_parent(db, owner_id, name, path, parent_id, workspace_id)
        scope = parent.workspace_id if parent is not None else workspace_id
        return self._sibling(db, owner_id, parent, scope, name)

    def create_folder(
        self,
        db: Session,
        *,
        owner_id: str,
        name: str,
        parent_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
    ) -> FileRecord:
        return self.create_file(
            db,
            owner_id=owner_id,
            name=name,
            kind=FileKindEnum.FOLDER,
            parent_id=parent_id,
            workspace_id=workspace_id,
        )

    def store_content(
        self,
        db: Session,
        *,
        owner_id: str,
        file_name: str,
        data: bytes,
        parent_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
        type_hint: Optional[str] = None,
    ) -> FileRecord:
        """上传入口的落点策略：小体积 UTF-8 文本内联，其余写入对象存储。"""
        if len(data) <= self.inline_max_bytes:
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                text = None
            if text is not None:
                return self.create_file(
                    db,
                    owner_id=owner_id,
                    name=file_name,
                    size=len(data),
                    content=text,
                    parent_id=parent_id,
                    workspace_id=workspace_id,
                )
        return self.upload_large_file(
            db,
            owner_id=owner_id,
            data=data,
            file_name=file_name,
            parent_id=parent_id,
            workspace_id=workspace_id,
            type_hint=type_hint,
        )

    def upload_large_file(
        self,
        db: Session,
        *,
        owner_id: str,
        data: bytes,
        file_name: str,
        parent_id: Optional[str] = None,
        workspace_id: Optional[str] = None,
        type_hint: Optional[str] = None,
    ) -> FileRecord:
        """写入对象存储后再落元数据；两者要么都存在，要么都不存在。"""
        name = self._validate_name(file_name)
        parent = self._get_folder(db, parent_id, owner_id) if parent_id else None
        if parent is not None:
            workspace_id = parent.workspace_id
        self._ensure_unique(db, owner_id, parent, workspace_id, name)

        key = self.generate_file_key(owner_id, name)
        content_type = guess_content_type(name, type_hint)
        url = self.object_store.put(key, data, content_type)

        payload = {
            "owner_id": owner_id,
            "name": name,
            "kind": FileKindEnum.FILE.value,
            "size_bytes": len(data),
            "mime_type": content_type,
            "storage_key": key,
            "storage_url": url,
            "parent_id": parent.id if parent is not None else None,
            "workspace_id": workspace_id,
        }
        try:
            record = file_record_crud.create(db, payload)
        except Exception as exc:
            db.rollback()
            logger.warning("Metadata write failed for %s, removing uploaded object", key)
            self._discard_object(key)
            if isinstance(exc, SQLAlchemyError):
                raise UpstreamFailure("文件元数据写入失败", {"key": key}) from exc
            raise
        logger.info("Uploaded %s bytes for user %s to %s", len(data), owner_id, key)
        return record

    # ----------------------------
    # 读取内容
    # ----------------------------
    def download_file(self, db: Session, file_id: str, owner_id: str) -> Tuple[bytes, str]:
        record = self.get_file(db, file_id, owner_id)
        if record.is_folder:
            raise InvalidOperationError("文件夹不支持下载")
        content_type = record.mime_type or guess_content_type(record.name)
        if record.storage_key:
            return self.object_store.get(record.storage_key), content_type
        if record.content is not None:
            return record.content.encode("utf-8"), content_type
        raise InvalidOperationError("文件内容不可用")

    # ----------------------------
    # 重命名 / 移动 / 删除
    # ----------------------------
    def rename_file(self, db: Session, file_id: str, new_name: str, owner_id: str) -> FileRecord:
        record = self.get_file(db, file_id, owner_id)
        name = self._validate_name(new_name)
        if name == record.name:
            return record
        parent = self._get_folder(db, record.parent_id, owner_id) if record.parent_id else None
        self._ensure_unique(db, owner_id, parent, record.workspace_id, name, exclude_id=record.id)
        record.name = name
        if not record.is_folder and not record.is_external:
            record.mime_type = guess_content_type(name)
        return self._persist(db, record)

    def move_file(
        self,
        db: Session,
        file_id: str,
        target_folder_id: Optional[str],
        owner_id: str,
    ) -> FileRecord:
        """移动到目标文件夹；``target_folder_id`` 为空时移动到根目录。"""
        record = self.get_file(db, file_id, owner_id)
        target = None
        if target_folder_id is not None:
            target = self._get_folder(db, target_folder_id, owner_id)
            if target.workspace_id != record.workspace_id:
                raise InvalidOperationError("不能跨工作区移动")
            if record.is_folder and self._is_same_or_descendant(db, target, record):
                raise InvalidOperationError("不能将文件夹移动到自身或其子文件夹中")
        new_parent_id = target.id if target is not None else None
        if new_parent_id == record.parent_id:
            return record
        self._ensure_unique(db, owner_id, target, record.workspace_id, record.name, exclude_id=record.id)
        record.parent_id = new_parent_id
        return self._persist(db, record)

    def delete_file(self, db: Session, file_id: str, owner_id: str) -> List[str]:
        """删除记录（文件夹连同全部子孙），再清理其外部对象。

        元数据先提交，之后逐个删除对象；单个对象删除失败只记录日志，
        不影响其余对象，也不会让已删除的记录重新出现。
        返回被删除的记录 id 列表。
        """
        record = self.get_file(db, file_id, owner_id)
        doomed = self._collect_subtree(db, record)
        keys = [item.storage_key for item in doomed if item.storage_key]
        ids = [item.id for item in doomed]

        try:
            # 先删叶子，避免依赖数据库级联
            for item in reversed(doomed):
                file_record_crud.hard_delete(db, item, auto_commit=False)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise UpstreamFailure("文件元数据删除失败", {"id": file_id}) from exc

        for key in keys:
            self._discard_object(key)
        logger.info("Deleted %s record(s) and %s object(s) for user %s", len(ids), len(keys), owner_id)
        return ids

    # ----------------------------
    # 内部工具
    # ----------------------------
    @staticmethod
    def _validate_name(name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise InvalidOperationError("名称不能为空")
        if "/" in cleaned or cleaned in {".", ".."}:
            raise InvalidOperationError("名称包含非法字符")
        return cleaned

    @staticmethod
    def _validate_payload(
        kind: FileKindEnum,
        size: int,
        content: Optional[str],
        storage_key: Optional[str],
    ) -> None:
        if size is None or size < 0:
            raise InvalidOperationError("文件大小不能为负数")
        if kind == FileKindEnum.FOLDER and (content is not None or storage_key):
            raise InvalidOperationError("文件夹不能包含内容")
        if content is not None and storage_key:
            raise InvalidOperationError("内联内容与外部存储键不能同时存在")

    def _get_folder(self, db: Session, folder_id: str, owner_id: str) -> FileRecord:
        folder = file_record_crud.get_owned(db, folder_id, owner_id)
        if folder is None:
            raise NotFoundError("文件夹不存在")
        if not folder.is_folder:
            raise InvalidOperationError("目标不是文件夹")
        return folder

    def _resolve_parent(
        self,
        db: Session,
        owner_id: str,
        name: str,
        path: Optional[str],
        parent_id: Optional[str],
        workspace_id: Optional[str],
    ) -> Optional[FileRecord]:
        parent = self._get_folder(db, parent_id, owner_id) if parent_id else None
        if not path:
            return parent

        parent_path, leaf = split_path(path)
        if leaf != name:
            raise InvalidOperationError("路径与文件名不一致")
        if parent is None:
            if parent_path == "/":
                return None
            resolved = self.get_file_by_path(db, parent_path, owner_id, workspace_id)
            if not resolved.is_folder:
                raise InvalidOperationError("目标不是文件夹")
            return resolved

        expected = join_path(self.compute_path(db, parent), name)
        if norm_abs_path(path).rstrip("/") != expected:
            raise InvalidOperationError("路径与父目录不一致")
        return parent

    def _ensure_unique(
        self,
        db: Session,
        owner_id: str,
        parent: Optional[FileRecord],
        workspace_id: Optional[str],
        name: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> None:
        if self._sibling(db, owner_id, parent, workspace_id, name, exclude_id=exclude_id) is not None:
            raise ConflictError()

    @staticmethod
    def _sibling(
        db: Session,
        owner_id: str,
        parent: Optional[FileRecord],
        workspace_id: Optional[str],
        name: str,
        *,
        exclude_id: Optional[str] = None,
    ) -> Optional[FileRecord]:
        return file_record_crud.get_sibling_by_name(
            db,
            owner_id=owner_id,
            parent_id=parent.id if parent is not None else None,
            workspace_id=workspace_id,
            name=name,
            exclude_id=exclude_id,
        )

    def _is_same_or_descendant(self, db: Session, candidate: FileRecord, ancestor: FileRecord) -> bool:
        current: Optional[FileRecord] = candidate
        seen: set[str] = set()
        while current is not None and current.id not in seen:
            if current.id == ancestor.id:
                return True
            seen.add(current.id)
            if current.parent_id is None:
                return False
            current = file_record_crud.get_owned(db, current.parent_id, ancestor.owner_id)
        return False

    def _collect_subtree(self, db: Session, root: FileRecord) -> List[FileRecord]:
        """广度优先收集记录及其全部子孙，父节点总在子节点之前。"""
        collected = [root]
        frontier = [root.id] if root.is_folder else []
        while frontier:
            children = file_record_crud.list_children_of(db, frontier, root.owner_id)
            collected.extend(children)
            frontier = [child.id for child in children if child.is_folder]
        return collected

    def _discard_object(self, key: str) -> None:
        """尽力删除对象；失败只记录日志，不向上抛出。"""
        try:
            self.object_store.delete(key)
        except Exception:
            logger.exception("Failed to remove object %s", key)

    def _persist_new(self, db: Session, payload: dict) -> FileRecord:
        try:
            return file_record_crud.create(db, payload)
        except SQLAlchemyError as exc:
            db.rollback()
            raise UpstreamFailure("文件元数据写入失败") from exc

    def _persist(self, db: Session, record: FileRecord) -> FileRecord:
        try:
            return file_record_crud.save(db, record)
        except SQLAlchemyError as exc:
            db.rollback()
            raise UpstreamFailure("文件元数据写入失败", {"id": record.id}) from exc
