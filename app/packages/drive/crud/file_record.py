"""文件记录 CRUD：所有查询都带上所有者条件。"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.packages.drive.core.enums import FileKindEnum
from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.file_record import FileRecord


class CRUDFileRecord(CRUDBase[FileRecord]):
    def get_owned(self, db: Session, file_id: str, owner_id: str) -> Optional[FileRecord]:
        return (
            self.query(db)
            .filter(FileRecord.id == file_id, FileRecord.owner_id == owner_id)
            .first()
        )

    def _scoped(self, db: Session, owner_id: str, workspace_id: Optional[str]):
        query = self.query(db).filter(FileRecord.owner_id == owner_id)
        if workspace_id is None:
            return query.filter(FileRecord.workspace_id.is_(None))
        return query.filter(FileRecord.workspace_id == workspace_id)

    def list_children(
        self,
        db: Session,
        *,
        owner_id: str,
        parent_id: Optional[str],
        workspace_id: Optional[str] = None,
        by_kind: bool = False,
    ) -> List[FileRecord]:
        query = self._scoped(db, owner_id, workspace_id)
        if parent_id is None:
            query = query.filter(FileRecord.parent_id.is_(None))
        else:
            query = query.filter(FileRecord.parent_id == parent_id)
        if by_kind:
            # "file" < "folder"，与按类型字母序排列一致
            query = query.order_by(FileRecord.kind.asc(), FileRecord.name.asc())
        else:
            query = query.order_by(FileRecord.name.asc())
        return query.all()

    def list_children_of(self, db: Session, parent_ids: List[str], owner_id: str) -> List[FileRecord]:
        if not parent_ids:
            return []
        return (
            self.query(db)
            .filter(FileRecord.owner_id == owner_id, FileRecord.parent_id.in_(parent_ids))
            .all()
        )

    def get_sibling_by_name(
        self,
        db: Session,
        *,
        owner_id: str,
        parent_id: Optional[str],
        workspace_id: Optional[str],
        name: str,
        exclude_id: Optional[str] = None,
    ) -> Optional[FileRecord]:
        query = self._scoped(db, owner_id, workspace_id).filter(FileRecord.name == name)
        if parent_id is None:
            query = query.filter(FileRecord.parent_id.is_(None))
        else:
            query = query.filter(FileRecord.parent_id == parent_id)
        if exclude_id is not None:
            query = query.filter(FileRecord.id != exclude_id)
        return query.first()

    def list_recent_files(self, db: Session, *, owner_id: str, limit: int) -> List[FileRecord]:
        return (
            self.query(db)
            .filter(FileRecord.owner_id == owner_id, FileRecord.kind != FileKindEnum.FOLDER.value)
            .order_by(FileRecord.update_time.desc())
            .limit(limit)
            .all()
        )

    def sum_size(self, db: Session, owner_id: str) -> int:
        total = (
            db.query(func.coalesce(func.sum(FileRecord.size_bytes), 0))
            .filter(FileRecord.owner_id == owner_id, FileRecord.kind != FileKindEnum.FOLDER.value)
            .scalar()
        )
        return int(total or 0)


file_record_crud = CRUDFileRecord(FileRecord)
