"""工作区 CRUD。"""

from typing import List

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.workspace import Workspace


class CRUDWorkspace(CRUDBase[Workspace]):
    def list_by_owner(self, db: Session, owner_id: str) -> List[Workspace]:
        return (
            self.query(db)
            .filter(Workspace.owner_id == owner_id)
            .order_by(Workspace.create_time.asc())
            .all()
        )

    def count_by_owner(self, db: Session, owner_id: str) -> int:
        return self.query(db).filter(Workspace.owner_id == owner_id).count()


workspace_crud = CRUDWorkspace(Workspace)
