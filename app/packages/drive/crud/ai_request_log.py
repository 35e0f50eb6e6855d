"""AI 请求日志 CRUD。"""

from datetime import datetime

from sqlalchemy.orm import Session

from app.packages.drive.crud.base import CRUDBase
from app.packages.drive.models.ai_request_log import AIRequestLog


class CRUDAIRequestLog(CRUDBase[AIRequestLog]):
    def count_since(self, db: Session, user_id: str, since: datetime) -> int:
        """统计用户自 ``since`` 起（含）的请求次数。"""
        return (
            self.query(db)
            .filter(AIRequestLog.user_id == user_id, AIRequestLog.created_at >= since)
            .count()
        )


ai_request_log_crud = CRUDAIRequestLog(AIRequestLog)
