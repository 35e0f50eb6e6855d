"""文件记录模型：一行代表一个文件或文件夹。

内容的落点二选一：
- 内联：``content`` 保存 UTF-8 文本，``storage_key`` 为空；
- 外部：``storage_key``/``storage_url`` 指向对象存储，``content`` 为空。
文件夹两者皆无。``path`` 不落库，由祖先链的名称在读取时拼出。
"""

import uuid
from typing import Optional

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import expression

from app.packages.drive.core.enums import FileKindEnum
from app.packages.drive.models.base import Base, TimestampMixin


def _new_id() -> str:
    return str(uuid.uuid4())


class FileRecord(TimestampMixin, Base):
    __tablename__ = "file_records"
    __table_args__ = (
        Index("ix_file_records_owner_parent", "owner_id", "workspace_id", "parent_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255))
    kind: Mapped[str] = mapped_column(String(16), default=FileKindEnum.FILE.value)
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    storage_key: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    storage_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)

    owner_id: Mapped[str] = mapped_column(String(36), index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("file_records.id", ondelete="CASCADE"), nullable=True, index=True
    )
    workspace_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, server_default=expression.false())

    @property
    def is_folder(self) -> bool:
        return self.kind == FileKindEnum.FOLDER.value

    @property
    def is_external(self) -> bool:
        return bool(self.storage_key)

    def __repr__(self) -> str:
        return f"<FileRecord(id={self.id}, name='{self.name}', kind={self.kind})>"
