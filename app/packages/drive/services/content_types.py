"""内容类型推断：按扩展名查表，未知时依据粗粒度提示回退。"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from app.packages.drive.core.constants import DEFAULT_CONTENT_TYPE

CONTENT_TYPES = {
    # 文本与代码
    "txt": "text/plain",
    "html": "text/html",
    "css": "text/css",
    "csv": "text/csv",
    "md": "text/markdown",
    "js": "application/javascript",
    "jsx": "application/javascript",
    "ts": "application/typescript",
    "tsx": "application/typescript",
    "json": "application/json",
    # 图片
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    # 文档
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    # 压缩包
    "zip": "application/zip",
    "rar": "application/x-rar-compressed",
    "gz": "application/gzip",
    # 音视频
    "mp3": "audio/mpeg",
    "mp4": "video/mp4",
}

HINT_CONTENT_TYPES = {
    "image": "image/png",
    "video": "video/mp4",
    "audio": "audio/mpeg",
}


def guess_content_type(file_name: str, type_hint: Optional[str] = None) -> str:
    """返回文件名对应的 MIME 类型。

    顺序：扩展名表 -> ``type_hint`` 中的 image/video/audio 关键字 -> 通用二进制类型。
    """
    ext = Path(file_name or "").suffix.lower().lstrip(".")
    if ext in CONTENT_TYPES:
        return CONTENT_TYPES[ext]

    hint = (type_hint or "").lower()
    for keyword, content_type in HINT_CONTENT_TYPES.items():
        if keyword in hint:
            return content_type
    return DEFAULT_CONTENT_TYPE
