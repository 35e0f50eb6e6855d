"""异常处理模块：定义统一的业务异常与响应格式。

业务层只抛出带类型的异常，不负责拼装最终响应；
由此处注册的全局处理器统一转换为 ``{"msg", "data", "code"}`` 结构。
"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.packages.drive.core.constants import (
    HTTP_STATUS_BAD_GATEWAY,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_INSUFFICIENT_STORAGE,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    UPGRADE_REQUIRED,
)
from app.packages.drive.core.enums import QuotaResourceEnum


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


class NotFoundError(AppException):
    """资源不存在或不属于当前用户，两种情况对外不作区分。"""

    def __init__(self, msg: str = "文件不存在") -> None:
        super().__init__(msg, HTTP_STATUS_NOT_FOUND)


class InvalidOperationError(AppException):
    def __init__(self, msg: str, code: int = HTTP_STATUS_BAD_REQUEST) -> None:
        super().__init__(msg, code)


class ConflictError(InvalidOperationError):
    def __init__(self, msg: str = "同名文件或文件夹已存在") -> None:
        super().__init__(msg, HTTP_STATUS_CONFLICT)


class UpstreamFailure(AppException):
    """对象存储或元数据存储的 I/O 失败。"""

    def __init__(self, msg: str, data=None) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_GATEWAY, data)


_QUOTA_ERRORS = {
    QuotaResourceEnum.STORAGE: ("STORAGE_LIMIT_EXCEEDED", HTTP_STATUS_INSUFFICIENT_STORAGE, "已达到当前计划的存储空间上限"),
    QuotaResourceEnum.AI_REQUESTS: ("AI_LIMIT_EXCEEDED", HTTP_STATUS_TOO_MANY_REQUESTS, "已达到当前计划的每日 AI 请求上限"),
    QuotaResourceEnum.WORKSPACES: ("WORKSPACE_LIMIT_EXCEEDED", HTTP_STATUS_FORBIDDEN, "已达到当前计划的工作区数量上限"),
    QuotaResourceEnum.PANELS: ("PANEL_LIMIT_EXCEEDED", HTTP_STATUS_FORBIDDEN, "已达到当前计划可同时打开的面板上限"),
}


class QuotaExceededError(AppException):
    """配额超限：携带资源类型、当前用量与上限，供前端渲染升级提示。"""

    def __init__(
        self,
        resource: QuotaResourceEnum,
        *,
        current: int,
        limit: int,
        plan: Optional[str] = None,
    ) -> None:
        error_code, http_status, msg = _QUOTA_ERRORS[resource]
        self.resource = resource
        self.current = current
        self.limit = limit
        self.error_code = error_code
        super().__init__(
            msg,
            http_status,
            {
                "code": error_code,
                "type": UPGRADE_REQUIRED,
                "resource": resource.value,
                "current": current,
                "limit": limit,
                "plan": plan,
            },
        )


def _payload(msg: Any, code: int, data=None) -> dict:
    return {"msg": msg, "data": data, "code": code}


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    return JSONResponse(
        status_code=exc.status_code,
        content=_payload(exc.detail, exc.status_code, getattr(exc, "data", None)),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_payload("服务器内部错误", status.HTTP_500_INTERNAL_SERVER_ERROR),
    )
