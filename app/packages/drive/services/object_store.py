"""对象存储抽象与实现：统一封装 S3 兼容服务与本地目录的对象读写。

网关只依赖 ``put``/``get``/``delete``/``url_for`` 四个操作；
任何底层 I/O 失败都转换为 ``UpstreamFailure``，调用方据此决定回滚或清理。
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.packages.drive.core.config import Settings
from app.packages.drive.core.exceptions import AppException, UpstreamFailure
from app.packages.drive.core.constants import HTTP_STATUS_BAD_REQUEST
from app.packages.drive.core.logger import logger


class ObjectStore:
    """对象存储接口。"""

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """写入对象并返回其可访问 URL。"""
        raise NotImplementedError

    def get(self, key: str) -> bytes:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def url_for(self, key: str) -> str:
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalObjectStore(ObjectStore):
    def __init__(self, root: str | Path, *, base_url: str = "/objects"):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise UpstreamFailure(f"无法创建本地存储目录: {exc}") from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        candidate = (self.root / key.strip().lstrip("/")).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise AppException("非法对象键: 越权访问", HTTP_STATUS_BAD_REQUEST) from exc
        return candidate

    def put(self, key: str, data: bytes, content_type: str) -> str:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.exception("Local object write failed: %s", key)
            raise UpstreamFailure("对象写入失败", {"key": key}) from exc
        return self.url_for(key)

    def get(self, key: str) -> bytes:
        target = self._resolve(key)
        try:
            return target.read_bytes()
        except OSError as exc:
            raise UpstreamFailure("对象读取失败", {"key": key}) from exc

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        try:
            # 允许幂等：不存在则忽略
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise UpstreamFailure("对象删除失败", {"key": key}) from exc

    def url_for(self, key: str) -> str:
        return f"{self.base_url}/{quote(key.lstrip('/'))}"


# ------------------------------------------
# S3 实现（boto3，兼容 Wasabi 等自定义 endpoint）
# ------------------------------------------


class S3ObjectStore(ObjectStore):
    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        public_endpoint: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_endpoint = (public_endpoint or f"https://{bucket}.s3.{region}.wasabisys.com").rstrip("/")
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
        )

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.upload_fileobj(
                io.BytesIO(data),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 upload failed: %s", key)
            raise UpstreamFailure("对象上传失败", {"key": key}) from exc
        return self.url_for(key)

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 download failed: %s", key)
            raise UpstreamFailure("对象读取失败", {"key": key}) from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 delete failed: %s", key)
            raise UpstreamFailure("对象删除失败", {"key": key}) from exc

    def url_for(self, key: str) -> str:
        return f"{self.public_endpoint}/{key}"


def build_object_store(settings: Settings) -> ObjectStore:
    store_type = (settings.object_store_type or "").upper()
    if store_type == "LOCAL":
        return LocalObjectStore(settings.local_storage_directory)
    if store_type == "S3":
        if not (settings.s3_bucket_name and settings.s3_region):
            raise AppException("S3 配置不完整", HTTP_STATUS_BAD_REQUEST)
        return S3ObjectStore(
            bucket=settings.s3_bucket_name,
            region=settings.s3_region,
            access_key_id=settings.s3_access_key_id,
            secret_access_key=settings.s3_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
            public_endpoint=settings.s3_public_endpoint,
        )
    raise AppException("不支持的存储类型", HTTP_STATUS_BAD_REQUEST)
