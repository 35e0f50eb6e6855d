"""面板登记：服务端记录每个用户当前打开的面板，用于面板数量配额。

优先使用 Redis 集合 ``panels:<user_id>``，Redis 不可用时回退到进程内存。
"""

from __future__ import annotations

import threading
from typing import List, Optional

import redis

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.logger import logger


class PanelBackend:
    """面板登记后端基类。"""

    def open_panel(self, user_id: str, panel_id: str) -> None:  # pragma: no cover - interface definition
        raise NotImplementedError

    def close_panel(self, user_id: str, panel_id: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def list_panels(self, user_id: str) -> List[str]:  # pragma: no cover
        raise NotImplementedError

    def count_panels(self, user_id: str) -> int:
        return len(self.list_panels(user_id))


class RedisPanelBackend(PanelBackend):
    def __init__(self, url: str) -> None:
        self._client = redis.Redis.from_url(url, decode_responses=True)
        self._client.ping()

    def open_panel(self, user_id: str, panel_id: str) -> None:
        self._client.sadd(self._build_key(user_id), panel_id)

    def close_panel(self, user_id: str, panel_id: str) -> None:
        self._client.srem(self._build_key(user_id), panel_id)

    def list_panels(self, user_id: str) -> List[str]:
        return sorted(self._client.smembers(self._build_key(user_id)))

    def count_panels(self, user_id: str) -> int:
        return int(self._client.scard(self._build_key(user_id)))

    @staticmethod
    def _build_key(user_id: str) -> str:
        return f"panels:{user_id}"


class InMemoryPanelBackend(PanelBackend):
    """内存后端用于测试或缺少 Redis 时的回退实现。"""

    def __init__(self) -> None:
        self._store: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def open_panel(self, user_id: str, panel_id: str) -> None:
        with self._lock:
            self._store.setdefault(user_id, set()).add(panel_id)

    def close_panel(self, user_id: str, panel_id: str) -> None:
        with self._lock:
            panels = self._store.get(user_id)
            if panels is not None:
                panels.discard(panel_id)

    def list_panels(self, user_id: str) -> List[str]:
        with self._lock:
            return sorted(self._store.get(user_id, set()))

    def reset(self) -> None:
        with self._lock:
            self._store.clear()


_backend: Optional[PanelBackend] = None


def _get_backend() -> PanelBackend:
    global _backend
    if _backend is not None:
        return _backend

    settings = get_settings()
    if settings.panel_store.lower() == "memory":
        _backend = InMemoryPanelBackend()
        return _backend
    try:
        backend = RedisPanelBackend(settings.redis_url)
        logger.info("Panel registry initialized with Redis at %s", settings.redis_url)
        _backend = backend
    except redis.RedisError as exc:  # pragma: no cover - fallback path
        logger.warning("Redis unavailable (%s), falling back to in-memory panel registry", exc)
        _backend = InMemoryPanelBackend()
    return _backend


def set_backend(backend: Optional[PanelBackend]) -> None:
    """替换当前后端；传入 ``None`` 时下次访问重新按配置初始化。"""
    global _backend
    _backend = backend


def open_panel(user_id: str, panel_id: str) -> None:
    _get_backend().open_panel(user_id, panel_id)


def close_panel(user_id: str, panel_id: str) -> None:
    _get_backend().close_panel(user_id, panel_id)


def list_panels(user_id: str) -> List[str]:
    return _get_backend().list_panels(user_id)


def count_panels(user_id: str) -> int:
    """返回服务端记录的打开面板数量。"""
    return _get_backend().count_panels(user_id)
