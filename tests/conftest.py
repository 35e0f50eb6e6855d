"""测试夹具：为 pytest 提供数据库、对象存储与客户端的共享配置。"""

import os
import shutil
import tempfile
import uuid
from typing import Callable, Generator, Optional

# 必须在导入应用模块之前设置，配置对象会被缓存
_TMP_ROOT = tempfile.mkdtemp(prefix="webos_drive_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_ROOT, 'bootstrap.db')}"
os.environ["OBJECT_STORE_TYPE"] = "LOCAL"
os.environ["LOCAL_STORAGE_ROOT"] = os.path.join(_TMP_ROOT, "objects")
os.environ["PANEL_STORE"] = "memory"
os.environ["LOG_DIR"] = os.path.join(_TMP_ROOT, "log")
os.environ["JWT_SECRET_KEY"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.packages.drive.core.dependencies import get_db
from app.packages.drive.core.security import create_access_token
from app.packages.drive.db import session as db_session
from app.packages.drive.models.base import Base
from app.packages.drive.models.user import Subscription, User
from app.packages.drive.services import panel_registry
from app.packages.drive.services.object_store import LocalObjectStore
from app.packages.drive.services.storage_gateway import StorageGateway
from app.main import app

TEST_DB_PATH = os.path.join(_TMP_ROOT, "test.db")
TEST_DATABASE_URL = f"sqlite:///{TEST_DB_PATH}"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database() -> Generator[None, None, None]:
    """创建隔离的 SQLite 测试数据库，并在会话结束后清理。"""
    engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    Base.metadata.create_all(bind=engine)
    yield

    engine.dispose()
    shutil.rmtree(_TMP_ROOT, ignore_errors=True)


@pytest.fixture(autouse=True)
def panel_backend() -> Generator[panel_registry.InMemoryPanelBackend, None, None]:
    """每个用例使用独立的内存面板登记。"""
    backend = panel_registry.InMemoryPanelBackend()
    panel_registry.set_backend(backend)
    yield backend
    panel_registry.set_backend(None)


@pytest.fixture()
def db_session_fixture() -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def object_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "objects")


@pytest.fixture()
def gateway(object_store) -> StorageGateway:
    return StorageGateway(object_store, inline_max_bytes=1024 * 1024)


@pytest.fixture()
def make_user(db_session_fixture) -> Callable[..., User]:
    """创建用户（可附带订阅状态）的工厂方法。"""

    def _make(plan: str = "FREE", status: Optional[str] = None) -> User:
        user = User(id=str(uuid.uuid4()), email=f"{uuid.uuid4().hex}@example.com", plan=plan)
        db_session_fixture.add(user)
        if status is not None:
            db_session_fixture.add(Subscription(user_id=user.id, status=status))
        db_session_fixture.commit()
        db_session_fixture.refresh(user)
        return user

    return _make


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """为指定用户签发 Bearer 令牌并返回请求头。"""

    def _headers(user: User) -> dict[str, str]:
        token = create_access_token({"user_id": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def client(db_session_fixture, object_store):
    """构建 FastAPI TestClient，并注入测试专用的数据库依赖与对象存储。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = db_session.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        app.state.object_store = object_store
        yield test_client

    app.dependency_overrides.clear()
