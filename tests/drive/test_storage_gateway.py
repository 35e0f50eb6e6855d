"""存储网关测试：内容落点、路径推导、读写往返与删除清理。"""

import re
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.packages.drive.core.enums import SaveOutcomeEnum
from app.packages.drive.core.exceptions import (
    ConflictError,
    InvalidOperationError,
    NotFoundError,
    UpstreamFailure,
)
from app.packages.drive.crud.file_record import file_record_crud
from app.packages.drive.models.file_record import FileRecord
from app.packages.drive.services.object_store import LocalObjectStore
from app.packages.drive.services.storage_gateway import StorageGateway


def test_small_text_upload_is_stored_inline(db_session_fixture, gateway, make_user):
    user = make_user()
    text = "x" * 10240

    record = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="notes.txt", data=text.encode())

    assert gateway.compute_path(db_session_fixture, record) == "/notes.txt"
    assert record.storage_key is None
    assert record.content == text
    assert record.size_bytes == 10240
    assert record.mime_type == "text/plain"


def test_inline_size_is_utf8_byte_length(db_session_fixture, gateway, make_user):
    user = make_user()
    record = gateway.create_file(db_session_fixture, owner_id=user.id, name="ciao.txt", size=1, content="perché")
    assert record.size_bytes == len("perché".encode("utf-8")) == 7


def test_large_upload_goes_to_object_store(db_session_fixture, object_store, make_user):
    user = make_user()
    gateway = StorageGateway(object_store, inline_max_bytes=16, clock=lambda: 1700000000123)
    payload = b"\x00\x01binary-video-bytes" * 4

    record = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="video.mp4", data=payload)

    assert record.storage_key == f"users/{user.id}/1700000000123_video.mp4"
    assert record.content is None
    assert record.mime_type == "video/mp4"
    assert record.storage_url == object_store.url_for(record.storage_key)
    assert object_store.get(record.storage_key) == payload


def test_binary_content_is_never_inlined(db_session_fixture, gateway, make_user):
    user = make_user()
    record = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="icon.png", data=b"\x89PNG\r\n\x1a\n\xff")
    assert record.storage_key is not None
    assert record.content is None


def test_generated_key_format(gateway):
    key = gateway.generate_file_key("u-1", "My Video (final).mp4")
    assert re.fullmatch(r"users/u-1/\d{13}_My_Video__final_\.mp4", key)


def test_download_round_trip_for_inline_and_external(db_session_fixture, object_store, make_user):
    user = make_user()
    gateway = StorageGateway(object_store, inline_max_bytes=8)

    inline = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="a.txt", data=b"short")
    external = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="b.txt", data=b"a much longer text body")

    assert gateway.download_file(db_session_fixture, inline.id, user.id) == (b"short", "text/plain")
    assert gateway.download_file(db_session_fixture, external.id, user.id) == (b"a much longer text body", "text/plain")

    gateway.update_file(db_session_fixture, inline.id, user.id, content="changed")
    gateway.update_file(db_session_fixture, external.id, user.id, content="rewritten in place")
    assert gateway.download_file(db_session_fixture, inline.id, user.id)[0] == b"changed"
    assert gateway.download_file(db_session_fixture, external.id, user.id)[0] == b"rewritten in place"
    assert gateway.get_file(db_session_fixture, external.id, user.id).size_bytes == len(b"rewritten in place")


def test_external_download_reads_object_store_not_inline_field(db_session_fixture, make_user):
    user = make_user()
    store = MagicMock()
    store.put.return_value = "https://cdn/k"
    store.get.return_value = b"from-object-store"
    gateway = StorageGateway(store, inline_max_bytes=0)

    record = gateway.upload_large_file(db_session_fixture, owner_id=user.id, data=b"abc", file_name="video.mp4")
    data, content_type = gateway.download_file(db_session_fixture, record.id, user.id)

    assert data == b"from-object-store"
    assert content_type == "video/mp4"
    store.get.assert_called_once_with(record.storage_key)


def test_download_rejects_folders_and_missing_content(db_session_fixture, gateway, make_user):
    user = make_user()
    folder = gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")
    empty = gateway.create_file(db_session_fixture, owner_id=user.id, name="empty.txt")

    with pytest.raises(InvalidOperationError):
        gateway.download_file(db_session_fixture, folder.id, user.id)
    with pytest.raises(InvalidOperationError):
        gateway.download_file(db_session_fixture, empty.id, user.id)


def test_failed_upload_writes_no_metadata(db_session_fixture, make_user):
    user = make_user()
    store = MagicMock()
    store.put.side_effect = UpstreamFailure("对象上传失败")
    gateway = StorageGateway(store)

    with pytest.raises(UpstreamFailure):
        gateway.upload_large_file(db_session_fixture, owner_id=user.id, data=b"data", file_name="x.bin")

    assert gateway.get_root_files(db_session_fixture, user.id) == []


def test_metadata_failure_removes_orphan_object(db_session_fixture, object_store, make_user, monkeypatch):
    user = make_user()
    gateway = StorageGateway(object_store, clock=lambda: 42)

    def _broken_create(db, obj_in, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(file_record_crud, "create", _broken_create)

    with pytest.raises(UpstreamFailure):
        gateway.upload_large_file(db_session_fixture, owner_id=user.id, data=b"data", file_name="x.bin")

    with pytest.raises(UpstreamFailure):
        object_store.get(f"users/{user.id}/42_x.bin")


def test_orphan_cleanup_failure_does_not_mask_primary_error(db_session_fixture, make_user, monkeypatch):
    user = make_user()
    store = MagicMock()
    store.put.return_value = "url"
    store.delete.side_effect = UpstreamFailure("对象删除失败")
    gateway = StorageGateway(store)

    def _broken_create(db, obj_in, **kwargs):
        raise OperationalError("INSERT", {}, Exception("db down"))

    monkeypatch.setattr(file_record_crud, "create", _broken_create)

    with pytest.raises(UpstreamFailure) as exc_info:
        gateway.upload_large_file(db_session_fixture, owner_id=user.id, data=b"data", file_name="x.bin")

    assert exc_info.value.detail == "文件元数据写入失败"
    store.delete.assert_called_once()


def test_reads_are_scoped_by_owner(db_session_fixture, gateway, make_user):
    owner = make_user()
    stranger = make_user()
    record = gateway.create_file(db_session_fixture, owner_id=owner.id, name="secret.txt", content="s")

    with pytest.raises(NotFoundError):
        gateway.get_file(db_session_fixture, record.id, stranger.id)
    with pytest.raises(NotFoundError):
        gateway.get_file_by_path(db_session_fixture, "/secret.txt", stranger.id)
    with pytest.raises(NotFoundError):
        gateway.download_file(db_session_fixture, record.id, stranger.id)
    with pytest.raises(NotFoundError):
        gateway.delete_file(db_session_fixture, record.id, stranger.id)
    assert gateway.get_recent_files(db_session_fixture, stranger.id) == []


def test_get_file_is_idempotent(db_session_fixture, gateway, make_user):
    user = make_user()
    record = gateway.create_file(db_session_fixture, owner_id=user.id, name="a.md", content="# hi")

    first = gateway.get_file(db_session_fixture, record.id, user.id)
    second = gateway.get_file(db_session_fixture, record.id, user.id)

    assert (first.id, first.name, first.content, first.size_bytes, first.update_time) == (
        second.id,
        second.name,
        second.content,
        second.size_bytes,
        second.update_time,
    )


def test_listing_order(db_session_fixture, gateway, make_user):
    user = make_user()
    gateway.create_folder(db_session_fixture, owner_id=user.id, name="b-folder")
    gateway.create_file(db_session_fixture, owner_id=user.id, name="z.txt", content="z")
    gateway.create_folder(db_session_fixture, owner_id=user.id, name="a-folder")
    gateway.create_file(db_session_fixture, owner_id=user.id, name="c.txt", content="c")

    root = gateway.get_root_files(db_session_fixture, user.id)
    assert [(item.kind, item.name) for item in root] == [
        ("file", "c.txt"),
        ("file", "z.txt"),
        ("folder", "a-folder"),
        ("folder", "b-folder"),
    ]

    folder = gateway.get_file_by_path(db_session_fixture, "/a-folder", user.id)
    gateway.create_file(db_session_fixture, owner_id=user.id, name="y.txt", parent_id=folder.id, content="y")
    gateway.create_file(db_session_fixture, owner_id=user.id, name="x.txt", parent_id=folder.id, content="x")
    children = gateway.get_files_in_folder(db_session_fixture, folder.id, user.id)
    assert [item.name for item in children] == ["x.txt", "y.txt"]


def test_recent_files_exclude_folders_and_respect_limit(db_session_fixture, gateway, make_user):
    user = make_user()
    gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")
    for index in range(4):
        gateway.create_file(db_session_fixture, owner_id=user.id, name=f"f{index}.txt", content=str(index))

    recent = gateway.get_recent_files(db_session_fixture, user.id, limit=3)

    assert [item.name for item in recent] == ["f3.txt", "f2.txt", "f1.txt"]
    assert all(not item.is_folder for item in recent)


def test_save_file_creates_then_updates_by_path(db_session_fixture, gateway, make_user):
    user = make_user()
    docs = gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")

    first = gateway.save_file(db_session_fixture, owner_id=user.id, name="todo.md", size=0, path="/docs/todo.md", content="one")
    second = gateway.save_file(db_session_fixture, owner_id=user.id, name="todo.md", size=0, path="/docs/todo.md", content="two!")

    assert first.outcome == SaveOutcomeEnum.CREATED
    assert second.outcome == SaveOutcomeEnum.UPDATED
    assert second.record.id == first.record.id
    assert second.record.parent_id == docs.id
    assert second.record.content == "two!"
    assert second.record.size_bytes == 4


def test_save_file_validates_input(db_session_fixture, gateway, make_user):
    user = make_user()
    gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")

    with pytest.raises(InvalidOperationError):
        gateway.save_file(db_session_fixture, owner_id=user.id, name="", size=0, path="/x")
    with pytest.raises(InvalidOperationError):
        gateway.save_file(db_session_fixture, owner_id=user.id, name="a.txt", size=-1, path="/a.txt")
    with pytest.raises(InvalidOperationError):
        gateway.save_file(db_session_fixture, owner_id=user.id, name="a.txt", size=0, path="/docs/b.txt")
    with pytest.raises(NotFoundError):
        gateway.save_file(db_session_fixture, owner_id=user.id, name="a.txt", size=0, path="/missing/a.txt")
    with pytest.raises(InvalidOperationError):
        gateway.save_file(db_session_fixture, owner_id=user.id, name="a.txt", size=1, content="a", storage_key="users/x/1_a.txt")


def test_create_file_rejects_sibling_conflict(db_session_fixture, gateway, make_user):
    user = make_user()
    gateway.create_file(db_session_fixture, owner_id=user.id, name="a.txt", content="a")
    with pytest.raises(ConflictError):
        gateway.create_file(db_session_fixture, owner_id=user.id, name="a.txt", content="b")
    # 不同工作区互不影响
    gateway.create_file(db_session_fixture, owner_id=user.id, name="a.txt", content="b", workspace_id="ws-1")


def test_rename_folder_updates_descendant_paths(db_session_fixture, gateway, make_user):
    user = make_user()
    docs = gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")
    sub = gateway.create_folder(db_session_fixture, owner_id=user.id, name="sub", parent_id=docs.id)
    leaf = gateway.create_file(db_session_fixture, owner_id=user.id, name="leaf.txt", parent_id=sub.id, content="l")
    gateway.create_file(db_session_fixture, owner_id=user.id, name="other", content="o")

    gateway.rename_file(db_session_fixture, docs.id, "papers", user.id)

    assert gateway.compute_path(db_session_fixture, leaf) == "/papers/sub/leaf.txt"
    assert gateway.get_file_by_path(db_session_fixture, "/papers/sub/leaf.txt", user.id).id == leaf.id
    with pytest.raises(NotFoundError):
        gateway.get_file_by_path(db_session_fixture, "/docs/sub/leaf.txt", user.id)
    with pytest.raises(ConflictError):
        gateway.rename_file(db_session_fixture, docs.id, "other", user.id)


def test_move_recomputes_path_and_guards_cycles(db_session_fixture, gateway, make_user):
    user = make_user()
    docs = gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")
    archive = gateway.create_folder(db_session_fixture, owner_id=user.id, name="archive")
    nested = gateway.create_folder(db_session_fixture, owner_id=user.id, name="nested", parent_id=docs.id)
    note = gateway.create_file(db_session_fixture, owner_id=user.id, name="note.txt", content="n")

    moved = gateway.move_file(db_session_fixture, note.id, archive.id, user.id)
    assert gateway.compute_path(db_session_fixture, moved) == "/archive/note.txt"

    gateway.move_file(db_session_fixture, archive.id, nested.id, user.id)
    assert gateway.compute_path(db_session_fixture, note) == "/docs/nested/archive/note.txt"

    with pytest.raises(InvalidOperationError):
        gateway.move_file(db_session_fixture, docs.id, docs.id, user.id)
    with pytest.raises(InvalidOperationError):
        gateway.move_file(db_session_fixture, docs.id, nested.id, user.id)
    with pytest.raises(InvalidOperationError):
        gateway.move_file(db_session_fixture, docs.id, note.id, user.id)

    gateway.create_file(db_session_fixture, owner_id=user.id, name="note.txt", content="dup")
    with pytest.raises(ConflictError):
        gateway.move_file(db_session_fixture, note.id, None, user.id)


def test_delete_folder_removes_subtree_and_objects(db_session_fixture, object_store, make_user):
    user = make_user()
    gateway = StorageGateway(object_store, inline_max_bytes=4)
    docs = gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")
    sub = gateway.create_folder(db_session_fixture, owner_id=user.id, name="sub", parent_id=docs.id)
    inline = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="a.txt", data=b"a", parent_id=docs.id)
    external = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="b.txt", data=b"external body", parent_id=sub.id)
    key = external.storage_key

    deleted = gateway.delete_file(db_session_fixture, docs.id, user.id)

    assert set(deleted) == {docs.id, sub.id, inline.id, external.id}
    for record_id in deleted:
        with pytest.raises(NotFoundError):
            gateway.get_file(db_session_fixture, record_id, user.id)
    with pytest.raises(UpstreamFailure):
        object_store.get(key)
    assert gateway.get_user_storage_usage(db_session_fixture, user.id) == 0


def test_delete_external_file_removes_record_and_object(db_session_fixture, object_store, make_user):
    user = make_user()
    gateway = StorageGateway(object_store, inline_max_bytes=0)
    record = gateway.upload_large_file(db_session_fixture, owner_id=user.id, data=b"x" * 64, file_name="video.mp4")
    key = record.storage_key

    gateway.delete_file(db_session_fixture, record.id, user.id)

    with pytest.raises(NotFoundError):
        gateway.get_file(db_session_fixture, record.id, user.id)
    with pytest.raises(UpstreamFailure):
        object_store.get(key)


class _FlakyDeleteStore(LocalObjectStore):
    """第 ``fail_on`` 次删除抛出 ``UpstreamFailure``，其余照常执行。"""

    def __init__(self, root, fail_on: int) -> None:
        super().__init__(root)
        self.fail_on = fail_on
        self.delete_calls = 0

    def delete(self, key: str) -> None:
        self.delete_calls += 1
        if self.delete_calls == self.fail_on:
            raise UpstreamFailure("对象删除失败", {"key": key})
        super().delete(key)


def test_delete_commits_metadata_even_if_an_object_delete_fails(db_session_fixture, make_user, tmp_path):
    user = make_user()
    store = _FlakyDeleteStore(tmp_path / "flaky", fail_on=2)
    gateway = StorageGateway(store, inline_max_bytes=0)
    folder = gateway.create_folder(db_session_fixture, owner_id=user.id, name="media")
    first = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="a.bin", data=b"aaa", parent_id=folder.id)
    second = gateway.store_content(db_session_fixture, owner_id=user.id, file_name="b.bin", data=b"bbb", parent_id=folder.id)

    deleted = gateway.delete_file(db_session_fixture, folder.id, user.id)

    assert set(deleted) == {folder.id, first.id, second.id}
    assert store.delete_calls == 2
    for record_id in deleted:
        with pytest.raises(NotFoundError):
            gateway.get_file(db_session_fixture, record_id, user.id)
    assert gateway.get_root_files(db_session_fixture, user.id) == []
    assert gateway.get_user_storage_usage(db_session_fixture, user.id) == 0
    # 只有删除失败的那一个对象留下
    assert len([path for path in (tmp_path / "flaky").rglob("*") if path.is_file()]) == 1


def test_save_with_new_storage_key_removes_replaced_object(db_session_fixture, object_store, make_user):
    user = make_user()
    gateway = StorageGateway(object_store, inline_max_bytes=0, clock=lambda: 1)
    original = gateway.upload_large_file(db_session_fixture, owner_id=user.id, data=b"old", file_name="v.mp4")
    old_key = original.storage_key
    new_key = f"users/{user.id}/2_v.mp4"
    object_store.put(new_key, b"new", "video/mp4")

    result = gateway.save_file(
        db_session_fixture, owner_id=user.id, name="v.mp4", size=3, path="/v.mp4", storage_key=new_key
    )

    assert result.outcome == SaveOutcomeEnum.UPDATED
    assert result.record.id == original.id
    assert result.record.storage_key == new_key
    with pytest.raises(UpstreamFailure):
        object_store.get(old_key)
    assert gateway.download_file(db_session_fixture, original.id, user.id)[0] == b"new"

    # 键不变时不删除对象
    gateway.save_file(db_session_fixture, owner_id=user.id, name="v.mp4", size=3, path="/v.mp4", storage_key=new_key)
    assert object_store.get(new_key) == b"new"

    gateway.delete_file(db_session_fixture, original.id, user.id)
    with pytest.raises(UpstreamFailure):
        object_store.get(new_key)


def test_usage_counts_only_files(db_session_fixture, gateway, make_user):
    user = make_user()
    gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")
    gateway.create_file(db_session_fixture, owner_id=user.id, name="a.txt", content="12345")
    gateway.create_file(db_session_fixture, owner_id=user.id, name="b.bin", size=100, storage_key="users/x/1_b.bin")

    assert gateway.get_user_storage_usage(db_session_fixture, user.id) == 105

    report = gateway.usage_report(db_session_fixture, user.id, "FREE")
    assert report["usage"] == 105
    assert report["limit_in_gb"] == 5
    assert report["plan"] == "FREE"
    assert report["percentage"] == 0.0


def test_folder_record_has_no_content(db_session_fixture, gateway, make_user):
    user = make_user()
    folder = gateway.create_folder(db_session_fixture, owner_id=user.id, name="docs")
    stored = db_session_fixture.get(FileRecord, folder.id)
    assert stored.content is None and stored.storage_key is None and stored.size_bytes == 0
    with pytest.raises(InvalidOperationError):
        gateway.create_file(db_session_fixture, owner_id=user.id, name="bad", kind="folder", content="x")


def test_local_store_fixture_is_isolated(object_store):
    assert isinstance(object_store, LocalObjectStore)
