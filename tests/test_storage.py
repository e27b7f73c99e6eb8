"""
Tests for the image row storage service.
"""

from datetime import datetime

import pytest

from imagedrop.config import DatabaseCredentials, ServiceConfig
from imagedrop.database import build_engine
from imagedrop.errors import DatabaseError, FileSystemError
from imagedrop.storage import StorageService
from tests.helpers import make_settings, stored_paths


@pytest.fixture
def unbootstrapped_storage(tmp_path):
    """Storage over a database without the image table."""
    settings = make_settings(tmp_path)
    config = ServiceConfig(
        database=DatabaseCredentials(user="u", password="p", server="s", database="d")
    )
    engine = build_engine(config, settings)
    yield StorageService(engine)
    engine.dispose()


class TestListAll:
    def test_empty_store(self, storage):
        assert storage.list_all() == []

    def test_lists_in_insert_order(self, storage):
        first = storage.insert("/uploads/images/1.png")
        second = storage.insert("/uploads/images/2.png")

        records = storage.list_all()

        assert [r.id for r in records] == [first, second]
        assert [r.path for r in records] == [
            "/uploads/images/1.png",
            "/uploads/images/2.png",
        ]
        assert all(isinstance(r.uploaded_at, datetime) for r in records)

    def test_failure_is_database_error(self, unbootstrapped_storage):
        with pytest.raises(DatabaseError) as exc_info:
            unbootstrapped_storage.list_all()

        assert exc_info.value.message == "DB fetch failed"
        assert exc_info.value.details


class TestInsert:
    def test_ids_are_distinct(self, storage):
        ids = [storage.insert(f"/uploads/images/{n}.png") for n in range(5)]

        assert len(set(ids)) == 5

    def test_failure_is_database_error(self, unbootstrapped_storage):
        with pytest.raises(DatabaseError) as exc_info:
            unbootstrapped_storage.insert("/uploads/images/a.png")

        assert exc_info.value.message == "DB insert failed"


class TestFindAndRemove:
    def test_removes_row_and_returns_path(self, storage, engine):
        image_id = storage.insert("/uploads/images/a.png")

        assert storage.find_and_remove(image_id) == "/uploads/images/a.png"
        assert stored_paths(engine) == []

    def test_missing_row(self, storage, engine):
        storage.insert("/uploads/images/a.png")

        assert storage.find_and_remove(999) is None
        assert stored_paths(engine) == ["/uploads/images/a.png"]

    def test_second_delete_sees_nothing(self, storage):
        image_id = storage.insert("/uploads/images/a.png")

        storage.find_and_remove(image_id)
        assert storage.find_and_remove(image_id) is None

    def test_hook_runs_before_delete(self, storage, engine):
        image_id = storage.insert("/uploads/images/a.png")
        seen = []

        def hook(path):
            seen.append((path, list(stored_paths(engine))))

        storage.find_and_remove(image_id, before_delete=hook)

        assert seen == [("/uploads/images/a.png", ["/uploads/images/a.png"])]

    def test_hook_failure_keeps_row(self, storage, engine):
        image_id = storage.insert("/uploads/images/a.png")

        def hook(path):
            raise FileSystemError("File delete failed")

        with pytest.raises(FileSystemError):
            storage.find_and_remove(image_id, before_delete=hook)

        assert stored_paths(engine) == ["/uploads/images/a.png"]

    def test_failure_is_database_error(self, unbootstrapped_storage):
        with pytest.raises(DatabaseError) as exc_info:
            unbootstrapped_storage.find_and_remove(1)

        assert exc_info.value.message == "Delete failed"
