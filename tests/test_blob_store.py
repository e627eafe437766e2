# tests/test_blob_store.py
import pytest

from inventory.blob_store import (
    FileBlobStore,
    LegacyTextBlobStore,
    MemoryBlobStore,
    MigratingBlobStore,
    NullBlobStore,
    ObjectBlobStore,
    build_blob_store,
)
from inventory.config import Settings
from inventory.errors import BackendError


def test_memory_store_roundtrip():
    store = MemoryBlobStore()
    assert store.get() is None
    store.put(b"abc")
    assert store.get() == b"abc"
    store.delete()
    assert store.get() is None


def test_file_store_failed_write_leaves_no_temp_file(tmp_path, monkeypatch):
    store = FileBlobStore(tmp_path / "db.bin")
    store.put(b"first")

    def fail(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr("inventory.blob_store.os.replace", fail)

    with pytest.raises(BackendError):
        store.put(b"second")
    assert list(tmp_path.glob("*.tmp")) == []
    assert (tmp_path / "db.bin").read_bytes() == b"first"


def test_null_store_keeps_nothing():
    store = NullBlobStore()
    store.put(b"abc")
    assert store.get() is None


def test_file_store_replaces_content(tmp_path):
    store = FileBlobStore(tmp_path / "db.bin")
    assert store.get() is None
    store.put(b"first")
    store.put(b"second")
    assert store.get() == b"second"
    assert (tmp_path / "db.bin").read_bytes() == b"second"
    store.delete()
    assert store.get() is None
    store.delete()


def test_object_store_uses_fixed_key(tmp_path):
    path = tmp_path / "objects.sqlite3"
    store = ObjectBlobStore(path, store_name="sqlite-data", key="database")
    store.put(b"\x00\x01image")
    store.put(b"\x00\x02image")
    assert store.get() == b"\x00\x02image"
    store.close()

    # another key in the same object store is independent
    other = ObjectBlobStore(path, store_name="sqlite-data", key="other")
    assert other.get() is None
    other.close()

    reopened = ObjectBlobStore(path)
    assert reopened.get() == b"\x00\x02image"
    reopened.delete()
    assert reopened.get() is None
    reopened.close()


def test_legacy_text_store_reads_decimal_bytes(tmp_path):
    path = tmp_path / "legacy.txt"
    path.write_text("83,81,76,0,255", encoding="utf-8")
    store = LegacyTextBlobStore(path)
    assert store.get() == bytes([83, 81, 76, 0, 255])
    with pytest.raises(BackendError):
        store.put(b"x")
    store.delete()
    assert not path.exists()
    assert store.get() is None


def test_legacy_image_migrates_once(tmp_path):
    legacy_path = tmp_path / "legacy.txt"
    legacy_path.write_text("1,2,3", encoding="utf-8")
    primary = MemoryBlobStore()
    store = MigratingBlobStore(primary, LegacyTextBlobStore(legacy_path))

    assert store.get() == b"\x01\x02\x03"
    assert primary.get() == b"\x01\x02\x03"
    assert not legacy_path.exists()

    store.put(b"new")
    assert store.get() == b"new"


def test_primary_image_wins_over_legacy(tmp_path):
    legacy_path = tmp_path / "legacy.txt"
    legacy_path.write_text("1,2,3", encoding="utf-8")
    store = MigratingBlobStore(MemoryBlobStore(b"current"), LegacyTextBlobStore(legacy_path))
    assert store.get() == b"current"
    assert legacy_path.exists()


def test_broken_legacy_image_means_no_prior_image(tmp_path):
    legacy_path = tmp_path / "legacy.txt"
    legacy_path.write_text("1,2,not-a-number", encoding="utf-8")
    primary = MemoryBlobStore()
    store = MigratingBlobStore(primary, LegacyTextBlobStore(legacy_path))
    assert store.get() is None
    assert primary.get() is None


def test_build_blob_store_by_settings(tmp_path):
    assert isinstance(build_blob_store(Settings(STORAGE_BACKEND="remote")), NullBlobStore)
    assert isinstance(build_blob_store(Settings(BLOB_STORE="memory")), MemoryBlobStore)

    store = build_blob_store(Settings(BLOB_STORE="file", DATA_DIR=tmp_path))
    assert isinstance(store, MigratingBlobStore)
    assert isinstance(store.primary, FileBlobStore)
    store.put(b"x")
    assert (tmp_path / "inventory-database.db").read_bytes() == b"x"
