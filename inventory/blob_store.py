# inventory/blob_store.py
"""
Persistent byte-blob stores for the serialized database image.

The embedded backend keeps the whole SQLite database in memory and writes
its serialized image to one of these stores after every mutation. The image
is addressed by a fixed key; the stores do not interpret the bytes.

Usage:
    store = ObjectBlobStore("data/inventory-objects.sqlite3")
    store.put(image)
    image = store.get()
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from filelock import FileLock
from sqlalchemy import Column, LargeBinary, MetaData, String, Table, create_engine, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from inventory.config import Settings
from inventory.errors import BackendError

logger = logging.getLogger(__name__)


class BlobStore:
    """get/put/delete of a single opaque blob."""

    def get(self) -> Optional[bytes]:
        raise NotImplementedError

    def put(self, data: bytes) -> None:
        raise NotImplementedError

    def delete(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class MemoryBlobStore(BlobStore):
    def __init__(self, data: Optional[bytes] = None):
        self.data = data

    def get(self) -> Optional[bytes]:
        return self.data

    def put(self, data: bytes) -> None:
        self.data = bytes(data)

    def delete(self) -> None:
        self.data = None


class NullBlobStore(BlobStore):
    """Used with the remote backend, where every write is already durable."""

    def get(self) -> Optional[bytes]:
        return None

    def put(self, data: bytes) -> None:
        pass

    def delete(self) -> None:
        pass


class FileBlobStore(BlobStore):
    """
    Keeps the blob in a single file. Writes go to a temp file in the same
    directory and replace the target, under a file lock.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.lock = FileLock(str(self.path) + ".lock")

    def get(self) -> Optional[bytes]:
        with self.lock:
            if not self.path.exists():
                return None
            try:
                return self.path.read_bytes()
            except OSError as e:
                logger.error("Failed to read blob file %s: %s", self.path, e)
                raise BackendError(f"Cannot read {self.path}") from e

    def put(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.lock:
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, self.path)
            except OSError as e:
                if tmp_name:
                    Path(tmp_name).unlink(missing_ok=True)
                logger.error("Failed to write blob file %s: %s", self.path, e)
                raise BackendError(f"Cannot write {self.path}") from e

    def delete(self) -> None:
        with self.lock:
            self.path.unlink(missing_ok=True)


class ObjectBlobStore(BlobStore):
    """
    Structured object store: records of shape {id, data} in a key/value table
    of a dedicated SQLite file. The blob lives under a single fixed id.
    """

    def __init__(self, path: Path, store_name: str = "sqlite-data", key: str = "database"):
        self.path = Path(path)
        self.key = key
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = create_engine(f"sqlite:///{self.path}")
        metadata = MetaData()
        self.table = Table(
            store_name,
            metadata,
            Column("id", String, primary_key=True),
            Column("data", LargeBinary, nullable=False),
        )
        metadata.create_all(self.engine)

    def get(self) -> Optional[bytes]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(self.table.c.data).where(self.table.c.id == self.key)
                ).first()
        except SQLAlchemyError as e:
            logger.error("Error loading blob %r from object store: %s", self.key, e)
            raise BackendError("Object store read failed") from e
        return bytes(row.data) if row else None

    def put(self, data: bytes) -> None:
        stmt = sqlite_insert(self.table).values(id=self.key, data=bytes(data))
        stmt = stmt.on_conflict_do_update(index_elements=[self.table.c.id], set_={"data": stmt.excluded.data})
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Error saving blob %r to object store: %s", self.key, e)
            raise BackendError("Object store write failed") from e

    def delete(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(self.table.delete().where(self.table.c.id == self.key))
        except SQLAlchemyError as e:
            logger.error("Error deleting blob %r: %s", self.key, e)
            raise BackendError("Object store delete failed") from e

    def close(self) -> None:
        self.engine.dispose()


class LegacyTextBlobStore(BlobStore):
    """
    Superseded representation: the image as comma separated decimal byte
    values ("83,81,76,...") in a text file. Only read and deleted.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def get(self) -> Optional[bytes]:
        if not self.path.exists():
            return None
        text = self.path.read_text(encoding="utf-8").strip()
        if not text:
            return None
        return bytes(int(v) for v in text.split(","))

    def put(self, data: bytes) -> None:
        raise BackendError("Legacy text storage is read-only")

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)


class MigratingBlobStore(BlobStore):
    """
    Reads from `primary`; when it holds nothing, moves the legacy text image
    into it once and removes the legacy entry.
    """

    def __init__(self, primary: BlobStore, legacy: BlobStore):
        self.primary = primary
        self.legacy = legacy

    def get(self) -> Optional[bytes]:
        data = self.primary.get()
        if data is not None:
            return data
        try:
            data = self.legacy.get()
        except (OSError, ValueError) as e:
            logger.error("Error migrating database image from legacy storage: %s", e)
            return None
        if data is None:
            return None

        logger.info("Migrating database image from legacy text storage (%d bytes)", len(data))
        self.primary.put(data)
        self.legacy.delete()
        logger.info("Legacy image migration completed")
        return data

    def put(self, data: bytes) -> None:
        self.primary.put(data)

    def delete(self) -> None:
        self.primary.delete()

    def close(self) -> None:
        self.primary.close()


def build_blob_store(settings: Settings) -> BlobStore:
    """Blob store for the configured backend and medium."""
    if settings.STORAGE_BACKEND == "remote":
        return NullBlobStore()
    if settings.BLOB_STORE == "memory":
        return MemoryBlobStore()

    data_dir = Path(settings.DATA_DIR)
    if settings.BLOB_STORE == "file":
        primary: BlobStore = FileBlobStore(data_dir / settings.BLOB_FILE)
    else:
        primary = ObjectBlobStore(
            data_dir / settings.OBJECT_STORE_FILE,
            store_name=settings.OBJECT_STORE_NAME,
            key=settings.BLOB_KEY,
        )
    return MigratingBlobStore(primary, LegacyTextBlobStore(data_dir / settings.LEGACY_BLOB_FILE))
