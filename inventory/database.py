# inventory/database.py
import functools
import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from inventory.blob_store import BlobStore

logger = logging.getLogger(__name__)

Base = declarative_base()


def _new_connection() -> sqlite3.Connection:
    # isolation_level=None: transactions are started explicitly by the "begin" listener,
    # which makes DDL and SAVEPOINTs transactional under pysqlite
    conn = sqlite3.connect(":memory:", check_same_thread=False, isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def _check_image(conn: sqlite3.Connection) -> None:
    # deserialize() accepts any bytes; the header is only checked on first read
    conn.execute("SELECT count(*) FROM sqlite_master").fetchone()


def validate_image(data: bytes) -> bool:
    """True when `data` is a readable SQLite database image."""
    if not data:
        return False
    conn = sqlite3.connect(":memory:")
    try:
        conn.deserialize(data)
        _check_image(conn)
        return True
    except sqlite3.Error as e:
        logger.warning("Rejected database image: %s", e)
        return False
    finally:
        conn.close()


class StoreHandle:
    """
    Live handle to the embedded database.

    The database lives in memory on a single SQLite connection shared by the
    engine (StaticPool). Its serialized image is loaded from the blob store by
    open() and written back by persist() after every mutation.
    """

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store
        self._raw: Optional[sqlite3.Connection] = None
        self.engine = None
        self.SessionLocal = None
        # One connection serves every thread, so each unit of work holds this
        self.lock = threading.RLock()

    def open(self) -> "StoreHandle":
        image = self.blob_store.get()
        raw = _new_connection()
        if image:
            try:
                raw.deserialize(image)
                _check_image(raw)
                raw.execute("PRAGMA foreign_keys = ON")
                logger.info("Existing database loaded (%d bytes)", len(image))
            except sqlite3.Error as e:
                logger.error("Stored database image is unreadable, creating a new database: %s", e)
                raw.close()
                raw = _new_connection()
        else:
            logger.info("No stored database image, creating a new database")

        self._raw = raw
        self.engine = create_engine("sqlite://", creator=lambda: self._raw, poolclass=StaticPool)
        event.listen(self.engine, "connect", _on_connect)
        event.listen(self.engine, "begin", _on_begin)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        if image:
            self.verify_images()
        return self

    def session(self) -> Session:
        return self.SessionLocal()

    def connect(self) -> Connection:
        return self.engine.connect()

    def serialize(self) -> bytes:
        with self.lock:
            return self._raw.serialize()

    def load_image(self, data: bytes) -> None:
        """Replace the live database content with `data` (validate first)."""
        with self.lock:
            self._raw.deserialize(data)
            self._raw.execute("PRAGMA foreign_keys = ON")
        logger.info("Database image replaced (%d bytes)", len(data))

    def persist(self) -> None:
        with self.lock:
            data = self.serialize()
            self.blob_store.put(data)
            logger.debug("Database saved (%d bytes)", len(data))
            self.verify_images()

    def verify_images(self) -> None:
        """Log how many images the image holds and a sample of payload sizes."""
        try:
            count = self._raw.execute("SELECT COUNT(*) FROM images").fetchone()[0]
            logger.debug("Database contains %d stored images", count)
            if count:
                sample = self._raw.execute(
                    "SELECT product_id, LENGTH(base64_data) FROM images LIMIT 5"
                ).fetchall()
                logger.debug("Sample image data lengths: %s", sample)
        except sqlite3.Error as e:
            logger.debug("Image verification skipped: %s", e)

    @contextmanager
    def foreign_keys_disabled(self) -> Iterator[None]:
        # the pragma is a no-op inside a transaction, so callers enter this first
        self._raw.execute("PRAGMA foreign_keys = OFF")
        try:
            yield
        finally:
            self._raw.execute("PRAGMA foreign_keys = ON")

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
        if self._raw is not None:
            self._raw.close()
            self._raw = None


def _on_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


def locked(method):
    """Run a repository method while holding its store's lock (no-op without a store)."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        store = getattr(self, "store", None)
        if store is None:
            return method(self, *args, **kwargs)
        with store.lock:
            return method(self, *args, **kwargs)

    return wrapper
