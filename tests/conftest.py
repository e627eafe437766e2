# tests/conftest.py
import io
import sqlite3

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from inventory.blob_store import MemoryBlobStore
from inventory.bootstrap import open_embedded
from inventory.database import StoreHandle
from inventory.main import create_app


def widget_product(**overrides):
    """The reference product used across tests."""
    data = {
        "product_name": "Widget",
        "company_name": "Acme",
        "product_quality": "A",
        "quantity_bundle": 10,
        "purchase_price": 5.0,
        "wholesale_price": 7.0,
        "retail_price": 9.99,
    }
    data.update(overrides)
    return data


def legacy_image(*rows):
    """
    Serialized database in the superseded layout: a products table with
    name/category/master/mrp/dp columns plus a categories table.
    """
    conn = sqlite3.connect(":memory:")
    conn.executescript(
        """
        CREATE TABLE categories (id INTEGER PRIMARY KEY, name TEXT);
        CREATE TABLE products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT,
            category TEXT,
            gst REAL,
            master TEXT,
            "inner" INTEGER,
            mrp TEXT,
            dp REAL
        );
        """
    )
    conn.executemany(
        'INSERT INTO products (id, name, category, gst, master, "inner", mrp, dp) VALUES (?, ?, ?, ?, ?, ?, ?, ?)',
        rows,
    )
    conn.commit()
    data = conn.serialize()
    conn.close()
    return data


@pytest.fixture
def make_sample_jpeg_bytes():
    """
    Return a callable that generates JPEG bytes for tests that need image uploads.
    Usage: jpg = make_sample_jpeg_bytes(size=(200,200))
    """
    def _fn(size=(200, 200), color=(180, 120, 60), fmt="JPEG"):
        bio = io.BytesIO()
        im = Image.new("RGB", size, color)
        im.save(bio, format=fmt)
        bio.seek(0)
        return bio.read()
    return _fn


@pytest.fixture
def blob():
    return MemoryBlobStore()


@pytest.fixture
def store(blob):
    handle = StoreHandle(blob).open()
    yield handle
    handle.close()


@pytest.fixture
def inventory(blob):
    inv = open_embedded(blob)
    yield inv
    inv.close()


@pytest.fixture
def client(inventory):
    return TestClient(create_app(inventory))
