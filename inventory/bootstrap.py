# inventory/bootstrap.py
import logging
from dataclasses import dataclass
from functools import partial
from typing import Optional

from fastapi import Request

from inventory.blob_store import BlobStore, build_blob_store
from inventory.config import Settings, get_settings
from inventory.database import StoreHandle
from inventory.errors import BackendError
from inventory.repositories.images import ImageRepository
from inventory.repositories.products import ProductRepository
from inventory.repositories.remote import RemoteImageRepository, RemoteProductRepository
from inventory.schema_manager import SchemaManager
from inventory.transfer import TransferGateway
from inventory.utils.images import encode_thumbnail
from inventory.utils.remote_client import RemoteTableClient

logger = logging.getLogger(__name__)


@dataclass
class Inventory:
    """Everything the API needs, wired for one storage backend."""

    products: object
    images: object
    transfer: TransferGateway
    store: Optional[StoreHandle] = None
    schema: Optional[SchemaManager] = None
    client: Optional[RemoteTableClient] = None

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store.blob_store.close()
        if self.client is not None:
            self.client.close()
        logger.info("Inventory closed")


def open_embedded(
    blob_store: BlobStore,
    image_max_size: int = 300,
    image_quality: int = 80,
    path_prefix: str = "sale-data",
) -> Inventory:
    store = StoreHandle(blob_store).open()
    schema = SchemaManager(store)
    report = schema.ensure_schema()
    logger.info("Schema at revision %s (migrated: %s)", report.to_revision, report.migrated)

    products = ProductRepository(store)
    encoder = partial(encode_thumbnail, max_size=image_max_size, quality=image_quality)
    images = ImageRepository(store, encoder=encoder, path_prefix=path_prefix)
    transfer = TransferGateway(products, store=store, schema=schema)
    return Inventory(products=products, images=images, transfer=transfer, store=store, schema=schema)


def open_remote(
    client: RemoteTableClient,
    image_max_size: int = 300,
    image_quality: int = 80,
    path_prefix: str = "sale-data",
) -> Inventory:
    products = RemoteProductRepository(client)
    encoder = partial(encode_thumbnail, max_size=image_max_size, quality=image_quality)
    images = RemoteImageRepository(client, encoder=encoder, path_prefix=path_prefix)
    return Inventory(products=products, images=images, transfer=TransferGateway(products), client=client)


def open_inventory(settings: Optional[Settings] = None) -> Inventory:
    """Open the configured backend: load the stored image and migrate it, or connect to the remote API."""
    settings = settings or get_settings()
    image_options = dict(
        image_max_size=settings.IMAGE_MAX_SIZE,
        image_quality=settings.IMAGE_QUALITY,
        path_prefix=settings.IMAGE_PATH_PREFIX,
    )

    if settings.STORAGE_BACKEND == "remote":
        if not settings.REMOTE_URL:
            raise BackendError("REMOTE_URL must be set for the remote backend")
        logger.info("Using remote backend at %s", settings.REMOTE_URL)
        client = RemoteTableClient(settings.REMOTE_URL, settings.REMOTE_API_KEY, settings.REMOTE_TIMEOUT)
        return open_remote(client, **image_options)

    if settings.BLOB_STORE != "memory":
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    logger.info("Using embedded backend (%s blob store)", settings.BLOB_STORE)
    return open_embedded(build_blob_store(settings), **image_options)


# Dependency
def get_inventory(request: Request) -> Inventory:
    return request.app.state.inventory
