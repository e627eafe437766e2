# inventory/transfer.py
"""
Whole-inventory export and import.

The embedded variant moves the raw SQLite image; the remote variant (and
anyone asking for it explicitly) moves a JSON document of products.
"""
import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from inventory.database import StoreHandle, locked, validate_image
from inventory.errors import BackendError, InventoryError, ValidationError
from inventory.schema_manager import SchemaManager
from inventory.schemas.product import ProductInput, validate_product
from inventory.schemas.transfer import ExportDocument

logger = logging.getLogger(__name__)

DATABASE_CONTENT_TYPE = "application/octet-stream"
JSON_CONTENT_TYPE = "application/json"


@dataclass
class ExportArtifact:
    filename: str
    content_type: str
    payload: bytes


def _export_name(extension: str) -> str:
    return f"inventory-export-{date.today().isoformat()}.{extension}"


class TransferGateway:
    def __init__(self, products, store: Optional[StoreHandle] = None, schema: Optional[SchemaManager] = None):
        self.products = products
        self.store = store
        self.schema = schema

    @property
    def embedded(self) -> bool:
        return self.store is not None

    # ---- export ----

    def export(self) -> ExportArtifact:
        return self.export_database() if self.embedded else self.export_json()

    @locked
    def export_database(self) -> ExportArtifact:
        if not self.embedded:
            raise BackendError("Database export needs the embedded store")
        data = self.store.serialize()
        logger.info("Exported database image (%d bytes)", len(data))
        return ExportArtifact(_export_name("db"), DATABASE_CONTENT_TYPE, data)

    @locked
    def export_json(self) -> ExportArtifact:
        products = self.products.get_all()
        document = ExportDocument(
            products=[p.model_dump(mode="json") for p in products],
            export_date=datetime.now(timezone.utc),
        )
        payload = document.model_dump_json(by_alias=True, indent=2).encode("utf-8")
        logger.info("Exported %d products as JSON", len(products))
        return ExportArtifact(_export_name("json"), JSON_CONTENT_TYPE, payload)

    # ---- import ----

    def import_artifact(self, payload: Union[bytes, str]) -> bool:
        if self.embedded:
            if isinstance(payload, str):
                payload = payload.encode("utf-8")
            return self.import_database(payload)
        return self.import_json(payload)

    @locked
    def import_database(self, data: bytes) -> bool:
        """Replace the live database with an exported image. The old image is kept on failure."""
        if not self.embedded:
            raise BackendError("Database import needs the embedded store")
        if not validate_image(data):
            logger.error("Import rejected: not a database image")
            return False

        snapshot = self.store.serialize()
        try:
            self.store.load_image(data)
            if self.schema is not None:
                self.schema.ensure_schema()
            self.store.persist()
        except BackendError as e:
            logger.error("Import failed, restoring previous database: %s", e)
            self._restore(snapshot)
            return False
        logger.info("Database imported successfully (%d bytes)", len(data))
        return True

    @locked
    def import_json(self, payload: Union[bytes, str]) -> bool:
        """
        Replace every product with the ones in an exported JSON document.
        Nothing is touched unless the whole document validates.
        """
        try:
            document = ExportDocument.model_validate(json.loads(payload))
            inputs: List[ProductInput] = [
                validate_product(item).model_copy(update={"image_id": None})
                for item in document.products
            ]
        except (ValueError, PydanticValidationError, ValidationError) as e:
            logger.error("Import rejected: %s", e)
            return False

        snapshot = self.store.serialize() if self.embedded else None
        try:
            self.products.clear()
            for item in inputs:
                self.products.add_product(item)
        except InventoryError as e:
            if snapshot is None:
                logger.error("Import failed part way, remote data may be incomplete: %s", e)
            else:
                logger.error("Import failed, restoring previous database: %s", e)
                self._restore(snapshot)
            return False

        logger.info("Imported %d products", len(inputs))
        return True

    def _restore(self, snapshot: bytes) -> None:
        self.store.load_image(snapshot)
        self.store.persist()
