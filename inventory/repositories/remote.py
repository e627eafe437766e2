# inventory/repositories/remote.py
"""Product and image repositories over the hosted table API."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from inventory.errors import BackendError, NotFoundError
from inventory.repositories.images import Encoder, ImageMetaData, prepare_image
from inventory.repositories.products import ProductData, round_half_up
from inventory.schemas.image import ImageOut
from inventory.schemas.product import ProductOut, StatsOut, validate_product
from inventory.utils.images import encode_thumbnail
from inventory.utils.remote_client import RemoteTableClient, eq, in_

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = ("product_name", "company_name", "product_quality")
NEWEST_FIRST = "created_at.desc,id.desc"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RemoteProductRepository:
    def __init__(self, client: RemoteTableClient):
        self.client = client

    def _attach_fields(self, rows: List[Dict[str, Any]]) -> List[ProductOut]:
        if not rows:
            return []
        fields = self.client.select(
            "dynamic_fields",
            filters={"product_id": in_(r["id"] for r in rows)},
            order="field_order.asc",
        )
        by_product: Dict[int, List[Dict[str, Any]]] = {}
        for f in fields:
            by_product.setdefault(f["product_id"], []).append(f)
        return [ProductOut.model_validate({**r, "dynamic_fields": by_product.get(r["id"], [])}) for r in rows]

    def _write_dynamic_fields(self, product_id: int, fields) -> int:
        written = 0
        for index, field in enumerate(fields, start=1):
            if field is None or not field.is_storable():
                continue
            try:
                self.client.insert(
                    "dynamic_fields",
                    [{
                        "product_id": product_id,
                        "field_name": field.stored_name(),
                        "field_value": field.stored_value(),
                        "field_type": field.stored_type(),
                        "field_order": index,
                    }],
                )
                written += 1
            except BackendError as e:
                logger.warning("Failed to save dynamic field %r: %s", field.name, e)
        return written

    def add_product(self, data: ProductData) -> ProductOut:
        payload = validate_product(data)
        rows = self.client.insert("products", [payload.product_values()])
        product_id = rows[0]["id"]
        self._write_dynamic_fields(product_id, payload.dynamic_fields)
        logger.info("Product %s added", product_id)
        return self.get_by_id(product_id)

    def update_product(self, product_id: int, data: ProductData) -> Optional[ProductOut]:
        payload = validate_product(data)
        existing = self.get_by_id(product_id)
        if existing is None:
            logger.info("Product %s not found, nothing updated", product_id)
            return None

        values = payload.product_values()
        values["image_id"] = payload.image_id or existing.image_id
        values["updated_at"] = _now()
        self.client.update("products", {"id": eq(product_id)}, values)
        self.client.delete("dynamic_fields", {"product_id": eq(product_id)})
        self._write_dynamic_fields(product_id, payload.dynamic_fields)
        return self.get_by_id(product_id)

    def delete_product(self, product_id: int) -> bool:
        self.client.delete("images", {"product_id": eq(product_id)})
        self.client.delete("dynamic_fields", {"product_id": eq(product_id)})
        self.client.delete("products", {"id": eq(product_id)})
        logger.info("Deleted product %s", product_id)
        return True

    def clear(self) -> None:
        for table in ("images", "dynamic_fields", "products"):
            self.client.delete(table, {"id": "not.is.null"})

    def get_by_id(self, product_id: int) -> Optional[ProductOut]:
        rows = self.client.select("products", filters={"id": eq(product_id)})
        if not rows:
            return None
        return self._attach_fields(rows)[0]

    def get_all(self) -> List[ProductOut]:
        return self._attach_fields(self.client.select("products", order=NEWEST_FIRST))

    def search(self, term: str) -> List[ProductOut]:
        rows = self.client.select("products", order=NEWEST_FIRST, search=(SEARCH_COLUMNS, term))
        return self._attach_fields(rows)

    def get_stats(self) -> StatsOut:
        rows = self.client.select("products", columns="company_name,retail_price")
        images = self.client.select("images", columns="id")
        prices = [r["retail_price"] for r in rows if r.get("retail_price") is not None]
        return StatsOut(
            total_products=len(rows),
            total_companies=len({r["company_name"] for r in rows}),
            avg_price=round_half_up(sum(prices) / len(prices)) if prices else 0,
            total_images=len(images),
        )


class RemoteImageRepository:
    def __init__(self, client: RemoteTableClient, encoder: Encoder = encode_thumbnail, path_prefix: str = "sale-data"):
        self.client = client
        self.encoder = encoder
        self.path_prefix = path_prefix

    def save_image(self, file_bytes: bytes, meta: ImageMetaData, product_id: int) -> ImageOut:
        row = prepare_image(file_bytes, meta, product_id, self.encoder, self.path_prefix)
        if not self.client.select("products", filters={"id": eq(product_id)}, columns="id"):
            raise NotFoundError(f"Product {product_id} not found")

        self.client.delete("images", {"product_id": eq(product_id)})
        saved = self.client.insert("images", [row])[0]
        self.client.update("products", {"id": eq(product_id)}, {"image_id": row["image_id"]})
        logger.info("Image saved for product %s: %s", product_id, row["file_name"])
        return ImageOut.model_validate(saved)

    def get_by_product_id(self, product_id: int) -> Optional[ImageOut]:
        rows = self.client.select("images", filters={"product_id": eq(product_id)})
        return ImageOut.model_validate(rows[0]) if rows else None

    def get_by_image_id(self, image_id: str) -> Optional[ImageOut]:
        rows = self.client.select("images", filters={"image_id": eq(image_id)})
        return ImageOut.model_validate(rows[0]) if rows else None

    def delete_image(self, product_id: int) -> int:
        existing = self.client.select("images", filters={"product_id": eq(product_id)}, columns="id")
        self.client.delete("images", {"product_id": eq(product_id)})
        self.client.update("products", {"id": eq(product_id)}, {"image_id": None})
        return len(existing)
