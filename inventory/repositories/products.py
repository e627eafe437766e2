# inventory/repositories/products.py
import logging
import math
from typing import Any, List, Mapping, Optional, Sequence, Union

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory.database import StoreHandle, locked
from inventory.errors import BackendError, PartialFailure
from inventory.models import DynamicField, Product, ProductImage
from inventory.schemas.product import (
    DynamicFieldInput,
    ProductInput,
    ProductOut,
    StatsOut,
    validate_product,
)

logger = logging.getLogger(__name__)

ProductData = Union[ProductInput, Mapping[str, Any]]


def round_half_up(value: Optional[float]) -> int:
    if not value:
        return 0
    return int(math.floor(value + 0.5))


class ProductRepository:
    """CRUD over products and their dynamic fields on the embedded store."""

    def __init__(self, store: StoreHandle):
        self.store = store

    # ---- writes ----

    @locked
    def add_product(self, data: ProductData) -> ProductOut:
        payload = validate_product(data)
        try:
            with self.store.session() as db:
                product = Product(**payload.product_values())
                db.add(product)
                db.flush()
                product_id = product.id
                self._write_dynamic_fields(db, product_id, payload.dynamic_fields)
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Error adding product: %s", e)
            raise BackendError("Could not add product") from e

        self.store.persist()
        logger.info("Product %s added", product_id)
        return self.get_by_id(product_id)

    @locked
    def update_product(self, product_id: int, data: ProductData) -> Optional[ProductOut]:
        payload = validate_product(data)
        try:
            with self.store.session() as db:
                product = db.query(Product).filter(Product.id == product_id).first()
                if not product:
                    logger.info("Product %s not found, nothing updated", product_id)
                    return None

                values = payload.product_values()
                # Keep the current image unless a new reference is supplied
                values["image_id"] = payload.image_id or product.image_id
                for key, value in values.items():
                    setattr(product, key, value)
                product.updated_at = func.current_timestamp()

                db.query(DynamicField).filter(DynamicField.product_id == product_id).delete(
                    synchronize_session=False
                )
                db.expire(product, ["dynamic_fields"])
                self._write_dynamic_fields(db, product_id, payload.dynamic_fields)
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Error updating product %s: %s", product_id, e)
            raise BackendError("Could not update product") from e

        self.store.persist()
        return self.get_by_id(product_id)

    @locked
    def delete_product(self, product_id: int) -> bool:
        """Remove the product with its image and fields. Deleting a missing id is fine."""
        try:
            with self.store.session() as db:
                # Explicit, so stores without enforced cascades are cleaned as well
                images = db.query(ProductImage).filter(ProductImage.product_id == product_id).delete(
                    synchronize_session=False
                )
                fields = db.query(DynamicField).filter(DynamicField.product_id == product_id).delete(
                    synchronize_session=False
                )
                deleted = db.query(Product).filter(Product.id == product_id).delete(synchronize_session=False)
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Error deleting product %s: %s", product_id, e)
            raise BackendError("Could not delete product") from e

        logger.info(
            "Deleted product %s (%d rows, %d image records, %d dynamic fields)",
            product_id, deleted, images, fields,
        )
        self.store.persist()
        return True

    @locked
    def clear(self) -> None:
        """Delete every product, image and dynamic field."""
        try:
            with self.store.session() as db:
                db.query(ProductImage).delete(synchronize_session=False)
                db.query(DynamicField).delete(synchronize_session=False)
                db.query(Product).delete(synchronize_session=False)
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Error clearing products: %s", e)
            raise BackendError("Could not clear products") from e
        self.store.persist()

    def _write_dynamic_fields(
        self, db: Session, product_id: int, fields: Sequence[Optional[DynamicFieldInput]]
    ) -> int:
        written = 0
        for index, field in enumerate(fields, start=1):
            if field is None or not field.is_storable():
                continue
            try:
                self._insert_dynamic_field(db, product_id, index, field)
                written += 1
            except PartialFailure as e:
                # One bad field does not cost the product or the other fields
                logger.warning("Failed to save dynamic field %r: %s", field.name, e)
        return written

    def _insert_dynamic_field(self, db: Session, product_id: int, order: int, field: DynamicFieldInput) -> None:
        try:
            with db.begin_nested():
                db.add(
                    DynamicField(
                        product_id=product_id,
                        field_name=field.stored_name(),
                        field_value=field.stored_value(),
                        field_type=field.stored_type(),
                        field_order=order,
                    )
                )
        except SQLAlchemyError as e:
            raise PartialFailure(str(e)) from e

    # ---- reads ----

    @locked
    def get_by_id(self, product_id: int) -> Optional[ProductOut]:
        try:
            with self.store.session() as db:
                product = db.query(Product).filter(Product.id == product_id).first()
                if not product:
                    return None
                return ProductOut.model_validate(product)
        except SQLAlchemyError as e:
            logger.error("Error getting product %s: %s", product_id, e)
            raise BackendError("Could not read product") from e

    @locked
    def get_all(self) -> List[ProductOut]:
        try:
            with self.store.session() as db:
                products = db.query(Product).order_by(Product.created_at.desc(), Product.id.desc()).all()
                return [ProductOut.model_validate(p) for p in products]
        except SQLAlchemyError as e:
            logger.error("Error getting products: %s", e)
            raise BackendError("Could not read products") from e

    @locked
    def search(self, term: str) -> List[ProductOut]:
        pattern = f"%{term}%"
        try:
            with self.store.session() as db:
                products = (
                    db.query(Product)
                    .filter(
                        or_(
                            Product.product_name.ilike(pattern),
                            Product.company_name.ilike(pattern),
                            Product.product_quality.ilike(pattern),
                        )
                    )
                    .order_by(Product.created_at.desc(), Product.id.desc())
                    .all()
                )
                return [ProductOut.model_validate(p) for p in products]
        except SQLAlchemyError as e:
            logger.error("Error searching products: %s", e)
            raise BackendError("Could not search products") from e

    @locked
    def get_stats(self) -> StatsOut:
        """
        Catalog totals. An empty store gives zeros; a storage failure raises
        BackendError instead of being reported as zeros.
        """
        # Aggregates over zero rows come back as 0 / NULL, never as errors
        try:
            with self.store.session() as db:
                total_products = db.query(func.count(Product.id)).scalar() or 0
                total_companies = db.query(func.count(func.distinct(Product.company_name))).scalar() or 0
                avg_price = db.query(func.avg(Product.retail_price)).scalar()
                total_images = db.query(func.count(ProductImage.id)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error("Error getting stats: %s", e)
            raise BackendError("Could not compute statistics") from e

        return StatsOut(
            total_products=total_products,
            total_companies=total_companies,
            avg_price=round_half_up(avg_price),
            total_images=total_images,
        )
