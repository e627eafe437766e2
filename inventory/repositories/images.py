# inventory/repositories/images.py
import logging
from typing import Any, Callable, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError

from inventory.database import StoreHandle, locked
from inventory.errors import BackendError, NotFoundError, ValidationError
from inventory.models import Product, ProductImage
from inventory.schemas.image import ImageMeta, ImageOut
from inventory.utils.images import (
    encode_thumbnail,
    generate_image_id,
    image_file_name,
    image_file_path,
)

logger = logging.getLogger(__name__)

Encoder = Callable[[bytes], str]
ImageMetaData = Union[ImageMeta, Mapping[str, Any]]


def prepare_image(
    file_bytes: bytes, meta: ImageMetaData, product_id: int, encoder: Encoder, path_prefix: str
) -> dict:
    """Column values of a new image row: fresh id, derived name and path, encoded payload."""
    if not isinstance(meta, ImageMeta):
        try:
            meta = ImageMeta.model_validate(dict(meta))
        except ValueError as e:
            raise ValidationError(f"Invalid image metadata: {e}") from e
    try:
        encoded = encoder(file_bytes)
    except ValueError as e:
        raise ValidationError(str(e)) from e

    image_id = generate_image_id()
    file_name = image_file_name(product_id, image_id, meta.original_name)
    return {
        "image_id": image_id,
        "product_id": product_id,
        "file_name": file_name,
        "file_path": image_file_path(path_prefix, file_name),
        "base64_data": encoded,
        "original_name": meta.original_name,
        "file_size": meta.file_size,
        "mime_type": meta.mime_type,
    }


class ImageRepository:
    """Single image per product on the embedded store."""

    def __init__(self, store: StoreHandle, encoder: Encoder = encode_thumbnail, path_prefix: str = "sale-data"):
        self.store = store
        self.encoder = encoder
        self.path_prefix = path_prefix

    @locked
    def save_image(self, file_bytes: bytes, meta: ImageMetaData, product_id: int) -> ImageOut:
        row = prepare_image(file_bytes, meta, product_id, self.encoder, self.path_prefix)
        try:
            with self.store.session() as db:
                product = db.query(Product).filter(Product.id == product_id).first()
                if not product:
                    raise NotFoundError(f"Product {product_id} not found")

                # Replace: drop the previous image before inserting the new one
                db.query(ProductImage).filter(ProductImage.product_id == product_id).delete(
                    synchronize_session=False
                )
                image = ProductImage(**row)
                db.add(image)
                product.image_id = row["image_id"]
                db.commit()
                db.refresh(image)
                saved = ImageOut.model_validate(image)
        except SQLAlchemyError as e:
            logger.error("Error saving image for product %s: %s", product_id, e)
            raise BackendError("Could not save image") from e

        self.store.persist()
        logger.info(
            "Image saved for product %s: %s (payload length %d)",
            product_id, saved.file_name, len(saved.base64_data),
        )
        return saved

    @locked
    def get_by_product_id(self, product_id: int) -> Optional[ImageOut]:
        try:
            with self.store.session() as db:
                image = db.query(ProductImage).filter(ProductImage.product_id == product_id).first()
                if not image:
                    logger.debug("No image data found for product %s", product_id)
                    return None
                return ImageOut.model_validate(image)
        except SQLAlchemyError as e:
            logger.error("Error getting image data for product %s: %s", product_id, e)
            raise BackendError("Could not read image") from e

    @locked
    def get_by_image_id(self, image_id: str) -> Optional[ImageOut]:
        try:
            with self.store.session() as db:
                image = db.query(ProductImage).filter(ProductImage.image_id == image_id).first()
                if not image:
                    logger.debug("No image found for image_id %s", image_id)
                    return None
                return ImageOut.model_validate(image)
        except SQLAlchemyError as e:
            logger.error("Error getting image %s: %s", image_id, e)
            raise BackendError("Could not read image") from e

    @locked
    def delete_image(self, product_id: int) -> int:
        """Drop the product's image and clear its reference. Returns removed rows."""
        try:
            with self.store.session() as db:
                deleted = db.query(ProductImage).filter(ProductImage.product_id == product_id).delete(
                    synchronize_session=False
                )
                db.query(Product).filter(Product.id == product_id).update(
                    {Product.image_id: None}, synchronize_session=False
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.error("Error deleting image for product %s: %s", product_id, e)
            raise BackendError("Could not delete image") from e

        self.store.persist()
        logger.info("Deleted %d image records for product %s", deleted, product_id)
        return deleted
