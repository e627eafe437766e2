# inventory/models/image.py
from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, func

from inventory.database import Base


# Thumbnail attached to a product. At most one per product: the unique index
# backs the delete-before-insert done by ImageRepository.save_image.
class ProductImage(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    image_id = Column(String, unique=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    base64_data = Column(Text, nullable=False)  # data URL of the encoded thumbnail
    original_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False)
    created_at = Column(DateTime, server_default=func.current_timestamp())

    __table_args__ = (
        Index("uq_images_product_id", "product_id", unique=True),
        {"sqlite_autoincrement": True},
    )
