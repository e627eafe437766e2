# inventory/models/product.py
from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import relationship

from inventory.database import Base


# Model Product
# A single catalog entry. Company is a plain attribute; the old normalized
# categories table is gone. image_id points at images.image_id without a
# declared foreign key, the startup sweep clears dangling values.
class Product(Base):
    __tablename__ = "products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_name = Column(String, nullable=False)
    company_name = Column(String, nullable=False)
    product_quality = Column(String, nullable=False)
    quantity_bundle = Column(Integer, nullable=False)

    # Prices
    purchase_price = Column(Float, nullable=False)
    wholesale_price = Column(Float, nullable=False)
    retail_price = Column(Float, nullable=False)

    image_id = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.current_timestamp())
    updated_at = Column(DateTime, server_default=func.current_timestamp())

    dynamic_fields = relationship(
        "DynamicField",
        back_populates="product",
        order_by="DynamicField.field_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


# User defined key/value attribute, replaced as a whole on every product update
class DynamicField(Base):
    __tablename__ = "dynamic_fields"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    field_name = Column(String, nullable=False)
    field_value = Column(Text, nullable=True)
    field_type = Column(String, nullable=False, default="text")
    field_order = Column(Integer, nullable=False)  # 1-based position in the submitted list
    created_at = Column(DateTime, server_default=func.current_timestamp())

    product = relationship("Product", back_populates="dynamic_fields")

    __table_args__ = (
        Index("uq_dynamic_fields_product_order", "product_id", "field_order", unique=True),
        {"sqlite_autoincrement": True},
    )
