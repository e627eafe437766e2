from inventory.database import Base
from inventory.models.product import DynamicField, Product
from inventory.models.image import ProductImage

__all__ = [
    "Base",
    "Product",
    "DynamicField",
    "ProductImage",
]
