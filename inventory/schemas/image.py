# inventory/schemas/image.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from inventory.schemas.product import ORMBase


# What the caller knows about an uploaded file
class ImageMeta(BaseModel):
    original_name: str
    file_size: int = Field(ge=0)
    mime_type: str


class ImageOut(ORMBase):
    image_id: str
    product_id: int
    file_name: str
    file_path: str
    base64_data: str
    original_name: str
    file_size: int
    mime_type: str
    created_at: Optional[datetime] = None
