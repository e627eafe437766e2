# inventory/schemas/product.py
from datetime import datetime
from typing import Any, List, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from inventory.errors import ValidationError


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# One user defined field as submitted. Accepts both the form shape
# ({name, value, type}) and the stored/exported shape ({field_name, ...}).
class DynamicFieldInput(BaseModel):
    name: Optional[str] = Field(default=None, validation_alias=AliasChoices("name", "field_name"))
    value: Any = Field(default=None, validation_alias=AliasChoices("value", "field_value"))
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "field_type"))

    def is_storable(self) -> bool:
        return bool(self.name and self.name.strip()) and self.value is not None

    def stored_name(self) -> str:
        return self.name.strip()

    def stored_value(self) -> str:
        if isinstance(self.value, bool):
            return "true" if self.value else "false"
        return str(self.value)

    def stored_type(self) -> str:
        return self.type or "text"


# Shape of a product create/update request
class ProductInput(BaseModel):
    product_name: str
    company_name: str
    product_quality: str
    quantity_bundle: int
    purchase_price: float = Field(allow_inf_nan=False)
    wholesale_price: float = Field(allow_inf_nan=False)
    retail_price: float = Field(allow_inf_nan=False)
    image_id: Optional[str] = None
    dynamic_fields: List[Optional[DynamicFieldInput]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dynamic_fields", "dynamicFields"),
    )

    @field_validator("product_name", "company_name", "product_quality")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("dynamic_fields", mode="before")
    @classmethod
    def _drop_malformed_fields(cls, v):
        # Entries that are not objects are skipped like blank ones, not rejected
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return [item if isinstance(item, (Mapping, DynamicFieldInput)) else None for item in v]
        return v

    def product_values(self) -> dict:
        """Column values of the products row."""
        return self.model_dump(exclude={"dynamic_fields"})


def validate_product(data: Union[ProductInput, Mapping[str, Any]]) -> ProductInput:
    """Validate raw input, raising inventory ValidationError with every problem found."""
    if isinstance(data, ProductInput):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError("Product data must be an object")
    try:
        return ProductInput.model_validate(dict(data))
    except PydanticValidationError as e:
        problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ValidationError("Required fields are missing or invalid", problems) from e


class DynamicFieldOut(ORMBase):
    field_name: str
    field_value: Optional[str] = None
    field_type: str = "text"
    field_order: int


# Full product representation including ID
class ProductOut(ORMBase):
    id: int
    product_name: str
    company_name: str
    product_quality: str
    quantity_bundle: int
    purchase_price: float
    wholesale_price: float
    retail_price: float
    image_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    dynamic_fields: List[DynamicFieldOut] = []


class StatsOut(BaseModel):
    total_products: int = 0
    total_companies: int = 0
    avg_price: int = 0
    total_images: int = 0
