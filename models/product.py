"""
Product schemas for validation and serialization.

LocalProductFields is the output of the field mapper: the shape of a
products row before category/brand references are resolved.
"""

from pydantic import Field, field_validator
from typing import Any, Optional
from datetime import date, datetime

from models.base import BaseSchema, TimestampMixin


# Columns produced by the mapper that are not stored on products directly
RESOLUTION_FIELDS = {"brand_name", "category_name"}

# Written on insert even when False; an update only ever raises them
COMPLIANCE_FIELDS = {"is_nicotine", "is_tobacco", "age_restricted"}


class LocalProductFields(BaseSchema):
    """
    Mapped product fields.

    Missing vendor values stay None. Compliance flags default to False.
    """

    sku: Optional[str] = Field(None, max_length=100, description="Natural key")
    name: str = Field(..., min_length=1, description="Product name")
    description: Optional[str] = None
    short_description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0, description="MSRP / retail price")
    stock_quantity: Optional[int] = None
    image_urls: Optional[list[str]] = None
    material: Optional[str] = None
    tags: Optional[list[str]] = None

    # Physical
    weight_grams: Optional[float] = None
    length_mm: Optional[float] = None
    width_mm: Optional[float] = None
    height_mm: Optional[float] = None

    # Compliance
    is_nicotine: bool = False
    is_tobacco: bool = False
    age_restricted: bool = False
    restricted_states: Optional[list[str]] = None
    visible_on_main_site: Optional[bool] = None
    visible_on_tobacco_site: Optional[bool] = None

    # Vendor references
    is_active: Optional[bool] = None
    zoho_item_id: Optional[str] = None
    airtable_record_id: Optional[str] = None
    vendor_modified_at: Optional[datetime] = None

    # Resolved to category_id / brand_id before persisting
    category_name: Optional[str] = None
    brand_name: Optional[str] = None

    @field_validator("sku")
    @classmethod
    def blank_sku_to_none(cls, v: Optional[str]) -> Optional[str]:
        """An all-whitespace SKU is a missing SKU."""
        if v is None or not v.strip():
            return None
        return v.strip()

    def to_record(self) -> dict[str, Any]:
        """
        Row payload for insert/update.

        None values are dropped so a sparse vendor record never blanks a
        column that was filled by another source or by an admin.
        """
        data = self.model_dump(mode="json", exclude=RESOLUTION_FIELDS)
        return {
            key: value for key, value in data.items()
            if value is not None or key in COMPLIANCE_FIELDS
        }


class CategoryFields(BaseSchema):
    """Mapped category row."""

    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    description: Optional[str] = None
    zoho_category_id: Optional[str] = None
    parent_zoho_category_id: Optional[str] = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class OrderFields(BaseSchema):
    """Mapped order row plus the customer it belongs to."""

    zoho_salesorder_id: str
    order_number: Optional[str] = None
    status: str = "pending"
    ordered_on: Optional[date] = None
    subtotal: Optional[float] = None
    tax: Optional[float] = None
    shipping: Optional[float] = None
    total: Optional[float] = None
    currency: Optional[str] = None
    line_items: list[dict[str, Any]] = Field(default_factory=list)

    # Customer resolution
    zoho_customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None

    def to_record(self, customer_id: Optional[str]) -> dict[str, Any]:
        data = self.model_dump(
            mode="json",
            exclude={"zoho_customer_id", "customer_name", "customer_email"},
            exclude_none=True
        )
        data["customer_id"] = customer_id
        return data


class ProductResponse(BaseSchema, TimestampMixin):
    """
    Product response with all fields.

    Used for GET responses.
    """

    id: str = Field(..., description="Product UUID")
    sku: Optional[str] = Field(None, description="Product SKU")
    name: str = Field(..., description="Product name")
    description: Optional[str] = None
    price: Optional[float] = None
    compare_at_price: Optional[float] = None
    stock_quantity: Optional[int] = None
    image_urls: Optional[list[str]] = None
    category_id: Optional[str] = None
    brand_id: Optional[str] = None
    is_active: Optional[bool] = None
    is_nicotine: bool = False
    is_tobacco: bool = False
    age_restricted: bool = False
    compliance_category: Optional[str] = None
    risk_level: Optional[str] = None
    zoho_item_id: Optional[str] = None
    airtable_record_id: Optional[str] = None


class ProductListResponse(BaseSchema):
    """List of products with pagination."""

    data: list[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
