"""
Vendor payload schemas.

Zoho and Airtable return loosely typed JSON whose fields vary with vendor
configuration. Payloads are validated here, at the client boundary, so
business logic only ever sees typed objects. Unknown fields are ignored.
"""

from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator
from typing import Any, Optional
from datetime import datetime


def parse_vendor_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a vendor timestamp.

    Zoho sends "2024-05-01T10:15:00-0400" (no colon in the offset),
    Airtable sends "2024-05-01T14:15:00.000Z". Empty values become None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value

    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"

    for fmt in ("%Y-%m-%dT%H:%M:%S%z", "%Y-%m-%dT%H:%M:%S.%f%z"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    return datetime.fromisoformat(text)


class VendorSchema(BaseModel):
    """
    Base for vendor payloads.

    Numbers arriving where strings are expected (ids, SKUs) are coerced,
    and empty strings on optional fields become None.
    """
    model_config = ConfigDict(
        extra="ignore",
        coerce_numbers_to_str=True,
        populate_by_name=True
    )

    @field_validator("*", mode="before")
    @classmethod
    def empty_string_to_none(cls, v):
        if isinstance(v, str) and v.strip() == "":
            return None
        return v


# ===================
# ZOHO
# ===================

class ZohoCustomField(VendorSchema):
    """Custom field attached to an item or order."""
    customfield_id: Optional[str] = None
    label: Optional[str] = None
    field_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("field_name", "api_name")
    )
    value: Any = None

    @property
    def key(self) -> str:
        """Lowercased label used for keyword lookups."""
        return (self.label or self.field_name or "").lower()


class ZohoImage(VendorSchema):
    image_id: Optional[str] = None
    image_name: Optional[str] = None
    image_url: Optional[str] = None
    file_path: Optional[str] = None


class ZohoPackageDetails(VendorSchema):
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    dimension_unit: Optional[str] = None
    weight_unit: Optional[str] = None


class ZohoWarehouse(VendorSchema):
    warehouse_id: str
    warehouse_name: Optional[str] = None
    warehouse_stock_on_hand: Optional[float] = None
    warehouse_available_stock: Optional[float] = None
    warehouse_actual_available_stock: Optional[float] = None


class ZohoItem(VendorSchema):
    """
    Zoho Inventory item.

    The list endpoint returns an abbreviated record; images, custom
    fields and warehouse details only come with the detail call.
    """
    item_id: str
    name: str
    sku: Optional[str] = None
    description: Optional[str] = None
    rate: Optional[float] = None
    purchase_rate: Optional[float] = None
    unit: Optional[str] = None
    status: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    brand: Optional[str] = None
    manufacturer: Optional[str] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    package_details: Optional[ZohoPackageDetails] = None
    stock_on_hand: Optional[float] = None
    available_stock: Optional[float] = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: list[ZohoCustomField] = Field(default_factory=list)
    images: list[ZohoImage] = Field(default_factory=list)
    image_name: Optional[str] = None
    warehouses: list[ZohoWarehouse] = Field(
        default_factory=list,
        validation_alias=AliasChoices("warehouses", "warehouse_details")
    )
    created_time: Optional[datetime] = None
    last_modified_time: Optional[datetime] = None

    @field_validator("created_time", "last_modified_time", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return parse_vendor_timestamp(v)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        # Zoho returns tags either as strings or as {tag_name: ...} objects
        if not v:
            return []
        return [t.get("tag_name", "") if isinstance(t, dict) else str(t) for t in v]

    @field_validator("custom_fields", "images", "warehouses", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v or []


class RejectedRecord(BaseModel):
    """A vendor record dropped at validation."""
    vendor_id: Optional[str] = None
    reason: str


class ZohoItemPage(BaseModel):
    """One page of items plus the vendor's has-more flag."""
    items: list[ZohoItem]
    rejected: list[RejectedRecord] = Field(default_factory=list)
    has_more: bool
    page: int


class ZohoCategory(VendorSchema):
    category_id: str
    name: str = Field(validation_alias=AliasChoices("name", "category_name"))
    description: Optional[str] = None
    parent_category_id: Optional[str] = None
    status: Optional[str] = None

    @field_validator("parent_category_id", mode="before")
    @classmethod
    def root_parent_to_none(cls, v):
        # Zoho marks top-level categories with parent "-1"
        return None if v in ("-1", -1) else v


class ZohoLineItem(VendorSchema):
    line_item_id: Optional[str] = None
    item_id: Optional[str] = None
    sku: Optional[str] = None
    name: Optional[str] = None
    quantity: float = 0
    rate: Optional[float] = None
    item_total: Optional[float] = None


class ZohoSalesOrder(VendorSchema):
    salesorder_id: str
    salesorder_number: Optional[str] = None
    reference_number: Optional[str] = None
    date: Optional[str] = None
    status: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("customer_email", "email")
    )
    sub_total: Optional[float] = None
    tax_total: Optional[float] = None
    shipping_charge: Optional[float] = None
    total: Optional[float] = None
    currency_code: Optional[str] = None
    line_items: list[ZohoLineItem] = Field(default_factory=list)
    last_modified_time: Optional[datetime] = None

    @field_validator("last_modified_time", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return parse_vendor_timestamp(v)

    @field_validator("line_items", mode="before")
    @classmethod
    def none_to_list(cls, v):
        return v or []


class ZohoOrderPage(BaseModel):
    orders: list[ZohoSalesOrder]
    rejected: list[RejectedRecord] = Field(default_factory=list)
    has_more: bool
    page: int


class ZohoContact(VendorSchema):
    contact_id: str
    contact_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None


class ZohoWebhookPayload(VendorSchema):
    """Inner payload of a Zoho webhook notification."""
    resource_type: str
    resource_id: str
    operation: str
    resource_url: Optional[str] = None


class ZohoWebhookEvent(VendorSchema):
    """Zoho push notification."""
    event_id: Optional[str] = None
    event_type: Optional[str] = None
    event_time: Optional[str] = None
    organization_id: Optional[str] = None
    data: ZohoWebhookPayload


# ===================
# AIRTABLE
# ===================

class AirtableRecord(VendorSchema):
    """Airtable record: vendor id plus a free-form fields map."""
    id: str
    fields: dict[str, Any] = Field(default_factory=dict)
    created_time: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("createdTime", "created_time")
    )

    @field_validator("created_time", mode="before")
    @classmethod
    def parse_timestamp(cls, v):
        return parse_vendor_timestamp(v)

    @field_validator("fields", mode="before")
    @classmethod
    def none_to_dict(cls, v):
        return v or {}

    def first(self, *names: str) -> Any:
        """Return the first populated field among several column spellings."""
        for name in names:
            value = self.fields.get(name)
            if value not in (None, "", []):
                return value
        return None


class AirtableRecordPage(BaseModel):
    records: list[AirtableRecord]
    offset: Optional[str] = None
