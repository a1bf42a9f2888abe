"""
Field mapper.

Pure functions translating validated vendor payloads into local row
shapes. No I/O and no hidden state: the same input always yields the
same output.

Rules:
- Missing optional vendor fields stay None
- Compliance flags default to False
- Weights are stored in grams, dimensions in millimeters
"""

import re
from typing import Any, Optional

from models.product import CategoryFields, LocalProductFields, OrderFields
from models.vendor import AirtableRecord, ZohoCategory, ZohoCustomField, ZohoItem, ZohoSalesOrder
from services.compliance_taxonomy import detect_flags
from utils.text_utils import clean_text, slugify
from utils.units import to_grams, to_millimeters


# Zoho sends weights/dimensions without a unit on older items
DEFAULT_WEIGHT_UNIT = "lb"
DEFAULT_DIMENSION_UNIT = "in"

# Tried in order against the product name; group 1 is the brand
BRAND_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"^(roor)\b",
        r"^(raw)\b",
        r"^(grav)\b",
        r"^(puffco)\b",
        r"^(storz)\b",
        r"^(empire)\b",
        r"^(higher)\b",
        r"^(crave)\b",
        r"\b(roor)\b",
        r"\b(puffco)\b",
        r"\b(storz)\b",
        r"\b(raw)\s+(?:papers|rolling)",
        r"\b(grav)\s+(?:labs|glass)",
        r"\b(crave)\b",
    )
]

ORDER_STATUS_MAP = {
    "draft": "pending",
    "sent": "pending",
    "accepted": "confirmed",
    "confirmed": "confirmed",
    "open": "confirmed",
    "declined": "cancelled",
    "void": "cancelled",
    "closed": "completed",
    "fulfilled": "completed",
}

TRUTHY = {"true", "yes", "y", "1", "on"}

_MEASURE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([a-zA-Z\.]*)\s*$")


def extract_brand(name: Optional[str]) -> Optional[str]:
    """
    Extract a known brand from a product name.

    - "RooR Tech Beaker 18in" → "ROOR"
    - "King Size RAW Papers" → "RAW"
    - "Glass Bowl" → None
    """
    if not name:
        return None
    for pattern in BRAND_PATTERNS:
        match = pattern.search(name)
        if match:
            return match.group(1).upper()
    return None


def map_order_status(status: Optional[str]) -> str:
    """Map a Zoho sales order status onto the local lifecycle."""
    return ORDER_STATUS_MAP.get((status or "").strip().lower(), "pending")


def _is_truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def _parse_measure(value: Any, default_unit: str) -> tuple[Optional[float], Optional[str]]:
    """Split "2.5 lb" into (2.5, "lb"); bare numbers get default_unit."""
    if value is None:
        return None, None
    if isinstance(value, (int, float)):
        return float(value), default_unit
    match = _MEASURE.match(str(value))
    if not match:
        return None, None
    return float(match.group(1)), match.group(2) or default_unit


def _custom_field(fields: list[ZohoCustomField], label: str) -> Any:
    for field in fields:
        if field.key == label:
            return field.value
    return None


def _weight_grams(item: ZohoItem) -> Optional[float]:
    package = item.package_details
    if package and package.weight:
        return to_grams(package.weight, package.weight_unit or item.weight_unit or DEFAULT_WEIGHT_UNIT)
    if item.weight:
        return to_grams(item.weight, item.weight_unit or DEFAULT_WEIGHT_UNIT)

    value, unit = _parse_measure(_custom_field(item.custom_fields, "weight"), DEFAULT_WEIGHT_UNIT)
    return to_grams(value, unit)


def _dimension_mm(item: ZohoItem, axis: str) -> Optional[float]:
    package = item.package_details
    if package and getattr(package, axis):
        return to_millimeters(getattr(package, axis), package.dimension_unit or DEFAULT_DIMENSION_UNIT)

    value, unit = _parse_measure(_custom_field(item.custom_fields, axis), DEFAULT_DIMENSION_UNIT)
    return to_millimeters(value, unit)


def _apply_custom_compliance(fields: list[ZohoCustomField], data: dict) -> None:
    """
    Custom fields override keyword detection.

    Labels containing "age" + "required"/"verification", or "tobacco"
    or "nicotine", force the flags when their value is truthy.
    """
    for field in fields:
        key = field.key
        if field.value is None:
            continue

        if "age" in key and ("required" in key or "verification" in key):
            if _is_truthy(field.value):
                data["age_restricted"] = True

        elif "tobacco" in key or "nicotine" in key:
            if _is_truthy(field.value):
                data["is_nicotine"] = True
                data["age_restricted"] = True
                if "tobacco" in key:
                    data["is_tobacco"] = True

        elif "restrict" in key and "state" in key:
            value = field.value
            if isinstance(value, str):
                value = [s.strip().upper() for s in value.split(",") if s.strip()]
            data["restricted_states"] = list(value) if value else None

        elif "msrp" in key or "retail" in key:
            try:
                data["compare_at_price"] = float(field.value)
            except (TypeError, ValueError):
                pass

        elif "description" in key and "dtc" in key:
            data["short_description"] = clean_text(field.value)


def _zoho_image_urls(item: ZohoItem) -> Optional[list[str]]:
    urls = []
    for image in item.images:
        url = image.image_url or image.file_path
        if not url and image.image_id:
            url = f"/api/zoho/images/{image.image_id}"
        if url:
            urls.append(url)
    return urls or None


def _stock(*values: Optional[float]) -> Optional[int]:
    for value in values:
        if value is not None:
            return int(value)
    return None


# ===================
# ZOHO
# ===================

def map_zoho_item(item: ZohoItem) -> LocalProductFields:
    """
    Map a Zoho item (detail payload) to local product fields.

    Args:
        item: Validated Zoho item

    Returns:
        LocalProductFields (sku may be None; the caller decides)
    """
    flags = detect_flags(item.name, item.description, item.category_name, " ".join(item.tags))

    data = {
        "sku": item.sku,
        "name": item.name,
        "description": clean_text(item.description),
        "price": item.rate,
        "stock_quantity": _stock(item.available_stock, item.stock_on_hand),
        "image_urls": _zoho_image_urls(item),
        "material": clean_text(item.manufacturer),
        "tags": item.tags or None,
        "weight_grams": _weight_grams(item),
        "length_mm": _dimension_mm(item, "length"),
        "width_mm": _dimension_mm(item, "width"),
        "height_mm": _dimension_mm(item, "height"),
        "is_nicotine": flags.nicotine,
        "is_tobacco": flags.tobacco,
        "age_restricted": flags.age_restricted,
        "is_active": None if item.status is None else item.status == "active",
        "zoho_item_id": item.item_id,
        "vendor_modified_at": item.last_modified_time,
        "category_name": clean_text(item.category_name),
        "brand_name": clean_text(item.brand) or extract_brand(item.name),
    }

    _apply_custom_compliance(item.custom_fields, data)

    # Nicotine products live on the tobacco storefront only
    data["visible_on_main_site"] = not data["is_nicotine"]
    data["visible_on_tobacco_site"] = data["is_nicotine"]

    return LocalProductFields(**data)


def map_zoho_category(category: ZohoCategory) -> CategoryFields:
    return CategoryFields(
        name=category.name,
        slug=slugify(category.name),
        description=clean_text(category.description) or f"{category.name} products",
        zoho_category_id=category.category_id,
        parent_zoho_category_id=category.parent_category_id,
    )


def map_zoho_order(order: ZohoSalesOrder) -> OrderFields:
    """Map a sales order; line items keep their vendor item ids for later joins."""
    return OrderFields(
        zoho_salesorder_id=order.salesorder_id,
        order_number=order.salesorder_number,
        status=map_order_status(order.status),
        ordered_on=order.date,
        subtotal=order.sub_total,
        tax=order.tax_total,
        shipping=order.shipping_charge,
        total=order.total,
        currency=order.currency_code,
        line_items=[
            {
                "zoho_item_id": line.item_id,
                "sku": line.sku,
                "name": line.name,
                "quantity": line.quantity,
                "price": line.rate,
                "total": line.item_total,
            }
            for line in order.line_items
        ],
        zoho_customer_id=order.customer_id,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
    )


# ===================
# AIRTABLE
# ===================

def _airtable_images(value: Any) -> Optional[list[str]]:
    """Attachment fields are lists of {url: ...}; plain text fields are a URL."""
    if not value:
        return None
    if isinstance(value, str):
        return [value]
    urls = [a.get("url") for a in value if isinstance(a, dict) and a.get("url")]
    return urls or None


def _as_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(str(value).replace("$", "").replace(",", ""))
    except ValueError:
        return None


def map_airtable_record(record: AirtableRecord) -> LocalProductFields:
    """
    Map an Airtable record to local product fields.

    Column names vary between bases, so each field is looked up under
    several spellings.
    """
    name = clean_text(record.first("Name", "Product Name", "Title")) or ""
    description = clean_text(record.first("Description", "Details"))
    category = clean_text(record.first("Category", "Type"))
    brand = clean_text(record.first("Brand", "Manufacturer"))

    flags = detect_flags(name, description, category)

    sku = record.first("SKU", "sku", "Product Code", "Code")

    return LocalProductFields(
        sku=str(sku) if sku is not None else None,
        name=name or f"Airtable {record.id}",
        description=description,
        price=_as_float(record.first("Price", "Cost", "MSRP")),
        image_urls=_airtable_images(record.first("Image", "Images", "Image URL", "Photo")),
        is_nicotine=flags.nicotine,
        is_tobacco=flags.tobacco,
        age_restricted=flags.age_restricted,
        airtable_record_id=record.id,
        category_name=category,
        brand_name=brand or extract_brand(name),
    )
