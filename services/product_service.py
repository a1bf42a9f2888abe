"""
Product store adapter.

CRUD facade over the products table. SKU is the natural key: at most
one product row per SKU, enforced by looking up before insert.
"""

from typing import Any, Optional
import structlog

from models.classification import Classification, ComplianceCategory
from models.product import COMPLIANCE_FIELDS, LocalProductFields, ProductResponse
from exceptions import (
    ProductNotFoundError,
    ProductSKUExistsError,
    DatabaseError
)

logger = structlog.get_logger(__name__)

# Supabase caps a single select at 1000 rows
FETCH_CHUNK = 1000


class ProductService:
    """
    Product persistence.

    Handles reads, natural-key upserts and compliance updates.
    """

    def __init__(self, db):
        self.db = db
        self.table = "products"

    # ===================
    # READ OPERATIONS
    # ===================

    def get_all(
        self,
        page: int = 1,
        page_size: int = 20,
        active_only: bool = True
    ) -> tuple[list[ProductResponse], int]:
        """
        Get products, paginated and ordered by name.

        Returns:
            Tuple of (products list, total count)
        """
        logger.info("getting_products", page=page, page_size=page_size)

        try:
            query = self.db.table(self.table).select("*", count="exact")

            if active_only:
                query = query.eq("is_active", True)

            offset = (page - 1) * page_size
            query = query.range(offset, offset + page_size - 1).order("name")

            result = query.execute()

            products = [ProductResponse(**row) for row in result.data]
            total = result.count or 0

            logger.info("products_retrieved", count=len(products), total=total)

            return products, total

        except Exception as e:
            logger.error("get_products_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, product_id: str) -> ProductResponse:
        """
        Get a single product by ID.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        logger.debug("getting_product", product_id=product_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", product_id)
                .single()
                .execute()
            )

            if not result.data:
                raise ProductNotFoundError(product_id)

            return ProductResponse(**result.data)

        except ProductNotFoundError:
            raise
        except Exception as e:
            logger.error("get_product_failed", product_id=product_id, error=str(e))
            # Check if it's a "not found" from Supabase
            if "0 rows" in str(e) or "no rows" in str(e).lower():
                raise ProductNotFoundError(product_id)
            raise DatabaseError("select", str(e))

    def _find_one(self, column: str, value: str) -> Optional[dict]:
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq(column, value)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("find_product_failed", column=column, value=value, error=str(e))
            raise DatabaseError("select", str(e))

        return result.data[0] if result.data else None

    def get_by_sku(self, sku: str) -> Optional[ProductResponse]:
        """
        Get a product by SKU.

        Returns:
            ProductResponse or None if not found
        """
        row = self._find_one("sku", sku)
        return ProductResponse(**row) if row else None

    def get_by_zoho_item_id(self, zoho_item_id: str) -> Optional[ProductResponse]:
        row = self._find_one("zoho_item_id", zoho_item_id)
        return ProductResponse(**row) if row else None

    def list_for_matching(self) -> list[dict[str, Any]]:
        """
        All products reduced to the columns the matcher and inventory
        sync need, fetched in chunks.
        """
        rows: list[dict] = []
        offset = 0

        try:
            while True:
                result = (
                    self.db.table(self.table)
                    .select("id, sku, name, description, image_urls, zoho_item_id, stock_quantity")
                    .order("id")
                    .range(offset, offset + FETCH_CHUNK - 1)
                    .execute()
                )
                rows.extend(result.data)
                if len(result.data) < FETCH_CHUNK:
                    break
                offset += FETCH_CHUNK
        except Exception as e:
            logger.error("list_products_for_matching_failed", error=str(e))
            raise DatabaseError("select", str(e))

        logger.debug("products_listed_for_matching", count=len(rows))
        return rows

    def count(self) -> int:
        try:
            result = self.db.table(self.table).select("id", count="exact").execute()
            return result.count or 0
        except Exception as e:
            raise DatabaseError("count", str(e))

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, record: dict[str, Any]) -> ProductResponse:
        """
        Insert a product row.

        Raises:
            ProductSKUExistsError: If SKU already exists
        """
        sku = record.get("sku")
        logger.info("creating_product", sku=sku)

        if sku and self._find_one("sku", sku):
            raise ProductSKUExistsError(sku)

        try:
            result = self.db.table(self.table).insert(record).execute()
        except Exception as e:
            logger.error("create_product_failed", sku=sku, error=str(e))
            raise DatabaseError("insert", str(e))

        product = ProductResponse(**result.data[0])
        logger.info("product_created", product_id=product.id, sku=product.sku)
        return product

    def update(self, product_id: str, record: dict[str, Any]) -> ProductResponse:
        """
        Update columns of an existing product.

        Raises:
            ProductNotFoundError: If product doesn't exist
        """
        if not record:
            return self.get_by_id(product_id)

        try:
            result = (
                self.db.table(self.table)
                .update(record)
                .eq("id", product_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_product_failed", product_id=product_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise ProductNotFoundError(product_id)

        logger.debug("product_updated", product_id=product_id, fields=list(record.keys()))
        return ProductResponse(**result.data[0])

    def upsert_by_sku(
        self,
        fields: LocalProductFields,
        category_id: Optional[str] = None,
        brand_id: Optional[str] = None
    ) -> tuple[ProductResponse, bool]:
        """
        Insert or update keyed by SKU.

        On update, compliance flags are written only when True.

        Args:
            fields: Mapped product fields (sku required)
            category_id: Resolved category reference
            brand_id: Resolved brand reference

        Returns:
            Tuple of (product, created)
        """
        if not fields.sku:
            raise ValueError("upsert_by_sku requires a SKU")

        record = fields.to_record()
        if category_id:
            record["category_id"] = category_id
        if brand_id:
            record["brand_id"] = brand_id

        existing = self._find_one("sku", fields.sku)

        if existing:
            # Flags raised by another source or by classification stay raised
            for flag in COMPLIANCE_FIELDS:
                if not record.get(flag):
                    record.pop(flag, None)
            return self.update(existing["id"], record), False

        return self.create(record), True

    def update_stock(self, product_id: str, stock_quantity: int) -> ProductResponse:
        return self.update(product_id, {"stock_quantity": int(stock_quantity)})

    def update_images(self, product_id: str, image_urls: list[str]) -> ProductResponse:
        return self.update(product_id, {"image_urls": image_urls})

    def update_compliance(self, product_id: str, classification: Classification) -> ProductResponse:
        """
        Attach a compliance classification to a product.

        Flags are only ever raised here, never cleared: a product marked
        age-restricted by its vendor stays restricted.
        """
        record = {
            "compliance_category": classification.category.value,
            "substance_type": classification.substance_type,
            "risk_level": classification.risk_level.value,
            "compliance_confidence": classification.confidence,
            "required_compliance": classification.required_compliance,
        }
        if classification.age_restricted:
            record["age_restricted"] = True
        if classification.category == ComplianceCategory.NICOTINE:
            record["is_nicotine"] = True

        logger.info(
            "product_compliance_updated",
            product_id=product_id,
            category=classification.category.value,
            risk_level=classification.risk_level.value
        )
        return self.update(product_id, record)
