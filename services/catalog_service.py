"""
Category and brand resolution.

Products reference categories and brands by id. Vendor records only
carry names, so names are resolved to ids before a product is persisted:
look up by slug, create when missing. Lookups are cached for the life of
the service instance (one sync run).
"""

from typing import Optional
import structlog

from models.product import CategoryFields
from exceptions import DatabaseError
from utils.text_utils import slugify

logger = structlog.get_logger(__name__)


class CatalogService:
    """Lookup-or-create for categories and brands."""

    def __init__(self, db):
        self.db = db
        self._cache: dict[tuple[str, str], str] = {}

    def clear_cache(self) -> None:
        self._cache.clear()

    def _lookup_or_create(self, table: str, name: Optional[str], extra: Optional[dict] = None) -> Optional[str]:
        if not name or not name.strip():
            return None

        slug = slugify(name)
        if not slug:
            return None

        key = (table, slug)
        if key in self._cache:
            return self._cache[key]

        try:
            result = self.db.table(table).select("id").eq("slug", slug).limit(1).execute()

            if result.data:
                row_id = result.data[0]["id"]
            else:
                row = {"name": name.strip(), "slug": slug, **(extra or {})}
                created = self.db.table(table).insert(row).execute()
                row_id = created.data[0]["id"]
                logger.info("catalog_entry_created", table=table, slug=slug)

        except Exception as e:
            logger.error("catalog_resolve_failed", table=table, slug=slug, error=str(e))
            raise DatabaseError("resolve", str(e), details={"table": table, "slug": slug})

        self._cache[key] = row_id
        return row_id

    def resolve_category(self, name: Optional[str]) -> Optional[str]:
        """Return the category id for a name, creating the category if needed."""
        return self._lookup_or_create(
            "categories",
            name,
            extra={"description": f"{name.strip()} products"} if name else None
        )

    def resolve_brand(self, name: Optional[str]) -> Optional[str]:
        """Return the brand id for a name, creating the brand if needed."""
        return self._lookup_or_create("brands", name)

    def upsert_category(self, fields: CategoryFields) -> bool:
        """
        Insert or update a category keyed by slug.

        Returns:
            True if the category was created
        """
        record = fields.to_record()

        try:
            existing = (
                self.db.table("categories")
                .select("id")
                .eq("slug", fields.slug)
                .limit(1)
                .execute()
            )

            if existing.data:
                row_id = existing.data[0]["id"]
                self.db.table("categories").update(record).eq("id", row_id).execute()
                created = False
            else:
                result = self.db.table("categories").insert(record).execute()
                row_id = result.data[0]["id"]
                created = True

        except Exception as e:
            logger.error("category_upsert_failed", slug=fields.slug, error=str(e))
            raise DatabaseError("upsert", str(e), details={"table": "categories"})

        self._cache[("categories", fields.slug)] = row_id
        return created
