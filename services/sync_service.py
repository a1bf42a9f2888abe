"""
Zoho sync orchestrator.

Each resource (categories, products, orders, inventory) is an
independent linear pass:

    Idle → Fetching(page N) → Mapping → Persisting → (next page | Done)

Failure semantics:
- Per-item errors are counted and recorded with the vendor id; the run
  continues with the next item.
- Auth failures and page fetch failures abort the resource run. The
  SyncResult keeps the partial counts and is marked aborted.
- Re-running is safe: persistence is an upsert on the natural key.

Only one run per resource may be active at a time; a second caller gets
SyncInProgressError instead of interleaving writes.
"""

import threading
import time
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Callable, Optional

import structlog

from exceptions import (
    DatabaseError,
    SyncInProgressError,
    ZohoAPIError,
    ZohoAuthError,
)
from models.sync import FullSyncResult, SyncHealth, SyncResource, SyncResult
from models.vendor import ZohoItem, ZohoSalesOrder, ZohoWebhookEvent
from services.field_mapper import map_zoho_category, map_zoho_item, map_zoho_order

logger = structlog.get_logger(__name__)

# Zoho Inventory list sort: "D" = descending
NEWEST_FIRST = {"sort_column": "last_modified_time", "sort_order": "D"}

PAGE_ERRORS = (ZohoAuthError, ZohoAPIError)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ZohoSyncService:
    """
    Zoho → local store synchronization.

    All collaborators are passed in; the process entry point owns their
    lifecycle.
    """

    def __init__(
        self,
        zoho,
        products,
        catalog,
        orders,
        sync_state,
        batch_size: int = 50,
        max_pages: int = 100,
        order_max_pages: int = 50,
        request_delay: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.zoho = zoho
        self.products = products
        self.catalog = catalog
        self.orders = orders
        self.sync_state = sync_state
        self.batch_size = batch_size
        self.max_pages = max_pages
        self.order_max_pages = order_max_pages
        self.request_delay = request_delay
        self._sleep = sleep
        self._locks = {resource: threading.Lock() for resource in SyncResource}

    @classmethod
    def from_settings(cls, settings, zoho, products, catalog, orders, sync_state):
        return cls(
            zoho=zoho,
            products=products,
            catalog=catalog,
            orders=orders,
            sync_state=sync_state,
            batch_size=settings.sync_batch_size,
            max_pages=settings.sync_max_pages,
            order_max_pages=settings.order_sync_max_pages,
            request_delay=settings.sync_request_delay,
        )

    # ===================
    # HELPERS
    # ===================

    @contextmanager
    def _exclusive(self, resource: SyncResource):
        lock = self._locks[resource]
        if not lock.acquire(blocking=False):
            logger.warning("sync_already_running", resource=resource.value)
            raise SyncInProgressError(resource.value)
        try:
            yield
        finally:
            lock.release()

    def is_running(self, resource: SyncResource) -> bool:
        return self._locks[resource].locked()

    def _pause(self) -> None:
        if self.request_delay > 0:
            self._sleep(self.request_delay)

    def _finish(self, result: SyncResult, started_at: datetime) -> SyncResult:
        result.finish()

        if not result.aborted:
            try:
                self.sync_state.mark_synced(result.resource, started_at)
            except DatabaseError as e:
                logger.warning("sync_state_update_failed", resource=result.resource.value, error=e.message)

        log = logger.warning if result.aborted else logger.info
        log(
            "sync_completed",
            resource=result.resource.value,
            success=result.success,
            failed=result.failed,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            aborted=result.aborted
        )
        return result

    def _cursor(self) -> Optional[datetime]:
        try:
            return _as_utc(self.sync_state.get_last_synced(SyncResource.PRODUCTS))
        except DatabaseError as e:
            logger.warning("sync_cursor_unavailable", error=e.message)
            return None

    # ===================
    # PRODUCTS
    # ===================

    def sync_products(self, full_sync: bool = False) -> SyncResult:
        """
        Sync Zoho items into products.

        Args:
            full_sync: Re-fetch every item. Otherwise items are read newest
                first and paging stops at the first item not modified since
                the last successful product sync.

        Returns:
            SyncResult

        Raises:
            SyncInProgressError: If a product sync is already running
        """
        with self._exclusive(SyncResource.PRODUCTS):
            started_at = datetime.now(timezone.utc)
            result = SyncResult(resource=SyncResource.PRODUCTS, started_at=started_at)
            cursor = None if full_sync else self._cursor()

            logger.info(
                "product_sync_started",
                full_sync=full_sync,
                cursor=cursor.isoformat() if cursor else None
            )

            page = 1
            while page <= self.max_pages:
                try:
                    batch = self.zoho.get_products(
                        page=page,
                        per_page=self.batch_size,
                        filters=NEWEST_FIRST
                    )
                except PAGE_ERRORS as e:
                    logger.error("product_page_failed", page=page, error=e.message)
                    result.abort(f"Page {page}: {e.message}")
                    break

                logger.debug("product_page_fetched", page=page, items=len(batch.items))

                for rejected in batch.rejected:
                    result.record_failure(f"Product {rejected.vendor_id}: {rejected.reason}")

                reached_cursor = False
                for item in batch.items:
                    modified = _as_utc(item.last_modified_time)
                    if cursor and modified and modified < cursor:
                        reached_cursor = True
                        result.record_skipped()
                        continue

                    try:
                        self._sync_item(item, result)
                    except ZohoAuthError as e:
                        result.abort(f"Product {item.item_id}: {e.message}")
                        return self._finish(result, started_at)
                    except Exception as e:
                        logger.warning("sync_item_failed", item_id=item.item_id, error=str(e))
                        result.record_failure(f"Product {item.item_id}: {e}")

                if reached_cursor:
                    logger.info("product_sync_cursor_reached", page=page)
                    break
                if not batch.has_more:
                    break

                page += 1
                self._pause()
            else:
                logger.warning("product_sync_page_limit_reached", max_pages=self.max_pages)

            return self._finish(result, started_at)

    def _sync_item(self, item: ZohoItem, result: SyncResult) -> None:
        """Fetch detail, map, resolve references, upsert by SKU."""
        detail = self.zoho.get_product(item.item_id)
        self._pause()

        fields = map_zoho_item(detail)
        if not fields.sku:
            logger.info("sync_item_skipped", item_id=item.item_id, reason="missing_sku")
            result.record_skipped(f"Product {item.item_id}: missing SKU ({item.name})")
            return

        category_id = self.catalog.resolve_category(fields.category_name)
        brand_id = self.catalog.resolve_brand(fields.brand_name)

        _, created = self.products.upsert_by_sku(fields, category_id=category_id, brand_id=brand_id)
        if created:
            result.record_created()
        else:
            result.record_updated()

    # ===================
    # CATEGORIES
    # ===================

    def sync_categories(self) -> SyncResult:
        """Sync Zoho item categories; categories are keyed by slug."""
        with self._exclusive(SyncResource.CATEGORIES):
            started_at = datetime.now(timezone.utc)
            result = SyncResult(resource=SyncResource.CATEGORIES, started_at=started_at)
            logger.info("category_sync_started")

            try:
                categories = self.zoho.get_categories()
            except PAGE_ERRORS as e:
                result.abort(f"Categories: {e.message}")
                return self._finish(result, started_at)

            for category in categories:
                try:
                    created = self.catalog.upsert_category(map_zoho_category(category))
                except Exception as e:
                    logger.warning("sync_category_failed", category_id=category.category_id, error=str(e))
                    result.record_failure(f"Category {category.category_id}: {e}")
                    continue

                if created:
                    result.record_created()
                else:
                    result.record_updated()

            return self._finish(result, started_at)

    # ===================
    # ORDERS
    # ===================

    def sync_orders(self, start_date: Optional[date] = None) -> SyncResult:
        """
        Sync Zoho sales orders, newest first.

        Args:
            start_date: Only orders dated on or after this day
        """
        with self._exclusive(SyncResource.ORDERS):
            started_at = datetime.now(timezone.utc)
            result = SyncResult(resource=SyncResource.ORDERS, started_at=started_at)
            filters = dict(NEWEST_FIRST)
            if start_date:
                filters["date_start"] = start_date.isoformat()

            logger.info("order_sync_started", start_date=filters.get("date_start"))

            page = 1
            while page <= self.order_max_pages:
                try:
                    batch = self.zoho.get_orders(page=page, per_page=self.batch_size, filters=filters)
                except PAGE_ERRORS as e:
                    logger.error("order_page_failed", page=page, error=e.message)
                    result.abort(f"Page {page}: {e.message}")
                    break

                for rejected in batch.rejected:
                    result.record_failure(f"Order {rejected.vendor_id}: {rejected.reason}")

                for order in batch.orders:
                    try:
                        self._sync_order(order, result)
                    except ZohoAuthError as e:
                        result.abort(f"Order {order.salesorder_id}: {e.message}")
                        return self._finish(result, started_at)
                    except Exception as e:
                        logger.warning("sync_order_failed", salesorder_id=order.salesorder_id, error=str(e))
                        result.record_failure(f"Order {order.salesorder_id}: {e}")

                if not batch.has_more:
                    break

                page += 1
                self._pause()
            else:
                logger.warning("order_sync_page_limit_reached", max_pages=self.order_max_pages)

            return self._finish(result, started_at)

    def _sync_order(self, order: ZohoSalesOrder, result: SyncResult) -> None:
        # List records omit line items
        detail = self.zoho.get_order(order.salesorder_id)
        self._pause()

        created = self.orders.upsert_order(map_zoho_order(detail))
        if created:
            result.record_created()
        else:
            result.record_updated()

    # ===================
    # INVENTORY
    # ===================

    def sync_inventory(self) -> SyncResult:
        """
        Refresh stock_quantity of every local product from Zoho.

        Products are looked up by Zoho item id when known, else by SKU.
        Products Zoho does not know are skipped.
        """
        with self._exclusive(SyncResource.INVENTORY):
            started_at = datetime.now(timezone.utc)
            result = SyncResult(resource=SyncResource.INVENTORY, started_at=started_at)
            logger.info("inventory_sync_started")

            try:
                rows = self.products.list_for_matching()
            except DatabaseError as e:
                result.abort(f"Products: {e.message}")
                return self._finish(result, started_at)

            for row in rows:
                sku = row.get("sku")
                if not sku and not row.get("zoho_item_id"):
                    result.record_skipped()
                    continue

                try:
                    stock = self._zoho_stock(row)
                    if stock is None:
                        result.record_skipped(f"Product {sku}: not found in Zoho")
                        continue

                    if row.get("stock_quantity") != stock:
                        self.products.update_stock(row["id"], stock)
                        result.record_updated()
                    else:
                        result.success += 1

                except ZohoAuthError as e:
                    result.abort(f"Product {sku}: {e.message}")
                    break
                except Exception as e:
                    logger.warning("sync_inventory_item_failed", sku=sku, error=str(e))
                    result.record_failure(f"Product {sku}: {e}")

                self._pause()

            return self._finish(result, started_at)

    def _zoho_stock(self, row: dict) -> Optional[int]:
        if row.get("zoho_item_id"):
            level = self.zoho.get_inventory_level(row["zoho_item_id"])
            return int(level["available_stock"])

        item = self.zoho.find_product_by_sku(row["sku"])
        if item is None:
            return None
        return int(item.available_stock if item.available_stock is not None else item.stock_on_hand or 0)

    # ===================
    # FULL SYNC
    # ===================

    def perform_full_sync(self) -> FullSyncResult:
        """
        Categories → products (full) → orders → inventory.

        A failed or busy resource does not stop the ones after it.
        """
        logger.info("full_sync_started")
        steps = [
            (SyncResource.CATEGORIES, self.sync_categories),
            (SyncResource.PRODUCTS, lambda: self.sync_products(full_sync=True)),
            (SyncResource.ORDERS, self.sync_orders),
            (SyncResource.INVENTORY, self.sync_inventory),
        ]

        full = FullSyncResult()
        for resource, step in steps:
            try:
                full.results.append(step())
            except SyncInProgressError as e:
                skipped = SyncResult(resource=resource)
                skipped.abort(e.message)
                full.results.append(skipped.finish())

        logger.info("full_sync_completed", ok=full.ok, summary=full.summary)
        return full

    # ===================
    # WEBHOOKS
    # ===================

    def process_webhook_event(self, event: ZohoWebhookEvent) -> SyncResult:
        """
        Sync the single record a Zoho notification points at.

        Item and sales order create/update events are handled; deletes and
        other resource types are acknowledged and skipped.
        """
        payload = event.data
        resource_type = payload.resource_type.lower()
        operation = payload.operation.lower()

        logger.info(
            "webhook_received",
            event_id=event.event_id,
            resource_type=resource_type,
            resource_id=payload.resource_id,
            operation=operation
        )

        if resource_type == "item":
            result = SyncResult(resource=SyncResource.PRODUCTS)
        elif resource_type == "salesorder":
            result = SyncResult(resource=SyncResource.ORDERS)
        else:
            result = SyncResult(resource=SyncResource.PRODUCTS)
            result.record_skipped(f"Unsupported resource type: {resource_type}")
            return result.finish()

        if operation not in ("create", "update"):
            result.record_skipped(f"Ignored {operation} of {resource_type} {payload.resource_id}")
            return result.finish()

        try:
            if resource_type == "item":
                item = ZohoItem(item_id=payload.resource_id, name=payload.resource_id)
                self._sync_item(item, result)
            else:
                order = ZohoSalesOrder(salesorder_id=payload.resource_id)
                self._sync_order(order, result)
        except ZohoAuthError as e:
            result.abort(f"{resource_type} {payload.resource_id}: {e.message}")
        except Exception as e:
            logger.warning("webhook_sync_failed", resource_id=payload.resource_id, error=str(e))
            result.record_failure(f"{resource_type} {payload.resource_id}: {e}")

        return result.finish()

    # ===================
    # HEALTH
    # ===================

    def health_check(self) -> SyncHealth:
        """Zoho connectivity plus last-sync staleness per resource."""
        connected = self.zoho.test_connection()
        resources = []
        status = "healthy" if connected else "unhealthy"

        for resource in (
            SyncResource.CATEGORIES,
            SyncResource.PRODUCTS,
            SyncResource.ORDERS,
            SyncResource.INVENTORY,
        ):
            try:
                resources.append(self.sync_state.staleness(resource))
            except DatabaseError as e:
                logger.warning("sync_state_unavailable", resource=resource.value, error=e.message)
                status = "unhealthy"

        if status == "healthy" and any(r.stale for r in resources):
            status = "degraded"

        return SyncHealth(status=status, zoho_connected=connected, resources=resources)
