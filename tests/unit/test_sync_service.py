"""
Unit tests for ZohoSyncService.

Runs the real stores (products, catalog, orders, sync state) against the
in-memory Supabase mock, with a fake Zoho client serving fixed pages.

Run: pytest tests/unit/test_sync_service.py -v
"""

import pytest
from datetime import date
from typing import Optional

from exceptions import SyncInProgressError, VendorRecordError, ZohoAPIError, ZohoAuthError
from models.sync import SyncResource
from models.vendor import (
    AirtableRecord,
    RejectedRecord,
    ZohoCategory,
    ZohoItem,
    ZohoItemPage,
    ZohoOrderPage,
    ZohoSalesOrder,
    ZohoWebhookEvent,
)
from services.airtable_sync_service import AirtableSyncService
from services.catalog_service import CatalogService
from services.order_service import OrderService
from services.product_service import ProductService
from services.sync_service import NEWEST_FIRST, ZohoSyncService
from services.sync_state_service import SyncStateService
from tests.factories import AirtableRecordFactory, ProductFactory, ZohoItemFactory


class FakeZoho:
    """Serves items and orders from lists, newest first, in fixed-size pages."""

    def __init__(self):
        self.items: list[dict] = []
        self.orders: list[dict] = []
        self.categories: list[dict] = []
        self.stock: dict[str, int] = {}
        self.page_errors: dict[int, Exception] = {}
        self.detail_errors: dict[str, Exception] = {}
        self.rejected: list[RejectedRecord] = []
        self.detail_calls: list[str] = []
        self.list_filters: list[dict] = []
        self.connected = True

    def get_products(self, page=1, per_page=50, filters=None) -> ZohoItemPage:
        self.list_filters.append(filters)
        if page in self.page_errors:
            raise self.page_errors[page]
        start = (page - 1) * per_page
        chunk = self.items[start:start + per_page]
        return ZohoItemPage(
            items=[ZohoItem.model_validate(i) for i in chunk],
            rejected=self.rejected if page == 1 else [],
            has_more=start + per_page < len(self.items),
            page=page,
        )

    def get_product(self, item_id) -> ZohoItem:
        self.detail_calls.append(item_id)
        if item_id in self.detail_errors:
            raise self.detail_errors[item_id]
        return ZohoItem.model_validate(next(i for i in self.items if i["item_id"] == item_id))

    def find_product_by_sku(self, sku) -> Optional[ZohoItem]:
        for raw in self.items:
            if raw.get("sku") == sku:
                return ZohoItem.model_validate(raw)
        return None

    def get_inventory_level(self, item_id, warehouse_id=None) -> dict:
        return {"item_id": item_id, "available_stock": self.stock.get(item_id, 0)}

    def get_categories(self):
        return [ZohoCategory.model_validate(c) for c in self.categories]

    def get_orders(self, page=1, per_page=50, filters=None) -> ZohoOrderPage:
        self.list_filters.append(filters)
        start = (page - 1) * per_page
        chunk = self.orders[start:start + per_page]
        return ZohoOrderPage(
            orders=[ZohoSalesOrder.model_validate(o) for o in chunk],
            has_more=start + per_page < len(self.orders),
            page=page,
        )

    def get_order(self, salesorder_id) -> ZohoSalesOrder:
        return ZohoSalesOrder.model_validate(
            next(o for o in self.orders if o["salesorder_id"] == salesorder_id)
        )

    def test_connection(self) -> bool:
        return self.connected


@pytest.fixture
def zoho():
    return FakeZoho()


@pytest.fixture
def sync_service(mock_supabase, zoho):
    return ZohoSyncService(
        zoho=zoho,
        products=ProductService(mock_supabase),
        catalog=CatalogService(mock_supabase),
        orders=OrderService(mock_supabase),
        sync_state=SyncStateService(mock_supabase),
        batch_size=2,
        sleep=lambda seconds: None,
    )


class TestSyncProducts:
    """Tests for ZohoSyncService.sync_products()"""

    def test_creates_products_and_references(self, sync_service, zoho, mock_supabase):
        zoho.items = [
            ZohoItemFactory.create(name="RooR Tech Beaker", sku="RR-1"),
            ZohoItemFactory.create(sku="GW-2"),
            ZohoItemFactory.create(sku="GW-3"),
        ]

        result = sync_service.sync_products()

        assert result.success == 3
        assert result.created == 3
        assert result.failed == 0
        assert not result.aborted
        assert sorted(r["sku"] for r in mock_supabase.rows("products")) == ["GW-2", "GW-3", "RR-1"]
        assert [r["slug"] for r in mock_supabase.rows("categories")] == ["accessories"]
        assert [r["slug"] for r in mock_supabase.rows("brands")] == ["roor"]

        roor = next(r for r in mock_supabase.rows("products") if r["sku"] == "RR-1")
        assert roor["brand_id"] == mock_supabase.rows("brands")[0]["id"]
        assert roor["category_id"] == mock_supabase.rows("categories")[0]["id"]

    def test_lists_newest_first(self, sync_service, zoho):
        zoho.items = [ZohoItemFactory.create()]
        sync_service.sync_products()
        assert zoho.list_filters[0] == NEWEST_FIRST

    def test_rerun_is_idempotent(self, sync_service, zoho, mock_supabase):
        zoho.items = ZohoItemFactory.create_batch(3)

        sync_service.sync_products(full_sync=True)
        second = sync_service.sync_products(full_sync=True)

        assert second.created == 0
        assert second.updated == 3
        assert len(mock_supabase.rows("products")) == 3
        assert len(mock_supabase.rows("categories")) == 1

    def test_one_failing_item_does_not_stop_the_batch(self, sync_service, zoho, mock_supabase):
        zoho.items = ZohoItemFactory.create_batch(3)
        bad_id = zoho.items[1]["item_id"]
        zoho.detail_errors[bad_id] = ZohoAPIError("Item does not exist.", status=404)

        result = sync_service.sync_products()

        assert result.success == 2
        assert result.failed == 1
        assert bad_id in result.errors[0]
        assert len(mock_supabase.rows("products")) == 2

    def test_invalid_detail_payload_is_a_failure(self, sync_service, zoho):
        zoho.items = ZohoItemFactory.create_batch(2)
        bad_id = zoho.items[0]["item_id"]
        zoho.detail_errors[bad_id] = VendorRecordError("zoho", bad_id, "Field required")

        result = sync_service.sync_products()

        assert result.failed == 1
        assert result.success == 1

    def test_rejected_list_records_are_reported(self, sync_service, zoho):
        zoho.items = [ZohoItemFactory.create()]
        zoho.rejected = [RejectedRecord(vendor_id="999", reason="Field required")]

        result = sync_service.sync_products()

        assert result.failed == 1
        assert result.errors == ["Product 999: Field required"]
        assert result.success == 1

    def test_missing_sku_is_skipped_and_reported(self, sync_service, zoho, mock_supabase):
        zoho.items = [ZohoItemFactory.create(sku=None, name="Mystery Glass"), ZohoItemFactory.create()]
        no_sku_id = zoho.items[0]["item_id"]

        result = sync_service.sync_products()

        assert result.skipped == 1
        assert result.success == 1
        assert result.failed == 0
        assert no_sku_id in result.errors[0]
        assert "missing SKU" in result.errors[0]
        assert len(mock_supabase.rows("products")) == 1

    def test_page_failure_aborts_with_partial_counts(self, sync_service, zoho, mock_supabase):
        zoho.items = ZohoItemFactory.create_batch(3)
        zoho.page_errors[2] = ZohoAPIError("rate limited", status=429)

        result = sync_service.sync_products()

        assert result.aborted
        assert result.success == 2
        assert result.errors[-1] == "Page 2: rate limited"
        assert mock_supabase.rows("sync_state") == []

    def test_auth_failure_aborts(self, sync_service, zoho):
        zoho.items = ZohoItemFactory.create_batch(2)
        zoho.detail_errors[zoho.items[0]["item_id"]] = ZohoAuthError("refresh token revoked")

        result = sync_service.sync_products()

        assert result.aborted
        assert result.success == 0
        assert zoho.detail_calls == [zoho.items[0]["item_id"]]

    def test_successful_run_records_cursor(self, sync_service, zoho, mock_supabase):
        zoho.items = [ZohoItemFactory.create()]

        result = sync_service.sync_products()

        state = mock_supabase.rows("sync_state")
        assert state[0]["resource"] == "products"
        assert state[0]["last_synced_at"] == result.started_at.isoformat()
        assert result.finished_at is not None

    def test_incremental_sync_stops_at_cursor(self, sync_service, zoho, mock_supabase):
        mock_supabase.set_table_data("sync_state", [
            {"resource": "products", "last_synced_at": "2024-05-01T12:00:00+00:00"}
        ])
        zoho.items = [
            ZohoItemFactory.create(last_modified_time="2024-05-02T10:00:00-0400"),
            ZohoItemFactory.create(last_modified_time="2024-04-30T10:00:00-0400"),
            ZohoItemFactory.create(last_modified_time="2024-04-29T10:00:00-0400"),
        ]

        result = sync_service.sync_products()

        assert result.created == 1
        assert result.skipped == 1
        assert zoho.detail_calls == [zoho.items[0]["item_id"]]
        # Second page is never requested
        assert len(zoho.list_filters) == 1

    def test_full_sync_ignores_cursor(self, sync_service, zoho):
        sync_service.sync_state.mark_synced(SyncResource.PRODUCTS)
        zoho.items = ZohoItemFactory.create_batch(2)

        result = sync_service.sync_products(full_sync=True)

        assert result.created == 2

    def test_concurrent_run_is_rejected(self, sync_service):
        lock = sync_service._locks[SyncResource.PRODUCTS]
        lock.acquire()
        try:
            assert sync_service.is_running(SyncResource.PRODUCTS)
            with pytest.raises(SyncInProgressError) as exc_info:
                sync_service.sync_products()
            assert exc_info.value.status_code == 409
        finally:
            lock.release()

        assert not sync_service.is_running(SyncResource.PRODUCTS)


class TestSyncCategories:
    """Tests for ZohoSyncService.sync_categories()"""

    def test_upserts_by_slug(self, sync_service, zoho, mock_supabase):
        zoho.categories = [
            {"category_id": "1", "name": "Glass Pipes", "parent_category_id": "-1"},
            {"category_id": "2", "name": "Rolling Papers"},
        ]

        first = sync_service.sync_categories()
        second = sync_service.sync_categories()

        assert first.created == 2
        assert second.updated == 2
        assert sorted(r["slug"] for r in mock_supabase.rows("categories")) == ["glass-pipes", "rolling-papers"]


class TestSyncOrders:
    """Tests for ZohoSyncService.sync_orders()"""

    def test_creates_orders_and_customers(self, sync_service, zoho, mock_supabase):
        zoho.orders = [
            {"salesorder_id": "SO1", "status": "confirmed", "customer_id": "C1",
             "customer_name": "Jane", "email": "Jane@Example.com", "total": 20,
             "line_items": [{"item_id": "I1", "quantity": 1, "rate": 20}]},
            {"salesorder_id": "SO2", "status": "closed", "customer_id": "C1",
             "customer_name": "Jane", "email": "jane@example.com", "total": 5},
        ]

        first = sync_service.sync_orders(start_date=date(2024, 5, 1))
        second = sync_service.sync_orders()

        assert first.created == 2
        assert second.updated == 2
        assert zoho.list_filters[0]["date_start"] == "2024-05-01"
        assert len(mock_supabase.rows("orders")) == 2
        assert len(mock_supabase.rows("customers")) == 1
        assert mock_supabase.rows("customers")[0]["email"] == "jane@example.com"

        statuses = {r["zoho_salesorder_id"]: r["status"] for r in mock_supabase.rows("orders")}
        assert statuses == {"SO1": "confirmed", "SO2": "completed"}

    def test_order_without_email_gets_placeholder_customer(self, sync_service, zoho, mock_supabase):
        zoho.orders = [{"salesorder_id": "SO9", "customer_id": "C42"}]

        sync_service.sync_orders()

        assert mock_supabase.rows("customers")[0]["email"] == "customer-C42@zoho.local"


class TestSyncInventory:
    """Tests for ZohoSyncService.sync_inventory()"""

    def test_updates_changed_stock_only(self, sync_service, zoho, mock_supabase):
        mock_supabase.set_table_data("products", [
            ProductFactory.create(id="p1", sku="A-1", zoho_item_id="Z1", stock_quantity=5),
            ProductFactory.create(id="p2", sku="B-2", stock_quantity=8),
            ProductFactory.create(id="p3", sku="GONE-3", stock_quantity=1),
        ])
        zoho.stock = {"Z1": 9}
        zoho.items = [ZohoItemFactory.create(sku="B-2", available_stock=8)]

        result = sync_service.sync_inventory()

        assert result.updated == 1
        assert result.success == 2
        assert result.skipped == 1
        assert "GONE-3" in result.errors[0]

        stock = {r["id"]: r["stock_quantity"] for r in mock_supabase.rows("products")}
        assert stock == {"p1": 9, "p2": 8, "p3": 1}


class TestFullSync:
    """Tests for ZohoSyncService.perform_full_sync()"""

    def test_runs_resources_in_order(self, sync_service, zoho):
        zoho.items = [ZohoItemFactory.create()]

        full = sync_service.perform_full_sync()

        assert [r.resource for r in full.results] == [
            SyncResource.CATEGORIES,
            SyncResource.PRODUCTS,
            SyncResource.ORDERS,
            SyncResource.INVENTORY,
        ]
        assert full.ok

    def test_busy_resource_does_not_stop_the_rest(self, sync_service, zoho):
        zoho.items = [ZohoItemFactory.create()]
        lock = sync_service._locks[SyncResource.ORDERS]
        lock.acquire()
        try:
            full = sync_service.perform_full_sync()
        finally:
            lock.release()

        orders = full.results[2]
        assert orders.aborted
        assert full.results[3].resource == SyncResource.INVENTORY
        assert not full.ok


class TestWebhook:
    """Tests for ZohoSyncService.process_webhook_event()"""

    @staticmethod
    def _event(resource_type, resource_id, operation) -> ZohoWebhookEvent:
        return ZohoWebhookEvent.model_validate({
            "event_id": "evt-1",
            "data": {"resource_type": resource_type, "resource_id": resource_id, "operation": operation},
        })

    def test_item_update_syncs_single_product(self, sync_service, zoho, mock_supabase):
        zoho.items = [ZohoItemFactory.create(item_id="77", sku="WH-77")]

        result = sync_service.process_webhook_event(self._event("item", "77", "update"))

        assert result.created == 1
        assert mock_supabase.rows("products")[0]["sku"] == "WH-77"

    def test_salesorder_create(self, sync_service, zoho, mock_supabase):
        zoho.orders = [{"salesorder_id": "SO5", "email": "a@b.com"}]

        result = sync_service.process_webhook_event(self._event("salesorder", "SO5", "create"))

        assert result.resource == SyncResource.ORDERS
        assert result.created == 1

    def test_delete_is_skipped(self, sync_service, zoho):
        result = sync_service.process_webhook_event(self._event("item", "77", "delete"))

        assert result.skipped == 1
        assert zoho.detail_calls == []

    def test_unsupported_resource_is_skipped(self, sync_service):
        result = sync_service.process_webhook_event(self._event("invoice", "1", "create"))
        assert result.skipped == 1
        assert "invoice" in result.errors[0]

    def test_vendor_error_is_recorded(self, sync_service, zoho):
        zoho.items = [ZohoItemFactory.create(item_id="77")]
        zoho.detail_errors["77"] = ZohoAPIError("gone", status=404)

        result = sync_service.process_webhook_event(self._event("item", "77", "update"))

        assert result.failed == 1


class TestHealthCheck:
    """Tests for ZohoSyncService.health_check()"""

    def test_never_synced_is_degraded(self, sync_service):
        health = sync_service.health_check()

        assert health.status == "degraded"
        assert health.zoho_connected
        assert all(r.stale for r in health.resources)

    def test_fresh_sync_is_healthy(self, sync_service):
        for resource in (SyncResource.CATEGORIES, SyncResource.PRODUCTS,
                         SyncResource.ORDERS, SyncResource.INVENTORY):
            sync_service.sync_state.mark_synced(resource)

        assert sync_service.health_check().status == "healthy"

    def test_disconnected_is_unhealthy(self, sync_service, zoho):
        zoho.connected = False
        assert sync_service.health_check().status == "unhealthy"


class TestCrossSourceFlags:
    """Zoho and Airtable write the same product row."""

    class _Airtable:
        def __init__(self, records):
            self.records = [AirtableRecord.model_validate(r) for r in records]

        def iter_records(self, limit=None, since=None):
            yield from self.records

    def test_airtable_sync_keeps_zoho_age_restriction(self, sync_service, zoho, mock_supabase):
        zoho.items = [ZohoItemFactory.create(
            sku="GUM-1",
            name="Sleep Gummies",
            custom_fields=[{"label": "Age Required", "value": True}],
        )]
        sync_service.sync_products(full_sync=True)
        assert mock_supabase.rows("products")[0]["age_restricted"] is True

        airtable_sync = AirtableSyncService(
            airtable=self._Airtable([AirtableRecordFactory.create(sku="GUM-1", name="Sleep Gummies")]),
            products=sync_service.products,
            catalog=CatalogService(mock_supabase),
        )
        result = airtable_sync.sync_records()

        assert result.updated == 1
        row = mock_supabase.rows("products")[0]
        assert row["age_restricted"] is True
        assert len(mock_supabase.rows("products")) == 1

    def test_new_product_stores_false_flags(self, sync_service, zoho, mock_supabase):
        zoho.items = [ZohoItemFactory.create(sku="ASH-1", name="Glass Ashtray")]

        sync_service.sync_products(full_sync=True)

        row = mock_supabase.rows("products")[0]
        assert row["age_restricted"] is False
        assert row["is_nicotine"] is False
