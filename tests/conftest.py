"""
Shared test fixtures.

The Supabase mock is stateful: inserts, updates and upserts persist in
memory so sync runs can be replayed against the same store.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

# Required settings must exist before config is imported
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("ZOHO_CLIENT_ID", "test-client-id")
os.environ.setdefault("ZOHO_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("ZOHO_REFRESH_TOKEN", "test-refresh-token")
os.environ.setdefault("ZOHO_ORGANIZATION_ID", "600000001")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")

import pytest
from unittest.mock import MagicMock
from datetime import datetime, timezone
from typing import Any, Optional


# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: Any = None, count: Optional[int] = None):
        self.data = data if data is not None else []
        self.count = count


class MockSupabaseQuery:
    """Chainable query builder evaluated against the client's in-memory tables."""

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._op = "select"
        self._columns: Optional[list[str]] = None
        self._payload: Any = None
        self._on_conflict: Optional[str] = None
        self._filters: list = []
        self._order: Optional[tuple[str, bool]] = None
        self._range: Optional[tuple[int, int]] = None
        self._limit: Optional[int] = None
        self._single = False
        self._count: Optional[str] = None

    # ===================
    # OPERATIONS
    # ===================

    def select(self, columns: str = "*", count: Optional[str] = None):
        self._op = "select"
        if columns.strip() != "*":
            self._columns = [c.strip() for c in columns.split(",")]
        self._count = count
        return self

    def insert(self, data):
        self._op = "insert"
        self._payload = data
        return self

    def update(self, data):
        self._op = "update"
        self._payload = data
        return self

    def upsert(self, data, on_conflict: Optional[str] = None):
        self._op = "upsert"
        self._payload = data
        self._on_conflict = on_conflict
        return self

    def delete(self):
        self._op = "delete"
        return self

    # ===================
    # FILTERS AND MODIFIERS
    # ===================

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self._filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc: bool = False):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._single = True
        return self

    # ===================
    # EXECUTION
    # ===================

    def execute(self) -> MockSupabaseResponse:
        error = self._client.errors.get(self._table)
        if error is not None:
            raise error

        rows = self._client.tables.setdefault(self._table, [])
        self._client.calls.append((self._table, self._op))

        if self._op == "insert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            created = [self._client.stamp(self._table, dict(item)) for item in items]
            rows.extend(created)
            return MockSupabaseResponse([dict(r) for r in created])

        if self._op == "upsert":
            items = self._payload if isinstance(self._payload, list) else [self._payload]
            key = self._on_conflict or "id"
            out = []
            for item in items:
                existing = next((r for r in rows if key in item and r.get(key) == item[key]), None)
                if existing is not None:
                    existing.update(item)
                    existing["updated_at"] = _now_iso()
                    out.append(dict(existing))
                else:
                    new = self._client.stamp(self._table, dict(item))
                    rows.append(new)
                    out.append(dict(new))
            return MockSupabaseResponse(out)

        matched = [r for r in rows if all(f(r) for f in self._filters)]

        if self._op == "update":
            for row in matched:
                row.update(self._payload)
                row["updated_at"] = _now_iso()
            return MockSupabaseResponse([dict(r) for r in matched])

        if self._op == "delete":
            self._client.tables[self._table] = [r for r in rows if r not in matched]
            return MockSupabaseResponse([dict(r) for r in matched])

        total = len(matched)
        if self._order:
            column, desc = self._order
            matched = sorted(matched, key=lambda r: str(r.get(column) or ""), reverse=desc)
        if self._range:
            start, end = self._range
            matched = matched[start:end + 1]
        if self._limit is not None:
            matched = matched[:self._limit]

        data = [
            {c: r.get(c) for c in self._columns} if self._columns else dict(r)
            for r in matched
        ]

        if self._single:
            if len(data) != 1:
                raise Exception(f"JSON object requested, multiple (or no) rows returned: The result contains {len(data)} rows")
            return MockSupabaseResponse(data[0], count=1)

        return MockSupabaseResponse(data, count=total if self._count else None)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MockSupabaseClient:
    """In-memory stand-in for supabase.Client."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self._ids = 0

    def set_table_data(self, table_name: str, data: list):
        """Seed a table with rows (copied)."""
        self.tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        return self.tables.get(table_name, [])

    def fail_table(self, table_name: str, error: Exception):
        """Make every query on a table raise."""
        self.errors[table_name] = error

    def stamp(self, table_name: str, row: dict) -> dict:
        self._ids += 1
        now = _now_iso()
        row.setdefault("id", f"{table_name}-{self._ids}")
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        return row

    def table(self, name: str) -> MockSupabaseQuery:
        return MockSupabaseQuery(self, name)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a stateful mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("products", [
                {"id": "1", "sku": "TEST", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def sample_product_row() -> dict:
    """Sample products row as stored."""
    return {
        "id": "prod-1",
        "sku": "RAW-CONE-KS",
        "name": "RAW Classic King Size Cones",
        "description": "Pre-rolled natural cones",
        "price": 12.99,
        "stock_quantity": 40,
        "image_urls": ["https://cdn.example.com/raw-cone.jpg"],
        "is_active": True,
        "zoho_item_id": "4600000000001",
        "created_at": "2024-05-01T10:00:00+00:00",
        "updated_at": "2024-05-01T10:00:00+00:00"
    }


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def mock_services():
    """ServiceContainer with every service mocked."""
    from services.airtable_sync_service import AirtableSyncService
    from services.classification_service import ClassificationService
    from services.container import ServiceContainer
    from services.product_service import ProductService
    from services.sync_service import ZohoSyncService
    from services.sync_state_service import SyncStateService
    from integrations.zoho import ZohoInventoryClient

    return ServiceContainer(
        products=MagicMock(spec=ProductService),
        sync_state=MagicMock(spec=SyncStateService),
        zoho=MagicMock(spec=ZohoInventoryClient),
        sync=MagicMock(spec=ZohoSyncService),
        classification=MagicMock(spec=ClassificationService),
        airtable_sync=MagicMock(spec=AirtableSyncService),
    )


@pytest.fixture
def test_client(mock_services, mock_supabase):
    """
    Create FastAPI test client wired to mocked services.

    The lifespan is not run, so no database or vendor connection is made.

    Usage:
        def test_endpoint(test_client, mock_services):
            mock_services.products.get_all.return_value = ([], 0)
            response = test_client.get("/api/products")
    """
    from fastapi.testclient import TestClient
    from config.settings import get_settings
    from main import app

    app.state.db = mock_supabase
    app.state.services = mock_services
    app.state.settings = get_settings().model_copy(update={"zoho_webhook_secret": None})

    return TestClient(app)
