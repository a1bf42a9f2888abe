"""
Sync schemas: per-run accounting, request bodies and API responses.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import date, datetime, timezone
from enum import Enum


class SyncResource(str, Enum):
    """Independently synced resource types."""
    PRODUCTS = "products"
    CATEGORIES = "categories"
    ORDERS = "orders"
    INVENTORY = "inventory"
    AIRTABLE = "airtable"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SyncResult(BaseModel):
    """
    Aggregate of one resource sync run.

    success counts items that were persisted (created + updated, or
    touched for inventory). skipped items are neither success nor failure
    unless they carry an error (a missing SKU is skipped and reported).
    """

    resource: SyncResource
    success: int = 0
    failed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)
    aborted: bool = False
    started_at: datetime = Field(default_factory=_now)
    finished_at: Optional[datetime] = None

    def record_created(self) -> None:
        self.success += 1
        self.created += 1

    def record_updated(self) -> None:
        self.success += 1
        self.updated += 1

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def record_skipped(self, message: Optional[str] = None) -> None:
        self.skipped += 1
        if message:
            self.errors.append(message)

    def abort(self, message: str) -> None:
        """Stop the run early, keeping the partial counts."""
        self.aborted = True
        self.errors.append(message)

    def finish(self) -> "SyncResult":
        self.finished_at = _now()
        return self

    @property
    def ok(self) -> bool:
        """True when the run completed without aborting."""
        return not self.aborted

    @property
    def summary(self) -> str:
        return (
            f"{self.resource.value}: {self.success} synced "
            f"({self.created} created, {self.updated} updated), "
            f"{self.failed} failed, {self.skipped} skipped"
        )


class FullSyncResult(BaseModel):
    """Results of categories, products, orders and inventory, in run order."""

    results: list[SyncResult] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def summary(self) -> str:
        return "; ".join(r.summary for r in self.results)


# ===================
# REQUEST BODIES
# ===================

class ProductSyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    full_sync: bool = Field(False, alias="fullSync")


class OrderSyncRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[date] = Field(None, alias="startDate")


class AirtableSyncRequest(BaseModel):
    limit: Optional[int] = Field(None, ge=1)
    since: Optional[datetime] = None


class ReconcileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    dry_run: bool = Field(True, alias="dryRun")


# ===================
# RESPONSES
# ===================

class SyncResponse(BaseModel):
    """Envelope returned by every sync endpoint."""

    success: bool
    message: str
    result: Optional[SyncResult] = None


class FullSyncResponse(BaseModel):
    success: bool
    message: str
    result: FullSyncResult


class ResourceHealth(BaseModel):
    resource: SyncResource
    last_synced_at: Optional[datetime] = None
    stale: bool = True


class SyncHealth(BaseModel):
    """Vendor connectivity plus last-sync staleness per resource."""

    status: str
    zoho_connected: bool
    resources: list[ResourceHealth] = Field(default_factory=list)
    checked_at: datetime = Field(default_factory=_now)
