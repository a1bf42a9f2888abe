"""
Sync bookkeeping.

Records when each resource last synced successfully. The products
timestamp doubles as the incremental sync cursor.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import structlog

from models.sync import ResourceHealth, SyncResource
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


class SyncStateService:
    """Per-resource last-sync timestamps in the sync_state table."""

    def __init__(self, db, stale_after: timedelta = timedelta(hours=24)):
        self.db = db
        self.stale_after = stale_after
        self.table = "sync_state"

    def get_last_synced(self, resource: SyncResource) -> Optional[datetime]:
        try:
            result = (
                self.db.table(self.table)
                .select("last_synced_at")
                .eq("resource", resource.value)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise DatabaseError("select", str(e), details={"table": self.table})

        if not result.data or not result.data[0].get("last_synced_at"):
            return None

        value = result.data[0]["last_synced_at"]
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        return value

    def mark_synced(self, resource: SyncResource, at: Optional[datetime] = None) -> None:
        at = at or datetime.now(timezone.utc)
        try:
            self.db.table(self.table).upsert(
                {"resource": resource.value, "last_synced_at": at.isoformat()},
                on_conflict="resource"
            ).execute()
        except Exception as e:
            raise DatabaseError("upsert", str(e), details={"table": self.table})

        logger.debug("sync_state_marked", resource=resource.value, at=at.isoformat())

    def staleness(self, resource: SyncResource, now: Optional[datetime] = None) -> ResourceHealth:
        now = now or datetime.now(timezone.utc)
        last = self.get_last_synced(resource)
        stale = last is None or now - last > self.stale_after
        return ResourceHealth(resource=resource, last_synced_at=last, stale=stale)
