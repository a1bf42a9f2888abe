"""
Airtable sync and image reconciliation.

sync_records upserts Airtable rows into products by SKU.
reconcile_images matches Airtable rows that carry images against the
existing catalogue (SKU or name similarity) and copies the image URLs.
"""

import threading
from datetime import datetime, timezone
from typing import Optional

import structlog

from exceptions import AirtableAPIError, DatabaseError, SyncInProgressError
from models.matching import ReconciliationReport
from models.sync import SyncResource, SyncResult
from services.field_mapper import map_airtable_record
from services.matcher import DEFAULT_MATCHER, ProductMatcher, record_from_airtable, record_from_product

logger = structlog.get_logger(__name__)


class AirtableSyncService:
    """Airtable → products."""

    def __init__(self, airtable, products, catalog, sync_state=None):
        self.airtable = airtable
        self.products = products
        self.catalog = catalog
        self.sync_state = sync_state
        self._lock = threading.Lock()

    def sync_records(self, limit: Optional[int] = None, since: Optional[datetime] = None) -> SyncResult:
        """
        Upsert Airtable records into products.

        Args:
            limit: Stop after this many records
            since: Only records modified at or after this time

        Raises:
            SyncInProgressError: If an Airtable sync is already running
        """
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError(SyncResource.AIRTABLE.value)

        try:
            started_at = datetime.now(timezone.utc)
            result = SyncResult(resource=SyncResource.AIRTABLE, started_at=started_at)
            logger.info("airtable_sync_started", limit=limit, since=since.isoformat() if since else None)

            try:
                for record in self.airtable.iter_records(limit=limit, since=since):
                    try:
                        fields = map_airtable_record(record)
                        if not fields.sku:
                            result.record_skipped(f"Record {record.id}: missing SKU")
                            continue

                        category_id = self.catalog.resolve_category(fields.category_name)
                        brand_id = self.catalog.resolve_brand(fields.brand_name)
                        _, created = self.products.upsert_by_sku(
                            fields,
                            category_id=category_id,
                            brand_id=brand_id
                        )
                    except Exception as e:
                        logger.warning("airtable_record_failed", record_id=record.id, error=str(e))
                        result.record_failure(f"Record {record.id}: {e}")
                        continue

                    if created:
                        result.record_created()
                    else:
                        result.record_updated()

            except AirtableAPIError as e:
                logger.error("airtable_page_failed", error=e.message)
                result.abort(f"Airtable: {e.message}")

            result.finish()
            if not result.aborted and self.sync_state is not None:
                try:
                    self.sync_state.mark_synced(SyncResource.AIRTABLE, started_at)
                except DatabaseError as e:
                    logger.warning("sync_state_update_failed", resource=SyncResource.AIRTABLE.value, error=e.message)

            logger.info(
                "airtable_sync_completed",
                success=result.success,
                created=result.created,
                updated=result.updated,
                failed=result.failed,
                skipped=result.skipped,
                aborted=result.aborted
            )
            return result

        finally:
            self._lock.release()

    def reconcile_images(
        self,
        dry_run: bool = True,
        matcher: ProductMatcher = DEFAULT_MATCHER
    ) -> ReconciliationReport:
        """
        Copy Airtable images onto matching local products.

        Args:
            dry_run: Match and report without writing
            matcher: Matcher variant (BRAND_MATCHER for single-brand runs)

        Returns:
            ReconciliationReport
        """
        candidates = []
        images: dict[str, list[str]] = {}

        for record in self.airtable.iter_records():
            image_urls = map_airtable_record(record).image_urls
            if not image_urls:
                continue
            images[record.id] = image_urls
            candidates.append(record_from_airtable(record))

        pool = [record_from_product(row) for row in self.products.list_for_matching()]
        matches, unmatched = matcher.match_all(candidates, pool)

        report = ReconciliationReport(
            matches=matches,
            unmatched_ids=[r.id for r in unmatched],
            dry_run=dry_run
        )

        if not dry_run:
            for match in matches:
                urls = images[match.record.id]
                if match.product.payload.get("image_urls") == urls:
                    continue
                self.products.update_images(match.product.id, urls)
                report.updated += 1

        logger.info(
            "image_reconciliation_completed",
            matched=len(matches),
            unmatched=len(unmatched),
            updated=report.updated,
            dry_run=dry_run
        )
        return report
