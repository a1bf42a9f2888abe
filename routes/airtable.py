"""
Airtable sync and image reconciliation routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
import structlog

from exceptions import ConfigurationError
from models.matching import ReconciliationReport
from models.sync import AirtableSyncRequest, ReconcileRequest, SyncResponse
from routes.errors import handle_error, handle_sync_error
from services.airtable_sync_service import AirtableSyncService

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_airtable_sync_service(request: Request) -> AirtableSyncService:
    service = request.app.state.services.airtable_sync
    if service is None:
        raise ConfigurationError("AIRTABLE_TOKEN", "Airtable is not configured (AIRTABLE_TOKEN, AIRTABLE_BASE_ID)")
    return service


@router.post("/sync", response_model=SyncResponse)
def sync_airtable(request: Request, body: Optional[AirtableSyncRequest] = None):
    """
    Upsert Airtable records into products by SKU.

    Body: {"limit": 10, "since": "2024-05-01T00:00:00Z"} (both optional).
    """
    body = body or AirtableSyncRequest()
    try:
        service = get_airtable_sync_service(request)
        result = service.sync_records(limit=body.limit, since=body.since)
        return SyncResponse(success=not result.aborted, message=result.summary, result=result)
    except Exception as e:
        return handle_sync_error(e)


@router.post("/reconcile", response_model=ReconciliationReport)
def reconcile_images(request: Request, body: Optional[ReconcileRequest] = None):
    """Match Airtable records to products and copy their images (dryRun by default)."""
    body = body or ReconcileRequest()
    try:
        service = get_airtable_sync_service(request)
        return service.reconcile_images(dry_run=body.dry_run)
    except Exception as e:
        return handle_error(e)
