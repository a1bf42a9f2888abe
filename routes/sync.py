"""
Zoho sync routes.

Mounted under /api/zoho. Every sync endpoint answers
{success, message, result}. Sync handlers are plain functions so
FastAPI runs them in its threadpool; a long sync never blocks the loop.
"""

import hashlib
import hmac
import json
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool
import structlog

from exceptions import ValidationError, WebhookSignatureError
from models.sync import (
    FullSyncResponse,
    OrderSyncRequest,
    ProductSyncRequest,
    SyncHealth,
    SyncResponse,
    SyncResult,
)
from models.vendor import ZohoWebhookEvent
from routes.errors import handle_error, handle_sync_error
from services.sync_service import ZohoSyncService

logger = structlog.get_logger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-Zoho-Webhook-Signature"


def get_sync_service(request: Request) -> ZohoSyncService:
    return request.app.state.services.sync


def _respond(result: SyncResult) -> SyncResponse:
    return SyncResponse(success=not result.aborted, message=result.summary, result=result)


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    """
    Check the HMAC-SHA256 hex digest of the raw body.

    No secret configured means verification is off.

    Raises:
        WebhookSignatureError: If the signature is missing or wrong
    """
    if not secret:
        return
    if not signature:
        raise WebhookSignatureError("Missing webhook signature")

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature.strip().lower()):
        raise WebhookSignatureError()


# ===================
# SYNC ROUTES
# ===================

@router.post("/sync/products", response_model=SyncResponse)
def sync_products(
    body: Optional[ProductSyncRequest] = None,
    service: ZohoSyncService = Depends(get_sync_service)
):
    """
    Sync Zoho items into products.

    Body: {"fullSync": false}. Incremental by default.

    Raises:
        409: A product sync is already running
    """
    body = body or ProductSyncRequest()
    try:
        return _respond(service.sync_products(full_sync=body.full_sync))
    except Exception as e:
        return handle_sync_error(e)


@router.post("/sync/categories", response_model=SyncResponse)
def sync_categories(service: ZohoSyncService = Depends(get_sync_service)):
    try:
        return _respond(service.sync_categories())
    except Exception as e:
        return handle_sync_error(e)


@router.post("/sync/orders", response_model=SyncResponse)
def sync_orders(
    body: Optional[OrderSyncRequest] = None,
    service: ZohoSyncService = Depends(get_sync_service)
):
    """Sync sales orders. Body: {"startDate": "YYYY-MM-DD"} (optional)."""
    body = body or OrderSyncRequest()
    try:
        return _respond(service.sync_orders(start_date=body.start_date))
    except Exception as e:
        return handle_sync_error(e)


@router.post("/sync/inventory", response_model=SyncResponse)
def sync_inventory(service: ZohoSyncService = Depends(get_sync_service)):
    try:
        return _respond(service.sync_inventory())
    except Exception as e:
        return handle_sync_error(e)


@router.post("/sync/full", response_model=FullSyncResponse)
def sync_full(service: ZohoSyncService = Depends(get_sync_service)):
    """Categories, products (full), orders, then inventory."""
    try:
        full = service.perform_full_sync()
        return FullSyncResponse(success=full.ok, message=full.summary, result=full)
    except Exception as e:
        return handle_sync_error(e)


# ===================
# HEALTH / WEBHOOK
# ===================

@router.get("/health", response_model=SyncHealth)
def sync_health(service: ZohoSyncService = Depends(get_sync_service)):
    """Zoho connectivity and last-sync staleness per resource."""
    try:
        return service.health_check()
    except Exception as e:
        return handle_error(e)


@router.post("/webhook", response_model=SyncResponse)
async def zoho_webhook(
    request: Request,
    service: ZohoSyncService = Depends(get_sync_service)
):
    """
    Zoho push notification.

    Raises:
        401: Signature missing or invalid (when a secret is configured)
        422: Payload is not a Zoho webhook event
    """
    try:
        body = await request.body()
        verify_signature(
            body,
            request.headers.get(SIGNATURE_HEADER),
            request.app.state.settings.zoho_webhook_secret
        )

        try:
            event = ZohoWebhookEvent.model_validate(json.loads(body or b"{}"))
        except (ValueError, PydanticValidationError) as e:
            raise ValidationError("Invalid webhook payload", details={"error": str(e)})

        result = await run_in_threadpool(service.process_webhook_event, event)
        return _respond(result)

    except WebhookSignatureError as e:
        logger.warning("webhook_signature_rejected", reason=e.message)
        return handle_sync_error(e)
    except Exception as e:
        return handle_sync_error(e)
