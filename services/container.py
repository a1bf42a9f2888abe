"""
Service wiring.

Builds every client and service once, with explicit dependencies. The
FastAPI lifespan and the CLI scripts both call build_services(); nothing
in the service layer constructs its own collaborators.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import structlog

from integrations.airtable import AirtableClient
from integrations.zoho import ZohoInventoryClient
from services.airtable_sync_service import AirtableSyncService
from services.catalog_service import CatalogService
from services.classification_service import ClassificationService
from services.order_service import OrderService
from services.product_service import ProductService
from services.sync_service import ZohoSyncService
from services.sync_state_service import SyncStateService
from services.token_service import ZohoTokenService

logger = structlog.get_logger(__name__)


@dataclass
class ServiceContainer:
    products: ProductService
    sync_state: SyncStateService
    zoho: ZohoInventoryClient
    sync: ZohoSyncService
    classification: ClassificationService
    airtable_sync: Optional[AirtableSyncService] = None


def build_services(db, settings) -> ServiceContainer:
    """
    Construct the service graph for one process.

    Args:
        db: Supabase client
        settings: Application settings

    Returns:
        ServiceContainer (airtable_sync is None when Airtable is not configured)
    """
    products = ProductService(db)
    catalog = CatalogService(db)
    sync_state = SyncStateService(db, stale_after=timedelta(hours=settings.sync_stale_after_hours))

    zoho = ZohoInventoryClient.from_settings(
        settings,
        token_store=ZohoTokenService(db, settings.zoho_organization_id)
    )

    sync = ZohoSyncService.from_settings(
        settings,
        zoho=zoho,
        products=products,
        catalog=catalog,
        orders=OrderService(db),
        sync_state=sync_state,
    )

    airtable_sync = None
    if settings.airtable_configured:
        airtable_sync = AirtableSyncService(
            airtable=AirtableClient.from_settings(settings),
            products=products,
            catalog=CatalogService(db),
            sync_state=sync_state,
        )
    else:
        logger.info("airtable_not_configured")

    return ServiceContainer(
        products=products,
        sync_state=sync_state,
        zoho=zoho,
        sync=sync,
        classification=ClassificationService.from_settings(settings, products=products),
        airtable_sync=airtable_sync,
    )
