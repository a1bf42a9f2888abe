"""
Business logic services.

Each service handles one domain area.
"""

from services.product_service import ProductService
from services.catalog_service import CatalogService
from services.order_service import OrderService
from services.token_service import ZohoTokenService
from services.sync_state_service import SyncStateService
from services.sync_service import ZohoSyncService
from services.airtable_sync_service import AirtableSyncService
from services.classification_service import ClassificationService
from services.matcher import ProductMatcher, DEFAULT_MATCHER, BRAND_MATCHER
from services.container import ServiceContainer, build_services

__all__ = [
    "ProductService",
    "CatalogService",
    "OrderService",
    "ZohoTokenService",
    "SyncStateService",
    "ZohoSyncService",
    "AirtableSyncService",
    "ClassificationService",
    "ProductMatcher",
    "DEFAULT_MATCHER",
    "BRAND_MATCHER",
    "ServiceContainer",
    "build_services",
]
