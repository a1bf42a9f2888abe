"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    TimestampMixin
)
from models.vendor import (
    ZohoItem,
    ZohoItemPage,
    ZohoCategory,
    ZohoSalesOrder,
    ZohoOrderPage,
    ZohoContact,
    ZohoCustomField,
    ZohoWebhookEvent,
    AirtableRecord,
    AirtableRecordPage
)
from models.product import (
    LocalProductFields,
    CategoryFields,
    OrderFields,
    ProductResponse,
    ProductListResponse
)
from models.sync import (
    SyncResource,
    SyncResult,
    FullSyncResult,
    ProductSyncRequest,
    OrderSyncRequest,
    AirtableSyncRequest,
    ReconcileRequest,
    SyncResponse,
    FullSyncResponse,
    ResourceHealth,
    SyncHealth
)
from models.matching import (
    MatchType,
    MatchRecord,
    MatchCandidate,
    ReconciliationReport
)
from models.classification import (
    ComplianceCategory,
    RiskLevel,
    ClassificationSource,
    Classification,
    ClassifyRequest,
    BulkClassifyRequest,
    BulkClassifyResult,
    CannabinoidProfile,
    Contaminants,
    COAValidation
)

__all__ = [
    # Base
    "BaseSchema",
    "TimestampMixin",
    # Vendor
    "ZohoItem",
    "ZohoItemPage",
    "ZohoCategory",
    "ZohoSalesOrder",
    "ZohoOrderPage",
    "ZohoContact",
    "ZohoCustomField",
    "ZohoWebhookEvent",
    "AirtableRecord",
    "AirtableRecordPage",
    # Product
    "LocalProductFields",
    "CategoryFields",
    "OrderFields",
    "ProductResponse",
    "ProductListResponse",
    # Sync
    "SyncResource",
    "SyncResult",
    "FullSyncResult",
    "ProductSyncRequest",
    "OrderSyncRequest",
    "AirtableSyncRequest",
    "ReconcileRequest",
    "SyncResponse",
    "FullSyncResponse",
    "ResourceHealth",
    "SyncHealth",
    # Matching
    "MatchType",
    "MatchRecord",
    "MatchCandidate",
    "ReconciliationReport",
    # Classification
    "ComplianceCategory",
    "RiskLevel",
    "ClassificationSource",
    "Classification",
    "ClassifyRequest",
    "BulkClassifyRequest",
    "BulkClassifyResult",
    "CannabinoidProfile",
    "Contaminants",
    "COAValidation",
]
