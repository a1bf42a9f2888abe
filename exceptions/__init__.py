"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DuplicateError,
    ExternalServiceError,
    DatabaseError,
    ConfigurationError,

    # Product-specific
    ProductNotFoundError,
    ProductSKUExistsError,

    # Vendors
    ZohoAuthError,
    ZohoAPIError,
    AirtableAPIError,
    VendorRecordError,

    # Sync
    SyncInProgressError,
    WebhookSignatureError,

    # Classification
    COAExtractionError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DuplicateError",
    "ExternalServiceError",
    "DatabaseError",
    "ConfigurationError",

    # Product
    "ProductNotFoundError",
    "ProductSKUExistsError",

    # Vendors
    "ZohoAuthError",
    "ZohoAPIError",
    "AirtableAPIError",
    "VendorRecordError",

    # Sync
    "SyncInProgressError",
    "WebhookSignatureError",

    # Classification
    "COAExtractionError",
]
