"""
Custom exception classes for the application.

Every error carries a stable code, an HTTP status and a details dict so
routes can turn it into a JSON response without extra mapping.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource or running operation (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate resource (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str
    ):
        super().__init__(
            code=f"{resource.upper()}_{field.upper()}_EXISTS",
            message=f"{resource} with this {field} already exists",
            details={field: value}
        )


class ExternalServiceError(AppError):
    """External service failure (503 unless overridden)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None,
        code: Optional[str] = None,
        status_code: int = 503
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=status_code,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


class ConfigurationError(AppError):
    """Required configuration is missing (503)."""

    def __init__(self, setting: str, message: Optional[str] = None):
        super().__init__(
            code="CONFIGURATION_MISSING",
            message=message or f"{setting} is not configured",
            status_code=503,
            details={"setting": setting}
        )


# ===================
# PRODUCT ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


class ProductSKUExistsError(DuplicateError):
    """Product SKU already exists."""

    def __init__(self, sku: str):
        super().__init__(
            resource="Product",
            field="sku",
            value=sku
        )


# ===================
# VENDOR ERRORS
# ===================

class ZohoAuthError(ExternalServiceError):
    """Zoho OAuth token could not be obtained or was rejected twice."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="zoho",
            message=message,
            details=details,
            code="ZOHO_AUTH_FAILED",
            status_code=502
        )


class ZohoAPIError(ExternalServiceError):
    """Zoho Inventory returned an error or was unreachable."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        endpoint: Optional[str] = None
    ):
        self.status = status
        super().__init__(
            service="zoho",
            message=message,
            details={"status": status, "endpoint": endpoint},
            code="ZOHO_API_ERROR",
            status_code=502
        )


class AirtableAPIError(ExternalServiceError):
    """Airtable returned an error or was unreachable."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(
            service="airtable",
            message=message,
            details={"status": status},
            code="AIRTABLE_API_ERROR",
            status_code=502
        )


class VendorRecordError(ValidationError):
    """A vendor record is malformed or lacks a required field."""

    def __init__(self, source: str, vendor_id: Optional[str], reason: str):
        self.source = source
        self.vendor_id = vendor_id
        super().__init__(
            code="VENDOR_RECORD_INVALID",
            message=f"{source} record {vendor_id or '<unknown>'}: {reason}",
            details={"source": source, "vendor_id": vendor_id, "reason": reason}
        )


# ===================
# SYNC ERRORS
# ===================

class SyncInProgressError(ConflictError):
    """A sync for the same resource is already running."""

    def __init__(self, resource: str):
        super().__init__(
            code="SYNC_IN_PROGRESS",
            message=f"A {resource} sync is already running",
            details={"resource": resource}
        )


class WebhookSignatureError(AppError):
    """Webhook signature missing or invalid (401)."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(
            code="WEBHOOK_SIGNATURE_INVALID",
            message=message,
            status_code=401
        )


# ===================
# CLASSIFICATION ERRORS
# ===================

class COAExtractionError(ValidationError):
    """No usable text could be extracted from a certificate of analysis."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="COA_EXTRACTION_FAILED",
            message=message,
            details=details
        )
