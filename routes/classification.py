"""
Compliance classification routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from starlette.concurrency import run_in_threadpool
import structlog

from exceptions import ValidationError
from models.classification import (
    BulkClassifyRequest,
    BulkClassifyResult,
    Classification,
    ClassifyRequest,
    COAValidation,
)
from routes.errors import handle_error
from services.classification_service import ClassificationService

logger = structlog.get_logger(__name__)

router = APIRouter()

# Upload size cap for COA documents
MAX_COA_BYTES = 20 * 1024 * 1024


def get_classification_service(request: Request) -> ClassificationService:
    return request.app.state.services.classification


@router.post("/classify", response_model=Classification)
def classify(
    body: ClassifyRequest,
    service: ClassificationService = Depends(get_classification_service)
):
    """Classify an ad-hoc product; never fails, falls back to keywords."""
    return service.classify(body.product_name, body.description, body.image_count)


@router.post("/products/{product_id}")
def classify_product(
    product_id: str,
    service: ClassificationService = Depends(get_classification_service)
):
    """
    Classify a stored product and save the result on it.

    Raises:
        404: Product not found
    """
    try:
        product, classification = service.classify_product(product_id)
        return {"product": product, "classification": classification}
    except Exception as e:
        return handle_error(e)


@router.post("/bulk", response_model=BulkClassifyResult)
def bulk_classify(
    body: Optional[BulkClassifyRequest] = None,
    service: ClassificationService = Depends(get_classification_service)
):
    """Re-classify the given products, or all products."""
    body = body or BulkClassifyRequest()
    try:
        return service.bulk_classify(body.product_ids)
    except Exception as e:
        return handle_error(e)


@router.post("/coa", response_model=COAValidation)
async def validate_coa(
    file: UploadFile = File(..., description="COA as PDF or image"),
    product_name: str = Form(..., description="Product the COA belongs to"),
    service: ClassificationService = Depends(get_classification_service)
):
    """
    Validate a certificate of analysis.

    Always 200 for a readable upload; failures are reported in isValid/errors.
    """
    try:
        document = await file.read()
        if not document:
            raise ValidationError("Empty COA upload", code="COA_EMPTY")
        if len(document) > MAX_COA_BYTES:
            raise ValidationError(
                "COA upload too large",
                code="COA_TOO_LARGE",
                details={"max_bytes": MAX_COA_BYTES}
            )

        logger.info("coa_upload_received", filename=file.filename, size=len(document))
        return await run_in_threadpool(service.validate_coa, document, product_name)

    except Exception as e:
        return handle_error(e)
