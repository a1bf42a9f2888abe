"""
Product API routes (read-only; products are written by the syncs).
"""

from fastapi import APIRouter, Depends, Query, Request
import structlog

from models.product import ProductResponse, ProductListResponse
from routes.errors import handle_error
from services.product_service import ProductService

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_product_service(request: Request) -> ProductService:
    return request.app.state.services.products


# ===================
# ROUTES
# ===================

@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    include_inactive: bool = Query(False, description="Include inactive products"),
    service: ProductService = Depends(get_product_service)
):
    """
    List products.

    Returns paginated list of products.
    """
    try:
        products, total = service.get_all(
            page=page,
            page_size=page_size,
            active_only=not include_inactive
        )

        total_pages = (total + page_size - 1) // page_size

        return ProductListResponse(
            data=products,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages
        )

    except Exception as e:
        return handle_error(e)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: str,
    service: ProductService = Depends(get_product_service)
):
    """
    Get a single product by ID.

    Raises:
        404: Product not found
    """
    try:
        return service.get_by_id(product_id)
    except Exception as e:
        return handle_error(e)
