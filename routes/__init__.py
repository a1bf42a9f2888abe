"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.products import router as products_router
from routes.sync import router as sync_router
from routes.classification import router as classification_router
from routes.airtable import router as airtable_router

__all__ = [
    "products_router",
    "sync_router",
    "classification_router",
    "airtable_router",
]
