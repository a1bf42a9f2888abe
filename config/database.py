"""
Database connection management.

Provides the Supabase client used by the store services. The client is
built once per process by the application lifespan (or a CLI entry
point) and handed to services explicitly.
"""

from supabase import create_client, Client
from functools import lru_cache
from typing import Optional
import structlog

from config.settings import settings

logger = structlog.get_logger(__name__)


class SupabaseConnectionError(Exception):
    """Failed to connect to Supabase."""
    pass


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Prefers the service role key when configured, since sync writes
    bypass row level security.

    Returns:
        Client: Supabase client

    Raises:
        SupabaseConnectionError: If connection fails
    """
    key = settings.supabase_service_key or settings.supabase_key

    try:
        logger.info(
            "connecting_to_supabase",
            url=settings.supabase_url[:30] + "...",  # Log partial URL only
            service_role=bool(settings.supabase_service_key)
        )

        client = create_client(settings.supabase_url, key)

        # Test connection with simple query
        client.table("products").select("id").limit(1).execute()

        logger.info("supabase_connected", status="success")

        return client

    except Exception as e:
        logger.error(
            "supabase_connection_failed",
            error=str(e),
            error_type=type(e).__name__
        )
        raise SupabaseConnectionError(f"Failed to connect to Supabase: {e}") from e


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection(client: Optional[Client] = None) -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with row counts
    """
    try:
        client = client or get_supabase_client()

        products = client.table("products").select("id", count="exact").execute()
        categories = client.table("categories").select("id", count="exact").execute()

        return {
            "status": "healthy",
            "products_count": products.count,
            "categories_count": categories.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }
