"""
Database connection management.

Provides the Supabase client singleton used by the item store.
The service role key is required: sync passes update rows.
"""

from supabase import create_client, Client
from functools import lru_cache
import structlog

from config.settings import settings
from exceptions import ConfigError

logger = structlog.get_logger(__name__)


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get cached Supabase client instance.

    Uses lru_cache to ensure only one client is created.
    Call get_supabase_client.cache_clear() to reconnect.

    Returns:
        Client: Supabase client with service role access

    Raises:
        ConfigError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is missing
    """
    if not settings.supabase_configured:
        logger.error(
            "supabase_not_configured",
            has_url=bool(settings.supabase_url),
            has_service_key=bool(settings.supabase_service_key)
        )
        raise ConfigError("SUPABASE_SERVICE_KEY is not set")

    logger.info(
        "connecting_to_supabase",
        url=settings.supabase_url[:30] + "..."  # Log partial URL only
    )

    return create_client(
        settings.supabase_url,
        settings.supabase_service_key
    )


# Convenience alias
db = get_supabase_client


# ===================
# HELPER FUNCTIONS
# ===================

def check_connection() -> dict:
    """
    Check database connection health.

    Returns:
        dict: Connection status with details
    """
    try:
        client = get_supabase_client()

        items = (
            client.table(settings.items_table)
            .select("id", count="exact")
            .eq("kind", "product")
            .limit(1)
            .execute()
        )

        return {
            "status": "healthy",
            "products_count": items.count
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e)
        }


def reset_connection():
    """
    Reset the cached database connection.

    Call this if connection becomes stale or after config changes.
    """
    get_supabase_client.cache_clear()
    logger.info("database_connection_reset")
