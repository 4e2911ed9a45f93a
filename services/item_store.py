"""
Item store backed by the Supabase items table.

The sync core only needs a bulk keyed read and a keyed write.
"""

from typing import Optional
import structlog

from config import get_supabase_client, settings
from exceptions import DatabaseError

logger = structlog.get_logger(__name__)


ITEM_COLUMNS = "id, code, barcode, wb_sku, mp_category_wb"


class ItemStore:
    """Reads product rows and writes marketplace fields back by id."""

    def __init__(self, client=None, table: Optional[str] = None):
        self.db = client or get_supabase_client()
        self.table = table or settings.items_table

    def load_products(self) -> list[dict]:
        """
        All product rows with the keys used for matching.

        Returns:
            List of dicts with id, code, barcode, wb_sku, mp_category_wb

        Raises:
            DatabaseError: If the select fails
        """
        logger.debug("loading_products")

        try:
            result = (
                self.db.table(self.table)
                .select(ITEM_COLUMNS)
                .eq("kind", "product")
                .execute()
            )
        except Exception as e:
            logger.error("load_products_failed", error=str(e))
            raise DatabaseError("select", str(e))

        rows = result.data or []
        logger.info("products_loaded", count=len(rows))
        return rows

    def update_item(self, record_id: str, values: dict) -> None:
        """
        Overwrite fields of one item.

        Raises:
            DatabaseError: If the update fails
        """
        try:
            self.db.table(self.table).update(values).eq("id", record_id).execute()
        except Exception as e:
            raise DatabaseError("update", str(e), details={"record_id": record_id})
