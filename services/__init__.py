"""
Business logic services.

The sync pipeline is split by stage: pager, normalizer, reconciler,
writer. The two pass services wire those stages together.
"""

from services.item_store import ItemStore
from services.sku_sync_service import SkuSyncService
from services.category_lookup_service import CategoryLookupService

__all__ = [
    "ItemStore",
    "SkuSyncService",
    "CategoryLookupService",
]
