"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, CamelResponse
from models.marketplace import (
    SyncRequest,
    CategoryItem,
    CategoryLookupResponse,
    SkuSyncResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "CamelResponse",

    # Marketplace
    "SyncRequest",
    "CategoryItem",
    "CategoryLookupResponse",
    "SkuSyncResponse",
]
