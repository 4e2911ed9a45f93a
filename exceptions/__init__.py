"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    ConfigError,
    DatabaseError,

    # Marketplace
    MarketplaceError,
    TransientRemoteError,
    ExhaustedRetriesError,
    RemoteError,

    # Store
    StoreWriteError,
)

__all__ = [
    # Base
    "AppError",
    "ConfigError",
    "DatabaseError",

    # Marketplace
    "MarketplaceError",
    "TransientRemoteError",
    "ExhaustedRetriesError",
    "RemoteError",

    # Store
    "StoreWriteError",
]
