"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.marketplace import router as marketplace_router

__all__ = [
    "marketplace_router",
]
