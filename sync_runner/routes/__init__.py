"""
Sync runner route modules.

Each module handles a specific area of functionality.
"""

from .imports import router as imports_router
from .owners import router as owners_router
from .activecampaign import router as activecampaign_router

__all__ = [
    "imports_router",
    "owners_router",
    "activecampaign_router",
]
