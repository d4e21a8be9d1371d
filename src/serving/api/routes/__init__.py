"""
API Routes Module
"""
from .health import router as health_router
from .rankings import router as rankings_router
from .comparison import router as comparison_router
from .locations import router as locations_router
from .webhook import router as webhook_router

__all__ = [
    "health_router",
    "rankings_router",
    "comparison_router",
    "locations_router",
    "webhook_router",
]
