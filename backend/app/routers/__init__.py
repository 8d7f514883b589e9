"""Commission Engine - API Routers"""
from .commission_reports import router as commission_reports_router
from .deals import router as deals_router
from .agents import router as agents_router
from .commission_structures import router as commission_structures_router

__all__ = [
    "commission_reports_router",
    "deals_router",
    "agents_router",
    "commission_structures_router",
]
