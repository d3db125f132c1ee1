"""Dues Engine - API Routers"""
from .payments import router as payments_router
from .admin import router as admin_router

__all__ = [
    "payments_router",
    "admin_router",
]
