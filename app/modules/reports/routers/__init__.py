"""
Routers package for Reports module
"""

from .sales import router as sales_router

__all__ = [
    "sales_router"
]
