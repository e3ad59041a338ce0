"""
Services package for Reports module
"""

from .sales import SalesReportService

__all__ = [
    "SalesReportService"
]
