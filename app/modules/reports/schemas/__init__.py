"""
Pydantic schemas for Reports module
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.modules.shifts.schemas import ShiftSummary, ProductSales


class ReportRange(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"


class SellerSales(BaseModel):
    seller: str
    total: Decimal
    tickets: int


class SalesReportResponse(BaseModel):
    """Reporte de ventas de un período [period_start, period_end)"""
    range: ReportRange
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    gross_total: Decimal = Field(description="Ventas sin descontar devoluciones")
    returns_total: Decimal = Field(description="Total devuelto")
    net_total: Decimal = Field(description="Ventas menos devoluciones")
    tickets: int = Field(description="Cantidad de ventas (sin devoluciones)")
    returns_count: int
    average_ticket: Decimal
    by_payment: Dict[str, Decimal] = Field(description="Neto por método de pago")
    top_products: List[ProductSales]
    by_seller: List[SellerSales]


class CurrentShiftSnapshot(BaseModel):
    id: UUID
    seller: str
    start: datetime
    initial_cash: Decimal
    summary: ShiftSummary
    cash_expected_now: Decimal


class DashboardResponse(BaseModel):
    today: SalesReportResponse
    current_shift: Optional[CurrentShiftSnapshot] = None
    low_stock_count: int
    products_count: int
    total_fiado_debt: Decimal
    clients_with_debt: int
