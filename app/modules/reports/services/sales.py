"""
Sales Reports Service

Sales report over a date range and the dashboard snapshot.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func

from app.core.config import settings
from app.modules.clients.models import Client
from app.modules.products.models import Product
from app.modules.sales.models import SaleType, PaymentMethod
from app.modules.shifts import ledger
from app.modules.shifts.service import ShiftService
from app.modules.reports.schemas import (
    ReportRange, SalesReportResponse, SellerSales, DashboardResponse, CurrentShiftSnapshot
)

from .base import BaseReportService


class SalesReportService(BaseReportService):
    """Service for generating sales reports"""

    def get_sales_report(
        self,
        report_range: ReportRange = ReportRange.TODAY,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> SalesReportResponse:
        """
        Generate the sales report for a range.

        by_payment and net_total come from the same ledger primitive used
        for shift close, so returns are netted the same way.
        """
        start, end = self.resolve_range(report_range, start_date, end_date)
        records = self._load_sales(start, end)

        sales = [r for r in records if r.type == SaleType.SALE]
        returns = [r for r in records if r.type == SaleType.RETURN]

        by_payment = ledger.breakdown_by_payment(records)
        gross_total = sum((s.total for s in sales), Decimal("0"))
        returns_total = sum((r.total for r in returns), Decimal("0"))
        tickets = len(sales)

        by_seller: Dict[str, SellerSales] = {}
        for sale in sales:
            key = sale.seller or settings.DEFAULT_SELLER
            entry = by_seller.setdefault(key, SellerSales(seller=key, total=Decimal("0"), tickets=0))
            entry.total += sale.total
            entry.tickets += 1

        return SalesReportResponse(
            range=report_range,
            period_start=start,
            period_end=end,
            gross_total=gross_total,
            returns_total=returns_total,
            net_total=sum(by_payment.values(), Decimal("0")),
            tickets=tickets,
            returns_count=len(returns),
            average_ticket=(gross_total / tickets).quantize(Decimal("0.01")) if tickets else Decimal("0"),
            by_payment=by_payment,
            top_products=ledger.rank_products(sales, limit=settings.TOP_PRODUCTS_LIMIT, by="quantity"),
            by_seller=sorted(by_seller.values(), key=lambda s: s.total, reverse=True)
        )

    def get_dashboard(self) -> DashboardResponse:
        """Today's sales, the open shift, low stock and outstanding fiado debt"""
        shifts = ShiftService(self.db, self.clock)
        current = shifts.get_current_shift()

        current_shift = None
        if current:
            summary = shifts.compute_summary(current.id)
            current_shift = CurrentShiftSnapshot(
                id=current.id,
                seller=current.seller,
                start=current.start,
                initial_cash=current.initial_cash,
                summary=summary,
                cash_expected_now=current.initial_cash + summary.by_payment[PaymentMethod.CASH.value]
            )

        low_stock_count = self.db.query(func.count(Product.id)).filter(
            Product.stock <= Product.min_stock
        ).scalar()
        products_count = self.db.query(func.count(Product.id)).scalar()
        total_debt, clients_with_debt = self.db.query(
            func.coalesce(func.sum(Client.balance), 0),
            func.count(Client.id)
        ).filter(Client.balance > 0).one()

        return DashboardResponse(
            today=self.get_sales_report(ReportRange.TODAY),
            current_shift=current_shift,
            low_stock_count=low_stock_count,
            products_count=products_count,
            total_fiado_debt=Decimal(str(total_debt)),
            clients_with_debt=clients_with_debt
        )
