"""
Sales Reports Router

Sales report by range, top products and dashboard endpoints.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.clock import get_clock
from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext

from ..services.sales import SalesReportService
from ..schemas import ReportRange, SalesReportResponse, DashboardResponse
from ..utils import (
    create_csv_response,
    prepare_sales_report_csv,
    prepare_top_products_csv,
    CSV_HEADERS
)


router = APIRouter(prefix="/reports", tags=["Reports"])


def _build_report(service: SalesReportService, report_range: ReportRange,
                  start_date: Optional[date], end_date: Optional[date]) -> SalesReportResponse:
    try:
        return service.get_sales_report(report_range, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/sales", response_model=None)
def get_sales_report(
    report_range: ReportRange = Query(ReportRange.TODAY, alias="range", description="today | week | month | custom"),
    start_date: Optional[date] = Query(None, description="Start date (custom range)"),
    end_date: Optional[date] = Query(None, description="End date, inclusive (custom range)"),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv"),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin()),
    db: Session = Depends(get_db),
    clock=Depends(get_clock)
):
    """
    Sales report for a period.

    Returns gross and net totals, returns, average ticket, the net
    breakdown by payment method, top products and sales by seller.
    """
    report = _build_report(SalesReportService(db, clock), report_range, start_date, end_date)

    if export == "csv":
        return create_csv_response(
            data=prepare_sales_report_csv(report),
            filename=f"sales_report_{report_range.value}.csv",
            headers=CSV_HEADERS["sales_report"]
        )
    return report


@router.get("/top-products", response_model=None)
def get_top_products(
    report_range: ReportRange = Query(ReportRange.TODAY, alias="range"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv"),
    auth_context: AuthContext = Depends(AuthDependencies.require_admin()),
    db: Session = Depends(get_db),
    clock=Depends(get_clock)
):
    """Best selling products of the period, by units sold"""
    report = _build_report(SalesReportService(db, clock), report_range, start_date, end_date)

    if export == "csv":
        return create_csv_response(
            data=prepare_top_products_csv(report),
            filename=f"top_products_{report_range.value}.csv",
            headers=CSV_HEADERS["top_products"]
        )
    return report.top_products


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    auth_context: AuthContext = Depends(AuthDependencies.require_manager()),
    db: Session = Depends(get_db),
    clock=Depends(get_clock)
):
    """Today's sales, current shift, low stock count and fiado debt"""
    return SalesReportService(db, clock).get_dashboard()
