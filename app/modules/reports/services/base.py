"""
Base service class for Reports module

Provides the database session, the injected clock and the resolution of
report ranges into UTC datetime bounds.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from app.core.clock import system_clock
from app.common.records import to_records
from app.modules.sales.models import Sale
from app.modules.sales.schemas import SaleRecord
from app.modules.reports.schemas import ReportRange


class BaseReportService:
    """Base service class for all report services"""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or system_clock

    def resolve_range(
        self,
        report_range: ReportRange,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """
        Convert a named range into [start, end) bounds.

        Weeks start on Monday. A custom range includes both dates; either
        bound may be omitted.
        """
        today = self.clock.now().astimezone(timezone.utc).date()

        if report_range == ReportRange.TODAY:
            start = today
            end = today + timedelta(days=1)
        elif report_range == ReportRange.WEEK:
            start = today - timedelta(days=today.weekday())
            end = start + timedelta(days=7)
        elif report_range == ReportRange.MONTH:
            start = today.replace(day=1)
            end = (start + timedelta(days=32)).replace(day=1)
        else:
            if start_date and end_date and end_date < start_date:
                raise ValueError("end_date must be greater than or equal to start_date")
            start = start_date
            end = end_date + timedelta(days=1) if end_date else None

        return self._at_midnight(start), self._at_midnight(end)

    def _load_sales(self, start: Optional[datetime], end: Optional[datetime]) -> List[SaleRecord]:
        """Sales and returns created in [start, end)"""
        query = self.db.query(Sale).options(selectinload(Sale.items))
        query = self._apply_date_filter(query, Sale.created_at, start, end)
        return to_records(SaleRecord, query.order_by(Sale.created_at).all())

    def _apply_date_filter(self, query, date_field, start: Optional[datetime], end: Optional[datetime]):
        if start:
            query = query.filter(date_field >= start)
        if end:
            query = query.filter(date_field < end)
        return query

    @staticmethod
    def _at_midnight(day: Optional[date]) -> Optional[datetime]:
        if day is None:
            return None
        return datetime.combine(day, time.min, tzinfo=timezone.utc)
