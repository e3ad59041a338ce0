"""
Tests para el módulo de Reportes

Cubren:
- Resolución de rangos (hoy, semana desde el lunes, mes, personalizado)
- Totales brutos y netos, devoluciones, ticket promedio y vendedores
- Productos más vendidos por unidades
- Dashboard y exportación CSV
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from app.modules.reports.schemas import ReportRange
from app.modules.reports.services import SalesReportService
from app.modules.sales.schemas import SaleCreate, CartLine, ReturnCreate, ReturnLine
from app.modules.sales.service import SaleService


@pytest.fixture
def sales_history(db_session, clock, make_product, make_client, open_shift):
    """
    Viernes 10/05: venta de 3 unidades de Arroz en efectivo.
    Sábado 11/05: 2 de Leche con tarjeta (se devuelve 1), 1 de Arroz fiado.
    El reloj queda en el sábado.
    """
    rice = make_product(name="Arroz", price="1000", stock=50)
    milk = make_product(name="Leche", price="500", stock=50)
    fiado_client = make_client(limit="20000")
    service = SaleService(db_session, clock)

    service.register_sale(SaleCreate(
        lines=[CartLine(product_id=rice.id, quantity=3)], payment_method="cash", cash_received=Decimal("3000")
    ))

    clock.advance(timedelta(days=1))
    card_sale = service.register_sale(SaleCreate(
        lines=[CartLine(product_id=milk.id, quantity=2)], payment_method="card"
    ))
    service.register_sale(SaleCreate(
        lines=[CartLine(product_id=rice.id, quantity=1)], payment_method="fiado", fiado_client_id=fiado_client.id
    ))
    service.register_return(card_sale.id, ReturnCreate(
        lines=[ReturnLine(item_id=card_sale.items[0].id, quantity=1)], refund_method="card"
    ))
    return {"rice": rice, "milk": milk, "client": fiado_client}


class TestResolveRange:
    """Rangos de fechas en UTC, semiabiertos"""

    def _utc(self, *args):
        return datetime(*args, tzinfo=timezone.utc)

    def test_today(self, db_session, clock):
        start, end = SalesReportService(db_session, clock).resolve_range(ReportRange.TODAY)
        assert (start, end) == (self._utc(2024, 5, 10), self._utc(2024, 5, 11))

    def test_week_starts_on_monday(self, db_session, clock):
        start, end = SalesReportService(db_session, clock).resolve_range(ReportRange.WEEK)
        assert (start, end) == (self._utc(2024, 5, 6), self._utc(2024, 5, 13))

    def test_month(self, db_session, clock):
        start, end = SalesReportService(db_session, clock).resolve_range(ReportRange.MONTH)
        assert (start, end) == (self._utc(2024, 5, 1), self._utc(2024, 6, 1))

    def test_month_in_december(self, db_session, clock):
        clock.instant = self._utc(2024, 12, 31, 23, 59)
        start, end = SalesReportService(db_session, clock).resolve_range(ReportRange.MONTH)
        assert (start, end) == (self._utc(2024, 12, 1), self._utc(2025, 1, 1))

    def test_custom_includes_end_date(self, db_session, clock):
        start, end = SalesReportService(db_session, clock).resolve_range(
            ReportRange.CUSTOM, date(2024, 4, 1), date(2024, 4, 30)
        )
        assert (start, end) == (self._utc(2024, 4, 1), self._utc(2024, 5, 1))

    def test_custom_open_bounds(self, db_session, clock):
        service = SalesReportService(db_session, clock)
        assert service.resolve_range(ReportRange.CUSTOM) == (None, None)
        assert service.resolve_range(ReportRange.CUSTOM, date(2024, 4, 1)) == (self._utc(2024, 4, 1), None)

    def test_custom_inverted(self, db_session, clock):
        with pytest.raises(ValueError):
            SalesReportService(db_session, clock).resolve_range(
                ReportRange.CUSTOM, date(2024, 5, 2), date(2024, 5, 1)
            )


class TestSalesReport:
    """Reporte de ventas"""

    def test_today(self, db_session, clock, sales_history):
        report = SalesReportService(db_session, clock).get_sales_report(ReportRange.TODAY)

        assert report.gross_total == Decimal("2000")
        assert report.returns_total == Decimal("500")
        assert report.net_total == Decimal("1500")
        assert (report.tickets, report.returns_count) == (2, 1)
        assert report.average_ticket == Decimal("1000.00")
        assert report.by_payment["card"] == Decimal("500")
        assert report.by_payment["fiado"] == Decimal("1000")
        assert report.by_payment["cash"] == Decimal("0")
        assert [(p.name, p.quantity) for p in report.top_products] == [("Leche", 2), ("Arroz", 1)]

    def test_week(self, db_session, clock, sales_history):
        report = SalesReportService(db_session, clock).get_sales_report(ReportRange.WEEK)

        assert report.gross_total == Decimal("5000")
        assert report.net_total == Decimal("4500")
        assert report.tickets == 3
        assert [(p.name, p.quantity, p.total) for p in report.top_products] == [
            ("Arroz", 4, Decimal("4000")), ("Leche", 2, Decimal("1000"))
        ]
        assert [(s.seller, s.total, s.tickets) for s in report.by_seller] == [("Ana", Decimal("5000"), 3)]

    def test_custom_single_day(self, db_session, clock, sales_history):
        report = SalesReportService(db_session, clock).get_sales_report(
            ReportRange.CUSTOM, date(2024, 5, 10), date(2024, 5, 10)
        )
        assert report.gross_total == Decimal("3000")
        assert report.by_payment["cash"] == Decimal("3000")
        assert report.returns_count == 0

    def test_empty_period(self, db_session, clock):
        report = SalesReportService(db_session, clock).get_sales_report(ReportRange.MONTH)
        assert report.tickets == 0
        assert report.average_ticket == Decimal("0")
        assert report.net_total == Decimal("0")
        assert report.top_products == []

    def test_dashboard(self, db_session, clock, sales_history, make_product):
        make_product(name="Sal", stock=1, min_stock=3)

        dashboard = SalesReportService(db_session, clock).get_dashboard()

        assert dashboard.today.net_total == Decimal("1500")
        assert dashboard.current_shift.seller == "Ana"
        assert dashboard.current_shift.summary.total == Decimal("4500")
        assert dashboard.current_shift.cash_expected_now == Decimal("53000")
        assert (dashboard.low_stock_count, dashboard.products_count) == (1, 3)
        assert dashboard.total_fiado_debt == Decimal("1000")
        assert dashboard.clients_with_debt == 1

    def test_dashboard_without_shift(self, db_session, clock):
        dashboard = SalesReportService(db_session, clock).get_dashboard()
        assert dashboard.current_shift is None
        assert dashboard.total_fiado_debt == Decimal("0")


class TestReportEndpoints:
    """Endpoints de reportes"""

    def test_sales_report_requires_admin(self, client, manager_headers):
        response = client.get("/api/v1/reports/sales", headers=manager_headers)
        assert (response.status_code, response.json()["code"]) == (403, "permission_denied")

    def test_sales_report(self, client, admin_headers, sales_history):
        response = client.get("/api/v1/reports/sales", params={"range": "week"}, headers=admin_headers)
        assert response.status_code == 200
        body = response.json()
        assert Decimal(str(body["net_total"])) == Decimal("4500")
        assert body["tickets"] == 3

    def test_inverted_custom_range(self, client, admin_headers):
        response = client.get(
            "/api/v1/reports/sales",
            params={"range": "custom", "start_date": "2024-05-02", "end_date": "2024-05-01"},
            headers=admin_headers
        )
        assert response.status_code == 422

    def test_csv_export(self, client, admin_headers, sales_history):
        response = client.get(
            "/api/v1/reports/sales", params={"range": "today", "export": "csv"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0] == "Concepto,Monto,Tickets"
        assert any(line.startswith("Total neto,1500") for line in lines)

    def test_top_products(self, client, admin_headers, sales_history):
        response = client.get("/api/v1/reports/top-products", params={"range": "week"}, headers=admin_headers)
        assert [p["name"] for p in response.json()] == ["Arroz", "Leche"]

    def test_dashboard_for_manager(self, client, manager_headers, sales_history):
        response = client.get("/api/v1/reports/dashboard", headers=manager_headers)
        assert response.status_code == 200
        assert response.json()["clients_with_debt"] == 1
        assert client.get("/api/v1/reports/dashboard").status_code == 403
