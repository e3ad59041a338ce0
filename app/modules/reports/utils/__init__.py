"""
Utilities for Reports module

CSV export of report data.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from fastapi import Response

from app.modules.reports.schemas import SalesReportResponse


def create_csv_response(
    data: List[Dict[str, Any]],
    filename: str,
    headers: Dict[str, str] = None
) -> Response:
    """
    Create a CSV response from a list of dictionaries.

    Args:
        data: Rows of the report
        filename: Name for the CSV file
        headers: Optional mapping of field names to CSV headers
    """
    output = io.StringIO()
    fieldnames = list(headers.keys()) if headers else (list(data[0].keys()) if data else [])
    csv_headers = list(headers.values()) if headers else fieldnames

    writer = csv.DictWriter(output, fieldnames=fieldnames)
    writer.writerow(dict(zip(fieldnames, csv_headers)))
    for row in data:
        writer.writerow({key: format_csv_value(value) for key, value in row.items() if key in fieldnames})

    csv_content = output.getvalue()
    output.close()

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={filename}",
            "Content-Type": "text/csv; charset=utf-8"
        }
    )


def format_csv_value(value: Any) -> str:
    """Format a value for CSV export"""
    if value is None:
        return ""
    elif isinstance(value, Decimal):
        return str(value)
    elif isinstance(value, (date, datetime)):
        return value.isoformat()
    elif isinstance(value, bool):
        return "Sí" if value else "No"
    return str(value)


def prepare_sales_report_csv(report: SalesReportResponse) -> List[Dict[str, Any]]:
    """One row per payment method followed by the totals row"""
    rows = [
        {"concept": f"Método: {method}", "amount": amount, "tickets": ""}
        for method, amount in report.by_payment.items()
    ]
    rows.extend([
        {"concept": "Ventas brutas", "amount": report.gross_total, "tickets": report.tickets},
        {"concept": "Devoluciones", "amount": report.returns_total, "tickets": report.returns_count},
        {"concept": "Total neto", "amount": report.net_total, "tickets": ""},
        {"concept": "Ticket promedio", "amount": report.average_ticket, "tickets": ""},
    ])
    return rows


def prepare_top_products_csv(report: SalesReportResponse) -> List[Dict[str, Any]]:
    return [
        {"product_name": p.name, "quantity": p.quantity, "total": p.total}
        for p in report.top_products
    ]


CSV_HEADERS = {
    "sales_report": {
        "concept": "Concepto",
        "amount": "Monto",
        "tickets": "Tickets"
    },
    "top_products": {
        "product_name": "Producto",
        "quantity": "Cantidad",
        "total": "Total"
    }
}
