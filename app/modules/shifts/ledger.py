"""
Conciliación de turnos: funciones puras sin acceso a base de datos.

- sum_by_payment_method / sum_expenses: primitivas del libro de caja.
- compute_shift_summary: resumen de un turno a partir de sus ventas.
- reconcile_shift_close: efectivo esperado vs. contado al cierre.
- validate_shift_opening: precondiciones para abrir turno.

Reciben cualquier objeto con los atributos de Sale / ShiftExpense / Shift
(registros tipados o filas ORM).
"""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.common.exceptions import (
    InvalidPaymentMethod, InvalidReconciliationInput, InvalidInitialCash
)
from app.common.validators import is_finite_non_negative, to_decimal
from app.modules.sales.models import PaymentMethod, SaleType
from app.modules.shifts.models import ShiftStatus
from app.modules.shifts.schemas import ShiftSummary, Reconciliation, ProductSales, empty_breakdown


def _belongs_to(record, shift_id) -> bool:
    return record.shift_id is not None and str(record.shift_id) == str(shift_id)


def parse_payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError:
        raise InvalidPaymentMethod(detail=f"Método de pago inválido: {value!r}", method=value)


def sum_by_payment_method(sales: Iterable, shift_id) -> Dict[str, Decimal]:
    """
    Totales por método de pago de las ventas del turno.

    Ventas suman a su método; devoluciones restan del método con que se
    reembolsaron. Un método fuera del conjunto cerrado es un error.
    """
    if shift_id is None:
        return empty_breakdown()
    return breakdown_by_payment(sale for sale in sales if _belongs_to(sale, shift_id))


def breakdown_by_payment(sales: Iterable) -> Dict[str, Decimal]:
    """Desglose neto por método de pago de las ventas recibidas, sin filtrar por turno"""
    by_payment = empty_breakdown()
    for sale in sales:
        method = parse_payment_method(sale.payment_method)
        if SaleType(sale.type) == SaleType.RETURN:
            by_payment[method.value] -= sale.total
        else:
            by_payment[method.value] += sale.total
    return by_payment


def count_tickets(sales: Iterable, shift_id) -> int:
    """Tickets del turno: solo ventas, las devoluciones no cuentan"""
    if shift_id is None:
        return 0
    return sum(
        1 for sale in sales
        if _belongs_to(sale, shift_id) and SaleType(sale.type) == SaleType.SALE
    )


def sum_expenses(expenses: Iterable, shift_id) -> Decimal:
    """Total de gastos del turno"""
    return sum(
        (expense.amount for expense in expenses if _belongs_to(expense, shift_id)),
        Decimal("0")
    )


def compute_shift_summary(sales: Iterable, shift_id) -> ShiftSummary:
    """
    Resumen de un turno: total, tickets y desglose por método de pago.

    El total se deriva del desglose, por lo que total == sum(by_payment)
    siempre. Sin turno (shift_id None) el resumen es cero.
    """
    if shift_id is None:
        return ShiftSummary()

    sales = list(sales)
    by_payment = sum_by_payment_method(sales, shift_id)
    return ShiftSummary(
        total=sum(by_payment.values(), Decimal("0")),
        tickets=count_tickets(sales, shift_id),
        by_payment=by_payment
    )


def reconcile_shift_close(shift, summary: ShiftSummary, cash_counted) -> Reconciliation:
    """
    Arqueo de cierre.

    cash_expected = efectivo inicial + ventas netas en efectivo
    difference = contado - esperado (positivo sobrante, negativo faltante)
    """
    if ShiftStatus(shift.status) != ShiftStatus.OPEN:
        raise InvalidReconciliationInput(detail="El turno ya está cerrado")
    if not is_finite_non_negative(cash_counted):
        raise InvalidReconciliationInput(detail="El efectivo contado debe ser un número mayor o igual a cero")

    cash_expected = shift.initial_cash + summary.by_payment[PaymentMethod.CASH.value]
    return Reconciliation(
        cash_expected=cash_expected,
        difference=to_decimal(cash_counted) - cash_expected
    )


def validate_shift_opening(seller: Optional[str], initial_cash) -> Decimal:
    """Valida vendedor y efectivo inicial; retorna el efectivo como Decimal"""
    if seller is None or not seller.strip():
        raise InvalidInitialCash(detail="El vendedor es obligatorio")
    if not is_finite_non_negative(initial_cash):
        raise InvalidInitialCash(detail="El efectivo inicial debe ser un número mayor o igual a cero")
    return to_decimal(initial_cash)


def rank_products(sales: Iterable, limit: Optional[int] = None, by: str = "total") -> List[ProductSales]:
    """
    Agrupa los ítems de las ventas (no devoluciones) por producto.

    Ordena por monto (by="total") o por unidades (by="quantity").
    """
    ranking: Dict[str, ProductSales] = {}
    for sale in sales:
        if SaleType(sale.type) != SaleType.SALE:
            continue
        for item in sale.items:
            key = str(item.product_id) if item.product_id else f"name:{item.name}"
            entry = ranking.get(key)
            if entry is None:
                entry = ProductSales(product_id=item.product_id, name=item.name, quantity=0, total=Decimal("0"))
                ranking[key] = entry
            entry.quantity += item.quantity
            entry.total += item.price * item.quantity

    ordered = sorted(ranking.values(), key=lambda p: getattr(p, by), reverse=True)
    return ordered[:limit] if limit else ordered
