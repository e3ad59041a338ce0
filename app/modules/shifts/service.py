"""
Servicios de negocio para turnos

- ShiftService: apertura, cierre con arqueo, consulta de turnos y gastos.

Reglas:
- Solo un turno abierto a la vez (índice único parcial + validación).
- El cierre escribe estado, arqueo y snapshot de ventas en una sola
  transacción; el resumen se calcula después de tomar el turno, así ninguna
  venta concurrente queda fuera del snapshot.
"""
import logging
from typing import Optional, Dict, Any, List
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.clock import system_clock
from app.common.exceptions import (
    ShiftAlreadyOpen, ShiftNotFound, NoActiveShift, InvalidReconciliationInput,
    InvalidAmount, SupplierRequired
)
from app.common.records import to_record, to_records
from app.common.validators import is_finite_non_negative, is_positive_amount, to_decimal
from app.modules.sales.models import Sale, PaymentMethod
from app.modules.sales.schemas import SaleRecord
from app.modules.shifts import ledger
from app.modules.shifts.models import Shift, ShiftExpense, ShiftStatus, ShiftType, ExpenseType
from app.modules.shifts.schemas import (
    ShiftSummary, ShiftRecord, ShiftDetail, ExpenseCreate, ExpenseOut, ExpenseRecord
)

logger = logging.getLogger(__name__)


class ShiftService:
    """Servicio para apertura/cierre de turnos y arqueo"""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or system_clock

    # ===== CONSULTAS =====

    def get_current_shift(self) -> Optional[Shift]:
        """Turno abierto actual, o None si no hay"""
        return self.db.query(Shift).filter(Shift.status == ShiftStatus.OPEN).first()

    def require_open_shift(self) -> Shift:
        shift = self.get_current_shift()
        if not shift:
            raise NoActiveShift()
        return shift

    def get_shift(self, shift_id: UUID) -> Shift:
        shift = self.db.query(Shift).filter(Shift.id == shift_id).first()
        if not shift:
            raise ShiftNotFound()
        return shift

    def list_shifts(self, shift_status: Optional[ShiftStatus] = None,
                    limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Historial de turnos, más recientes primero"""
        query = self.db.query(Shift)
        if shift_status:
            query = query.filter(Shift.status == shift_status)
        query = query.order_by(desc(Shift.start))

        total = query.count()
        shifts = query.offset(offset).limit(limit).all()
        return {"shifts": shifts, "total": total, "limit": limit, "offset": offset}

    def load_shift_sales(self, shift_id: UUID) -> List[SaleRecord]:
        """Ventas y devoluciones del turno como registros tipados"""
        rows = self.db.query(Sale).options(selectinload(Sale.items)).filter(
            Sale.shift_id == shift_id
        ).order_by(Sale.created_at).all()
        return to_records(SaleRecord, rows)

    def compute_summary(self, shift_id: Optional[UUID]) -> ShiftSummary:
        """Resumen en vivo calculado desde las ventas almacenadas"""
        if shift_id is None:
            return ShiftSummary()
        return ledger.compute_shift_summary(self.load_shift_sales(shift_id), shift_id)

    def get_shift_detail(self, shift_id: UUID) -> ShiftDetail:
        """
        Detalle del turno.

        Un turno cerrado muestra su snapshot congelado; uno abierto, el
        resumen calculado en este momento.
        """
        shift = self.get_shift(shift_id)
        record = to_record(ShiftRecord, shift)
        sales = self.load_shift_sales(shift_id)

        if record.status == ShiftStatus.CLOSED and record.payments_breakdown is not None:
            summary = ShiftSummary(
                total=record.total_sales,
                tickets=record.tickets,
                by_payment=record.payments_breakdown
            )
        else:
            summary = ledger.compute_shift_summary(sales, shift_id)

        expenses = to_records(ExpenseRecord, shift.expenses)
        return ShiftDetail(
            **record.model_dump(),
            summary=summary,
            cash_expected_now=record.initial_cash + summary.by_payment[PaymentMethod.CASH.value],
            expenses=[ExpenseOut(**e.model_dump()) for e in expenses],
            expenses_total=ledger.sum_expenses(expenses, shift_id),
            products=ledger.rank_products(sales)
        )

    # ===== APERTURA / CIERRE =====

    def open_shift(self, seller: str, shift_type: ShiftType, initial_cash) -> Shift:
        """Abrir turno"""
        initial = ledger.validate_shift_opening(seller, initial_cash)

        existing = self.get_current_shift()
        if existing:
            raise ShiftAlreadyOpen(
                detail=f"Ya existe un turno abierto de {existing.seller}",
                shift_id=str(existing.id)
            )

        try:
            shift = Shift(
                seller=seller.strip(),
                type=ShiftType(shift_type),
                status=ShiftStatus.OPEN,
                start=self.clock.now(),
                initial_cash=initial
            )
            self.db.add(shift)
            self.db.commit()
            self.db.refresh(shift)

            logger.info(f"Shift opened: {shift.id} seller={shift.seller} type={shift.type.value} initial_cash={initial}")
            return shift

        except IntegrityError:
            # Otro turno se abrió entre la validación y el insert
            self.db.rollback()
            logger.warning(f"Concurrent shift open rejected for seller={seller}")
            raise ShiftAlreadyOpen()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error opening shift: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def close_shift(self, shift_id: UUID, cash_counted) -> Shift:
        """
        Cerrar turno con arqueo.

        Estado, fecha de cierre, arqueo y snapshot de ventas se confirman
        juntos; si algo falla no queda ningún cambio visible.
        """
        shift = self.get_shift(shift_id)
        record = to_record(ShiftRecord, shift)

        if record.status != ShiftStatus.OPEN:
            raise InvalidReconciliationInput(detail="El turno ya está cerrado")
        if not is_finite_non_negative(cash_counted):
            raise InvalidReconciliationInput(detail="El efectivo contado debe ser un número mayor o igual a cero")

        try:
            closed_at = self.clock.now()
            taken = self.db.execute(
                update(Shift)
                .where(Shift.id == shift_id, Shift.status == ShiftStatus.OPEN)
                .values(status=ShiftStatus.CLOSED, end=closed_at)
                .execution_options(synchronize_session=False)
            )
            if taken.rowcount == 0:
                raise InvalidReconciliationInput(detail="El turno ya está cerrado")

            # Con el turno tomado ya no entran ventas nuevas
            summary = ledger.compute_shift_summary(self.load_shift_sales(shift_id), shift_id)
            reconciliation = ledger.reconcile_shift_close(record, summary, cash_counted)

            self.db.execute(
                update(Shift)
                .where(Shift.id == shift_id)
                .values(
                    cash_counted=to_decimal(cash_counted),
                    cash_expected=reconciliation.cash_expected,
                    difference=reconciliation.difference,
                    total_sales=summary.total,
                    tickets=summary.tickets,
                    payments_breakdown={k: str(v) for k, v in summary.by_payment.items()}
                )
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            self.db.refresh(shift)

            logger.info(
                f"Shift closed: {shift_id} total={summary.total} tickets={summary.tickets} "
                f"expected={reconciliation.cash_expected} counted={cash_counted} difference={reconciliation.difference}"
            )
            return shift

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error closing shift {shift_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def guard_open_shift(self, shift_id: UUID) -> None:
        """
        Marca el turno dentro de la transacción en curso, solo si sigue abierto.

        Las ventas lo llaman antes de escribir: serializa la venta contra un
        cierre concurrente del mismo turno. No hace commit.
        """
        touched = self.db.execute(
            update(Shift)
            .where(Shift.id == shift_id, Shift.status == ShiftStatus.OPEN)
            .values(updated_at=self.clock.now())
            .execution_options(synchronize_session=False)
        )
        if touched.rowcount == 0:
            raise NoActiveShift(detail="El turno se cerró antes de registrar la venta")

    # ===== GASTOS =====

    def add_expense(self, shift_id: UUID, expense_data: ExpenseCreate) -> ShiftExpense:
        """Registrar gasto pagado desde la caja del turno"""
        shift = self.get_shift(shift_id)
        if not shift.is_open:
            raise NoActiveShift(detail="Solo se pueden registrar gastos en un turno abierto")
        if not is_positive_amount(expense_data.amount):
            raise InvalidAmount(detail="Ingresa el monto del gasto")

        is_supplier = expense_data.type == ExpenseType.PROVEEDOR
        if is_supplier and not expense_data.supplier_name:
            raise SupplierRequired()

        try:
            expense = ShiftExpense(
                shift_id=shift.id,
                type=expense_data.type,
                amount=expense_data.amount,
                supplier_name=expense_data.supplier_name if is_supplier else None,
                description=expense_data.description,
                created_at=self.clock.now()
            )
            self.db.add(expense)
            self.db.commit()
            self.db.refresh(expense)

            logger.info(f"Expense added to shift {shift_id}: {expense.type.value} {expense.amount}")
            return expense

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error adding expense to shift {shift_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def list_expenses(self, shift_id: UUID) -> Dict[str, Any]:
        self.get_shift(shift_id)
        expenses = self.db.query(ShiftExpense).filter(
            ShiftExpense.shift_id == shift_id
        ).order_by(desc(ShiftExpense.created_at)).all()
        records = to_records(ExpenseRecord, expenses)
        return {
            "expenses": expenses,
            "total": ledger.sum_expenses(records, shift_id)
        }
