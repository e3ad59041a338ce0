from fastapi import APIRouter, status, Depends, Query
from uuid import UUID
from typing import Optional
from sqlalchemy.orm import Session

from app.core.clock import get_clock
from app.database.database import get_db
from app.modules.auth.dependencies import require_admin, require_any_role
from app.modules.auth.schemas import AuthContext
from app.modules.shifts.models import ShiftStatus
from app.modules.shifts.service import ShiftService
from app.modules.shifts.schemas import (
    ShiftOpen, ShiftClose, ShiftOut, ShiftDetail, ShiftList,
    ExpenseCreate, ExpenseOut, ExpenseList
)

shift_router = APIRouter(prefix="/shifts", tags=["Shifts"])


@shift_router.post("/open", response_model=ShiftOut, status_code=status.HTTP_201_CREATED)
def open_shift(
    data: ShiftOpen,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    auth_context: AuthContext = Depends(require_any_role())
):
    """
    Abrir turno.

    Solo puede haber un turno abierto; si ya existe responde 409.
    """
    return ShiftService(db, clock).open_shift(data.seller, data.type, data.initial_cash)


@shift_router.get("/current", response_model=Optional[ShiftDetail])
def get_current_shift(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    """Turno abierto con su resumen en vivo (null si no hay)"""
    service = ShiftService(db)
    shift = service.get_current_shift()
    if not shift:
        return None
    return service.get_shift_detail(shift.id)


@shift_router.post("/{shift_id}/close", response_model=ShiftOut)
def close_shift(
    shift_id: UUID,
    data: ShiftClose,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    auth_context: AuthContext = Depends(require_any_role())
):
    """
    Cerrar turno con arqueo.

    - **cash_counted**: efectivo contado en caja
    - La diferencia es contado - (inicial + ventas netas en efectivo)
    """
    return ShiftService(db, clock).close_shift(shift_id, data.cash_counted)


@shift_router.get("/", response_model=ShiftList)
def list_shifts(
    status_filter: Optional[ShiftStatus] = Query(None, alias="status", description="open | closed"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Historial de turnos"""
    return ShiftService(db).list_shifts(status_filter, limit, offset)


@shift_router.get("/{shift_id}", response_model=ShiftDetail)
def get_shift(
    shift_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Detalle de turno: resumen, gastos y productos vendidos"""
    return ShiftService(db).get_shift_detail(shift_id)


@shift_router.post("/{shift_id}/expenses", response_model=ExpenseOut, status_code=status.HTTP_201_CREATED)
def add_expense(
    shift_id: UUID,
    data: ExpenseCreate,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    auth_context: AuthContext = Depends(require_any_role())
):
    """Registrar gasto del turno (sueldo, flete, proveedor u otro)"""
    return ShiftService(db, clock).add_expense(shift_id, data)


@shift_router.get("/{shift_id}/expenses", response_model=ExpenseList)
def list_expenses(
    shift_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    return ShiftService(db).list_expenses(shift_id)
