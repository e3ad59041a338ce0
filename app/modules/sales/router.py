from fastapi import APIRouter, status, Depends, Query
from uuid import UUID
from typing import List, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from app.core.clock import get_clock
from app.database.database import get_db
from app.modules.auth.dependencies import require_admin, require_any_role
from app.modules.auth.schemas import AuthContext
from app.modules.sales.models import SaleType, PaymentMethod
from app.modules.sales.service import SaleService
from app.modules.sales.schemas import (
    SaleCreate, ReturnCreate, PaymentMethodUpdate, SaleOut, SaleList, ReturnableLine
)

sale_router = APIRouter(prefix="/sales", tags=["Sales"])


@sale_router.post("/", response_model=SaleOut, status_code=status.HTTP_201_CREATED)
def register_sale(
    data: SaleCreate,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    auth_context: AuthContext = Depends(require_any_role())
):
    """
    Registrar venta en el turno abierto.

    - **cash**: requiere `cash_received` >= total; responde con el vuelto
    - **fiado**: requiere `fiado_client_id` de un cliente autorizado con cupo
    - El stock se descuenta en la misma transacción
    """
    return SaleService(db, clock).register_sale(data)


@sale_router.get("/", response_model=SaleList)
def list_sales(
    shift_id: Optional[UUID] = Query(None, description="Filtrar por turno"),
    sale_type: Optional[SaleType] = Query(None, alias="type", description="sale | return"),
    payment_method: Optional[PaymentMethod] = Query(None, description="Filtrar por método de pago"),
    start: Optional[datetime] = Query(None, description="Desde (incluido)"),
    end: Optional[datetime] = Query(None, description="Hasta (excluido)"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    """Historial de tickets"""
    return SaleService(db).list_sales(shift_id, sale_type, payment_method, start, end, limit, offset)


@sale_router.get("/ticket/{ticket}", response_model=SaleOut)
def get_by_ticket(
    ticket: str,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    return SaleService(db).get_by_ticket(ticket)


@sale_router.get("/{sale_id}", response_model=SaleOut)
def get_sale(
    sale_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    return SaleService(db).get_sale(sale_id)


@sale_router.get("/{sale_id}/returnable", response_model=List[ReturnableLine])
def get_returnable_quantities(
    sale_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    """Cantidades que aún se pueden devolver por línea"""
    return SaleService(db).get_returnable_quantities(sale_id)


@sale_router.post("/{sale_id}/returns", response_model=SaleOut, status_code=status.HTTP_201_CREATED)
def register_return(
    sale_id: UUID,
    data: ReturnCreate,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    auth_context: AuthContext = Depends(require_any_role())
):
    """
    Registrar devolución.

    Las cantidades se limitan a lo que queda por devolver de cada línea.
    """
    return SaleService(db, clock).register_return(sale_id, data)


@sale_router.patch("/{sale_id}/payment-method", response_model=SaleOut)
def edit_payment_method(
    sale_id: UUID,
    data: PaymentMethodUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Corregir el método de pago de un ticket (sin efectos en stock ni fiado)"""
    return SaleService(db).edit_payment_method(sale_id, data.payment_method)
