from fastapi import APIRouter, status, Depends, Query
from uuid import UUID
from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Session

from app.core.clock import get_clock
from app.database.database import get_db
from app.modules.auth.dependencies import require_admin, require_any_role
from app.modules.auth.schemas import AuthContext
from app.modules.clients.service import ClientService
from app.modules.clients.schemas import (
    ClientCreate, ClientUpdate, AuthorizationUpdate, PaymentCreate,
    ClientOut, ClientDetail, ClientList, MovementOut, ClientStatement, DebtOverview
)

client_router = APIRouter(prefix="/clients", tags=["Clients"])


@client_router.post("/", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(
    data: ClientCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Crear cliente de fiado"""
    return ClientService(db).create_client(data)


@client_router.get("/", response_model=ClientList)
def list_clients(
    search: Optional[str] = Query(None, description="Buscar por nombre"),
    with_debt: bool = Query(False, description="Solo clientes con deuda"),
    authorized: Optional[bool] = Query(None, description="Filtrar por autorización"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    """
    Listar clientes.

    Abierto a todos los roles: el mostrador necesita elegir el cliente al fiar.
    """
    return ClientService(db).list_clients(search, with_debt, authorized, limit, offset)


@client_router.get("/overview", response_model=DebtOverview)
def debt_overview(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Deuda total, utilización del crédito y mayores deudores"""
    return ClientService(db).get_debt_overview()


@client_router.get("/{client_id}", response_model=ClientDetail)
def get_client(
    client_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Cliente con su historial de movimientos"""
    return ClientService(db).get_client(client_id)


@client_router.patch("/{client_id}", response_model=ClientOut)
def update_client(
    client_id: UUID,
    data: ClientUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    return ClientService(db).update_client(client_id, data)


@client_router.put("/{client_id}/authorization", response_model=ClientOut)
def set_authorization(
    client_id: UUID,
    data: AuthorizationUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Autorizar o bloquear el fiado"""
    return ClientService(db).set_authorization(client_id, data.authorized)


@client_router.post("/{client_id}/payments", response_model=MovementOut, status_code=status.HTTP_201_CREATED)
def register_payment(
    client_id: UUID,
    data: PaymentCreate,
    db: Session = Depends(get_db),
    clock=Depends(get_clock),
    auth_context: AuthContext = Depends(require_admin())
):
    """
    Registrar pago de deuda.

    - **mode=abono**: descuenta `amount` (no puede superar la deuda)
    - **mode=total**: cancela la deuda completa, `amount` se ignora
    """
    return ClientService(db, clock).register_payment(client_id, data)


@client_router.get("/{client_id}/statement", response_model=ClientStatement)
def get_statement(
    client_id: UUID,
    start: Optional[datetime] = Query(None, description="Desde (incluido)"),
    end: Optional[datetime] = Query(None, description="Hasta (excluido)"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_admin())
):
    """Estado de cuenta del cliente"""
    return ClientService(db).get_statement(client_id, start, end)
