"""
Esquemas Pydantic para clientes, fiado y pagos
"""
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime

from app.modules.clients.models import PaymentSchedule, MovementType


class PaymentMode(str, Enum):
    ABONO = "abono"   # Pago parcial
    TOTAL = "total"   # Cancela la deuda completa


# ===== REGISTROS TIPADOS =====

class ClientRecord(BaseModel):
    id: UUID
    name: str
    authorized: bool
    balance: Decimal
    limit: Decimal
    payment_schedule: PaymentSchedule
    version: int

    model_config = {"from_attributes": True}


class LedgerChange(BaseModel):
    """Resultado de aplicar un cargo o pago a la cuenta del cliente"""
    new_balance: Decimal
    movement_type: MovementType
    amount: Decimal
    description: str


# ===== ENTRADA =====

class ClientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, description="Nombre del cliente")
    authorized: bool = Field(default=False, description="Autorizado para fiar")
    limit: Decimal = Field(default=Decimal("0"), ge=0, description="Límite de crédito")
    payment_schedule: PaymentSchedule = PaymentSchedule.IMMEDIATE

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre no puede estar vacío')
        return cleaned


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    limit: Optional[Decimal] = Field(None, ge=0)
    payment_schedule: Optional[PaymentSchedule] = None


class AuthorizationUpdate(BaseModel):
    authorized: bool


class PaymentCreate(BaseModel):
    """
    Pago de deuda.

    En modo total el monto se ignora: se cancela el saldo completo.
    """
    mode: PaymentMode = PaymentMode.ABONO
    amount: Optional[Decimal] = Field(None, description="Monto del abono")
    description: Optional[str] = Field(None, max_length=300)


# ===== SALIDA =====

class MovementOut(BaseModel):
    id: UUID
    client_id: UUID
    amount: Decimal
    type: MovementType
    description: Optional[str] = None
    balance_after: Decimal
    sale_id: Optional[UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ClientOut(BaseModel):
    id: UUID
    name: str
    authorized: bool
    balance: Decimal
    limit: Decimal
    available_credit: Decimal
    payment_schedule: PaymentSchedule
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}


class ClientDetail(ClientOut):
    movements: List[MovementOut] = []


class ClientList(BaseModel):
    clients: List[ClientOut]
    total: int
    limit: int
    offset: int


class ClientStatement(BaseModel):
    """Estado de cuenta en un rango de fechas"""
    client: ClientOut
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    charged: Decimal = Field(description="Total fiado en el rango")
    paid: Decimal = Field(description="Total pagado en el rango (abonos y pagos totales)")
    movements: List[MovementOut]


class DebtorItem(BaseModel):
    id: UUID
    name: str
    balance: Decimal
    limit: Decimal
    utilization: Decimal = Field(description="Porcentaje del límite usado")


class DebtOverview(BaseModel):
    total_debt: Decimal
    total_limit: Decimal
    utilization: Decimal
    clients_count: int
    authorized_count: int
    blocked_count: int
    by_schedule: Dict[str, int]
    top_debtors: List[DebtorItem]
