"""
Esquemas Pydantic para turnos, resumen de ventas y gastos

Incluye los registros tipados (ShiftRecord, ExpenseRecord) que forman la
frontera estricta entre las filas almacenadas y la lógica de conciliación.
"""
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime

from app.modules.shifts.models import ShiftStatus, ShiftType, ExpenseType
from app.modules.sales.models import PAYMENT_ORDER


def empty_breakdown() -> Dict[str, Decimal]:
    return {method.value: Decimal("0") for method in PAYMENT_ORDER}


# ===== RESUMEN / ARQUEO =====

class ShiftSummary(BaseModel):
    """Resumen de ventas de un turno: total, tickets y desglose por método"""
    total: Decimal = Decimal("0")
    tickets: int = 0
    by_payment: Dict[str, Decimal] = Field(default_factory=empty_breakdown)


class Reconciliation(BaseModel):
    """Resultado del arqueo"""
    cash_expected: Decimal
    difference: Decimal = Field(description="Positivo = sobrante, negativo = faltante")


class ProductSales(BaseModel):
    """Ranking de productos vendidos"""
    product_id: Optional[UUID] = None
    name: str
    quantity: int
    total: Decimal


# ===== REGISTROS TIPADOS =====

class ShiftRecord(BaseModel):
    id: UUID
    seller: str
    type: ShiftType
    status: ShiftStatus
    start: datetime
    end: Optional[datetime] = None
    initial_cash: Decimal
    cash_counted: Optional[Decimal] = None
    cash_expected: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    total_sales: Optional[Decimal] = None
    tickets: Optional[int] = None
    payments_breakdown: Optional[Dict[str, Decimal]] = None

    model_config = {"from_attributes": True}


class ExpenseRecord(BaseModel):
    id: UUID
    shift_id: UUID
    type: ExpenseType
    amount: Decimal
    supplier_name: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ===== ENTRADA =====

class ShiftOpen(BaseModel):
    """Esquema para abrir turno"""
    seller: str = Field(..., max_length=100, description="Vendedor responsable")
    type: ShiftType = Field(..., description="Turno día o noche")
    initial_cash: Decimal = Field(..., description="Efectivo inicial en caja")


class ShiftClose(BaseModel):
    """Esquema para cerrar turno con arqueo"""
    cash_counted: Decimal = Field(..., description="Efectivo contado al cierre")


class ExpenseCreate(BaseModel):
    """Esquema para registrar un gasto del turno"""
    type: ExpenseType = Field(..., description="Tipo de gasto")
    amount: Decimal = Field(..., description="Monto (mayor a cero)")
    supplier_name: Optional[str] = Field(None, max_length=150, description="Proveedor (obligatorio si type=proveedor)")
    description: Optional[str] = Field(None, max_length=500)

    @field_validator('supplier_name', 'description')
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


# ===== SALIDA =====

class ShiftOut(BaseModel):
    id: UUID
    seller: str
    type: ShiftType
    status: ShiftStatus
    start: datetime
    end: Optional[datetime] = None
    initial_cash: Decimal
    cash_counted: Optional[Decimal] = None
    cash_expected: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    total_sales: Optional[Decimal] = None
    tickets: Optional[int] = None
    payments_breakdown: Optional[Dict[str, Decimal]] = None

    model_config = {"from_attributes": True}


class ExpenseOut(BaseModel):
    id: UUID
    shift_id: UUID
    type: ExpenseType
    amount: Decimal
    supplier_name: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ShiftDetail(ShiftOut):
    """Turno con resumen en vivo (o snapshot si está cerrado), gastos y productos"""
    summary: ShiftSummary
    cash_expected_now: Decimal = Field(description="Efectivo inicial + ventas en efectivo")
    expenses: List[ExpenseOut] = []
    expenses_total: Decimal = Decimal("0")
    products: List[ProductSales] = []


class ShiftList(BaseModel):
    shifts: List[ShiftOut]
    total: int
    limit: int
    offset: int


class ExpenseList(BaseModel):
    expenses: List[ExpenseOut]
    total: Decimal
