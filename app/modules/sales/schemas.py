"""
Esquemas Pydantic para ventas, devoluciones y cambios de método de pago
"""
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List, Dict, Any, Union
from uuid import UUID
from datetime import datetime

from app.modules.sales.models import PaymentMethod, SaleType


# ===== REGISTROS TIPADOS =====

class SaleItemRecord(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    name: str
    price: Decimal
    quantity: int
    source_item_id: Optional[UUID] = None

    model_config = {"from_attributes": True}


class SaleRecord(BaseModel):
    """
    Registro de venta leído del almacén.

    payment_method acepta texto libre para que un valor fuera del conjunto
    cerrado llegue al libro de caja y sea rechazado allí explícitamente.
    """
    id: UUID
    ticket: str
    type: SaleType
    total: Decimal
    payment_method: Union[PaymentMethod, str]
    cash_received: Optional[Decimal] = None
    change_amount: Optional[Decimal] = None
    shift_id: Optional[UUID] = None
    seller: str
    created_at: datetime
    original_sale_id: Optional[UUID] = None
    items: List[SaleItemRecord] = []
    notes: Optional[Dict[str, Any]] = None

    model_config = {"from_attributes": True}


# ===== ENTRADA =====

class CartLine(BaseModel):
    product_id: UUID = Field(..., description="ID del producto")
    quantity: int = Field(..., gt=0, description="Unidades")


class SaleCreate(BaseModel):
    """Esquema para registrar una venta"""
    lines: List[CartLine] = Field(default=[], description="Líneas del carrito")
    payment_method: str = Field(..., description="cash | card | transfer | fiado | staff")
    cash_received: Optional[Decimal] = Field(None, description="Efectivo recibido (solo cash)")
    fiado_client_id: Optional[UUID] = Field(None, description="Cliente (solo fiado)")


class ReturnLine(BaseModel):
    item_id: UUID = Field(..., description="ID de la línea vendida")
    quantity: int = Field(..., ge=0, description="Unidades a devolver")


class ReturnCreate(BaseModel):
    """Esquema para registrar una devolución"""
    lines: List[ReturnLine] = Field(default=[], description="Líneas a devolver")
    reason: Optional[str] = Field(None, max_length=500, description="Motivo")
    refund_method: str = Field(default=PaymentMethod.CASH.value, description="Método de reembolso")

    @field_validator('reason')
    @classmethod
    def strip_reason(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class PaymentMethodUpdate(BaseModel):
    payment_method: str = Field(..., description="Nuevo método de pago")


# ===== SALIDA =====

class SaleItemOut(BaseModel):
    id: UUID
    product_id: Optional[UUID] = None
    name: str
    price: Decimal
    quantity: int
    subtotal: Decimal
    source_item_id: Optional[UUID] = None

    model_config = {"from_attributes": True}


class SaleOut(BaseModel):
    id: UUID
    ticket: str
    type: SaleType
    total: Decimal
    payment_method: PaymentMethod
    cash_received: Optional[Decimal] = None
    change_amount: Optional[Decimal] = None
    shift_id: Optional[UUID] = None
    seller: str
    created_at: datetime
    original_sale_id: Optional[UUID] = None
    notes: Optional[Dict[str, Any]] = None
    items: List[SaleItemOut] = []

    model_config = {"from_attributes": True}


class SaleList(BaseModel):
    sales: List[SaleOut]
    total: int
    limit: int
    offset: int


class ReturnableLine(BaseModel):
    """Cantidad que aún se puede devolver de una línea vendida"""
    item_id: UUID
    product_id: Optional[UUID] = None
    name: str
    price: Decimal
    sold: int
    returned: int
    returnable: int
