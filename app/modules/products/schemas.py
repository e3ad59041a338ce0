"""
Esquemas Pydantic para productos e inventario
"""
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime


class ProductCreate(BaseModel):
    """Esquema para crear producto"""
    name: str = Field(..., min_length=1, max_length=150, description="Nombre del producto")
    barcode: Optional[str] = Field(None, max_length=64, description="Código de barras (único)")
    category: Optional[str] = Field(None, max_length=80, description="Categoría")
    price: Decimal = Field(..., ge=0, description="Precio de venta")
    stock: int = Field(default=0, ge=0, description="Stock inicial")
    min_stock: Optional[int] = Field(None, ge=0, description="Stock mínimo (alerta)")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre no puede estar vacío')
        return cleaned

    @field_validator('barcode', 'category')
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class ProductUpdate(BaseModel):
    """Esquema para actualizar producto (el stock se ajusta con /stock)"""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    barcode: Optional[str] = Field(None, max_length=64)
    category: Optional[str] = Field(None, max_length=80)
    price: Optional[Decimal] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)


class StockAdjustment(BaseModel):
    """Ingreso de stock con motivo"""
    quantity: int = Field(..., gt=0, description="Unidades a agregar")
    reason: str = Field(default="Reposición", max_length=200, description="Motivo del ingreso")


class ProductOut(BaseModel):
    id: UUID
    name: str
    barcode: Optional[str] = None
    category: Optional[str] = None
    price: Decimal
    stock: int
    min_stock: int
    is_low_stock: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProductList(BaseModel):
    products: List[ProductOut]
    total: int
    limit: int
    offset: int


class LowStockItem(BaseModel):
    id: UUID
    name: str
    stock: int
    min_stock: int
    deficit: int = Field(description="Unidades faltantes para llegar al mínimo")
