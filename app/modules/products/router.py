from fastapi import APIRouter, status, Depends, Query, Path
from uuid import UUID
from typing import List, Optional
from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import require_any_role, require_manager
from app.modules.auth.schemas import AuthContext
from app.modules.products.service import ProductService
from app.modules.products.schemas import (
    ProductCreate, ProductUpdate, ProductOut, ProductList,
    StockAdjustment, LowStockItem
)

product_router = APIRouter(prefix="/products", tags=["Products"])


@product_router.post("/", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_manager())
):
    """
    Crear producto.

    - **barcode**: opcional, único si se informa
    - **min_stock**: umbral de alerta (por defecto DEFAULT_MIN_STOCK)
    """
    return ProductService(db).create_product(data)


@product_router.get("/", response_model=ProductList)
def list_products(
    search: Optional[str] = Query(None, description="Buscar por nombre o código"),
    category: Optional[str] = Query(None, description="Filtrar por categoría"),
    low_stock: bool = Query(False, description="Solo productos con stock bajo"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    """Listar productos ordenados por nombre"""
    return ProductService(db).list_products(search, category, low_stock, limit, offset)


@product_router.get("/low-stock", response_model=List[LowStockItem])
def low_stock_products(
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    """Productos en o bajo su stock mínimo"""
    return ProductService(db).low_stock_products()


@product_router.get("/barcode/{barcode}", response_model=ProductOut)
def get_by_barcode(
    barcode: str = Path(..., description="Código de barras"),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    """Buscar producto por código de barras (escáner)"""
    return ProductService(db).get_by_barcode(barcode)


@product_router.get("/{product_id}", response_model=ProductOut)
def get_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_any_role())
):
    return ProductService(db).get_product(product_id)


@product_router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: UUID,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_manager())
):
    """Actualizar nombre, categoría, código, precio o stock mínimo"""
    return ProductService(db).update_product(product_id, data)


@product_router.post("/{product_id}/stock", response_model=ProductOut)
def add_stock(
    product_id: UUID,
    data: StockAdjustment,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_manager())
):
    """Ingresar unidades al stock con un motivo"""
    return ProductService(db).add_stock(product_id, data.quantity, data.reason)


@product_router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(require_manager())
):
    """Eliminar producto del inventario"""
    ProductService(db).delete_product(product_id)
