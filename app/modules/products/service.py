"""
Servicios de negocio para productos e inventario

- ProductService: CRUD de productos, búsqueda por código de barras,
  ingreso de stock y alertas de stock bajo.
- decrement_stock / increment_stock: primitivas atómicas usadas por las
  ventas y devoluciones. No hacen commit: forman parte de la unidad de
  trabajo de quien las llama.
"""
import logging
from typing import Optional, Dict, Any, List
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.common.exceptions import ProductNotFound, ProductConflict, StockInsufficient, InvalidAmount
from app.modules.products.models import Product
from app.modules.products.schemas import ProductCreate, ProductUpdate, LowStockItem

logger = logging.getLogger(__name__)

NULLABLE_FIELDS = {"barcode", "category"}


class ProductService:
    """Servicio para gestión de productos"""

    def __init__(self, db: Session):
        self.db = db

    def create_product(self, product_data: ProductCreate) -> Product:
        """Crear producto"""
        try:
            if product_data.barcode:
                self._ensure_barcode_available(product_data.barcode)

            min_stock = product_data.min_stock
            if min_stock is None:
                min_stock = settings.DEFAULT_MIN_STOCK

            product = Product(
                name=product_data.name,
                barcode=product_data.barcode,
                category=product_data.category,
                price=product_data.price,
                stock=product_data.stock,
                min_stock=min_stock
            )
            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)

            logger.info(f"Product created: {product.name} ({product.id}) stock={product.stock}")
            return product

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise ProductConflict()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating product: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_product(self, product_id: UUID) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFound()
        return product

    def get_by_barcode(self, barcode: str) -> Product:
        """Buscar producto por código de barras exacto"""
        product = self.db.query(Product).filter(Product.barcode == barcode.strip()).first()
        if not product:
            raise ProductNotFound(detail=f"No hay producto con código {barcode}")
        return product

    def list_products(self, search: Optional[str] = None, category: Optional[str] = None,
                      low_stock: bool = False, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Listar productos con filtros opcionales"""
        query = self.db.query(Product)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(Product.name.ilike(pattern), Product.barcode.ilike(pattern)))

        if category:
            query = query.filter(Product.category == category)

        if low_stock:
            query = query.filter(Product.stock <= Product.min_stock)

        query = query.order_by(Product.name)

        total = query.count()
        products = query.offset(offset).limit(limit).all()

        return {
            "products": products,
            "total": total,
            "limit": limit,
            "offset": offset
        }

    def update_product(self, product_id: UUID, product_data: ProductUpdate) -> Product:
        """Actualizar datos del producto (no el stock)"""
        try:
            product = self.get_product(product_id)

            # Solo código de barras y categoría admiten null; en el resto se ignora
            update_data = {
                field: value
                for field, value in product_data.model_dump(exclude_unset=True).items()
                if value is not None or field in NULLABLE_FIELDS
            }
            if update_data.get("barcode"):
                update_data["barcode"] = update_data["barcode"].strip()
                self._ensure_barcode_available(update_data["barcode"], exclude_id=product.id)

            for field, value in update_data.items():
                setattr(product, field, value)

            self.db.commit()
            self.db.refresh(product)
            return product

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise ProductConflict()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating product {product_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def delete_product(self, product_id: UUID) -> bool:
        """
        Eliminar producto.

        Las ventas guardan nombre y precio en sus ítems, por lo que el
        historial no depende de que el producto siga existiendo.
        """
        product = self.get_product(product_id)
        self.db.delete(product)
        self.db.commit()
        logger.info(f"Product deleted: {product.name} ({product_id})")
        return True

    def add_stock(self, product_id: UUID, quantity: int, reason: str) -> Product:
        """Ingreso de mercadería"""
        if quantity <= 0:
            raise InvalidAmount(detail="La cantidad debe ser mayor a cero")
        try:
            product = self.get_product(product_id)
            new_stock = self.increment_stock(product.id, quantity)
            self.db.commit()
            self.db.refresh(product)

            logger.info(f"Stock added: {product.name} +{quantity} ({reason}) -> {new_stock}")
            return product

        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error adding stock to {product_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def low_stock_products(self) -> List[LowStockItem]:
        """Productos en o bajo su stock mínimo, los más críticos primero"""
        products = self.db.query(Product).filter(
            Product.stock <= Product.min_stock
        ).order_by((Product.min_stock - Product.stock).desc(), Product.name).all()

        return [
            LowStockItem(
                id=p.id,
                name=p.name,
                stock=p.stock,
                min_stock=p.min_stock,
                deficit=p.min_stock - p.stock
            )
            for p in products
        ]

    # ===== PRIMITIVAS ATÓMICAS =====

    def decrement_stock(self, product_id: UUID, quantity: int) -> int:
        """
        Decremento condicional: solo descuenta si hay stock suficiente.

        El chequeo y la escritura son una sola sentencia UPDATE, así que dos
        ventas concurrentes no pueden pasar ambas con una lectura vieja.
        Retorna el stock resultante.
        """
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(stock=Product.stock - quantity)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            current = self.db.execute(
                select(Product.name, Product.stock).where(Product.id == product_id)
            ).first()
            if current is None:
                raise ProductNotFound()
            logger.warning(f"Stock insufficient for {current.name}: requested {quantity}, available {current.stock}")
            raise StockInsufficient(
                detail=f"Stock insuficiente para '{current.name}'. "
                       f"Disponible: {current.stock}, Solicitado: {quantity}",
                product_id=str(product_id),
                available=current.stock
            )

        stock, min_stock, name = self.db.execute(
            select(Product.stock, Product.min_stock, Product.name).where(Product.id == product_id)
        ).one()
        if stock <= min_stock:
            logger.warning(f"Low stock: {name} has {stock} units (min {min_stock})")
        return stock

    def increment_stock(self, product_id: UUID, quantity: int) -> int:
        """Incremento atómico (devoluciones e ingresos). Retorna el stock resultante."""
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=Product.stock + quantity)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise ProductNotFound()
        return self.db.execute(select(Product.stock).where(Product.id == product_id)).scalar_one()

    def _ensure_barcode_available(self, barcode: str, exclude_id: Optional[UUID] = None):
        query = self.db.query(Product).filter(Product.barcode == barcode)
        if exclude_id:
            query = query.filter(Product.id != exclude_id)
        if query.first():
            raise ProductConflict(detail=f"Ya existe un producto con el código de barras {barcode}")
