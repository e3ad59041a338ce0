from app.database.database import Base
from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint
from app.common.mixins import UUIDMixin, TimestampMixin


class Product(Base, UUIDMixin, TimestampMixin):
    """
    Producto del inventario.

    El stock solo se modifica con decrementos/incrementos atómicos
    (ver ProductService.decrement_stock) para que dos ventas concurrentes
    no puedan vender la misma última unidad.
    """
    __tablename__ = "products"

    name = Column(String(150), nullable=False, index=True)
    barcode = Column(String(64), nullable=True, unique=True)  # Único si existe
    category = Column(String(80), nullable=True, index=True)
    price = Column(Numeric(15, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=5)  # Umbral de stock bajo

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("min_stock >= 0", name="ck_products_min_stock_non_negative"),
    )

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock
