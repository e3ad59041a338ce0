"""
Modelos SQLAlchemy para ventas y devoluciones

- Sale: ticket de venta o devolución (type=sale|return) asociado a un turno.
- SaleItem: líneas del ticket con nombre y precio congelados al momento
  de la venta; nunca se recalculan desde el precio actual del producto.
- TicketSequence: contador para numerar tickets en forma secuencial.

Una devolución guarda el total en positivo; el signo lo aporta type=return.
"""
import enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Integer, JSON, CheckConstraint, Uuid, DDL, event
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.common.mixins import UUIDMixin


# ===== ENUMS =====

class PaymentMethod(str, enum.Enum):
    """Métodos de pago (conjunto cerrado)"""
    CASH = "cash"           # Efectivo: exige monto recibido y calcula vuelto
    CARD = "card"           # Débito o crédito
    TRANSFER = "transfer"   # Transferencia o QR bancario
    FIADO = "fiado"         # Cargo a la cuenta de un cliente autorizado
    STAFF = "staff"         # Consumo del personal


class SaleType(str, enum.Enum):
    SALE = "sale"
    RETURN = "return"


PAYMENT_ORDER = [
    PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.TRANSFER,
    PaymentMethod.FIADO, PaymentMethod.STAFF
]


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ===== MODELOS =====

class Sale(Base, UUIDMixin):
    __tablename__ = "sales"

    ticket = Column(String(20), nullable=False, unique=True, index=True)
    type = Column(Enum(SaleType, name="sale_type", values_callable=_enum_values), nullable=False, default=SaleType.SALE)
    total = Column(Numeric(15, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod, name="payment_method", values_callable=_enum_values), nullable=False, index=True)

    # Solo para efectivo
    cash_received = Column(Numeric(15, 2), nullable=True)
    change_amount = Column(Numeric(15, 2), nullable=True)

    shift_id = Column(Uuid(as_uuid=True), ForeignKey("shifts.id"), nullable=True, index=True)
    seller = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Solo devoluciones: venta original
    original_sale_id = Column(Uuid(as_uuid=True), ForeignKey("sales.id"), nullable=True, index=True)

    notes = Column(JSON, nullable=True)  # {"client_id": ...} en fiado; motivo en devoluciones

    items = relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        foreign_keys="SaleItem.sale_id"
    )
    shift = relationship("Shift")

    __table_args__ = (
        CheckConstraint("total >= 0", name="ck_sales_total_non_negative"),
    )

    @property
    def signed_total(self):
        """Total con signo según el tipo"""
        return -self.total if self.type == SaleType.RETURN else self.total


class SaleItem(Base, UUIDMixin):
    """Línea de ticket con snapshot de precio"""
    __tablename__ = "sale_items"

    sale_id = Column(Uuid(as_uuid=True), ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(Uuid(as_uuid=True), ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(150), nullable=False)
    price = Column(Numeric(15, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # Solo en devoluciones: línea vendida que se devuelve
    source_item_id = Column(Uuid(as_uuid=True), ForeignKey("sale_items.id"), nullable=True, index=True)

    sale = relationship("Sale", back_populates="items", foreign_keys=[sale_id])

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        CheckConstraint("price >= 0", name="ck_sale_items_price_non_negative"),
    )

    @property
    def subtotal(self):
        return self.price * self.quantity


class TicketSequence(Base):
    """Contador de tickets (una fila por secuencia)"""
    __tablename__ = "ticket_sequences"

    prefix = Column(String(10), primary_key=True)
    current_number = Column(Integer, nullable=False, default=0)


TICKET_SEQUENCE = "ticket"

# Fila inicial del contador; ventas y devoluciones comparten la numeración
event.listen(
    TicketSequence.__table__,
    "after_create",
    DDL(f"INSERT INTO ticket_sequences (prefix, current_number) VALUES ('{TICKET_SEQUENCE}', 0)")
)
