"""
Modelos SQLAlchemy para clientes con fiado (crédito) y sus movimientos

- Client: cuenta corriente con saldo, límite y autorización para fiar.
- ClientMovement: historial de cargos (fiado) y pagos (abono, pago-total).

El saldo solo cambia mediante compare-and-swap sobre `version`
(ver ClientService._compare_and_swap).
"""
import enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Integer, Boolean, Text, CheckConstraint, Uuid
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.common.mixins import UUIDMixin, TimestampMixin


class PaymentSchedule(str, enum.Enum):
    """Frecuencia de pago acordada con el cliente"""
    IMMEDIATE = "immediate"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class MovementType(str, enum.Enum):
    FIADO = "fiado"             # Cargo por compra
    ABONO = "abono"             # Pago parcial
    PAGO_TOTAL = "pago-total"   # Cancela toda la deuda


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Client(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "clients"

    name = Column(String(150), nullable=False, index=True)
    authorized = Column(Boolean, nullable=False, default=False)
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    limit = Column("credit_limit", Numeric(15, 2), nullable=False, default=0)
    payment_schedule = Column(
        Enum(PaymentSchedule, name="payment_schedule", values_callable=_enum_values),
        nullable=False,
        default=PaymentSchedule.IMMEDIATE
    )
    version = Column(Integer, nullable=False, default=1)  # Token de compare-and-swap

    movements = relationship(
        "ClientMovement",
        back_populates="client",
        order_by="desc(ClientMovement.created_at)",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_clients_balance_non_negative"),
        CheckConstraint("credit_limit >= 0", name="ck_clients_limit_non_negative"),
    )

    @property
    def available_credit(self):
        return max(self.limit - self.balance, 0)


class ClientMovement(Base, UUIDMixin):
    __tablename__ = "client_movements"

    client_id = Column(Uuid(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    type = Column("movement_type", Enum(MovementType, name="movement_type", values_callable=_enum_values), nullable=False)
    description = Column(Text, nullable=True)
    balance_after = Column(Numeric(15, 2), nullable=False)
    sale_id = Column(Uuid(as_uuid=True), ForeignKey("sales.id"), nullable=True, index=True)  # Solo cargos por venta
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)

    client = relationship("Client", back_populates="movements")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_client_movements_amount_positive"),
    )
