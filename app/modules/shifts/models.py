"""
Modelos SQLAlchemy para turnos y gastos de turno

- Shift: turno de caja (día/noche) con apertura, cierre y arqueo.
- ShiftExpense: gastos pagados desde la caja del turno (solo se agregan).

Solo puede existir un turno abierto a la vez: lo garantiza el índice único
parcial sobre status = 'open', además de la validación del servicio.
"""
import enum

from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric, Enum, Integer, JSON, Text, Index, CheckConstraint, Uuid, text
from sqlalchemy.orm import relationship

from app.database.database import Base
from app.common.mixins import UUIDMixin, TimestampMixin


# ===== ENUMS =====

class ShiftStatus(str, enum.Enum):
    """Estados de turno"""
    OPEN = "open"
    CLOSED = "closed"


class ShiftType(str, enum.Enum):
    """Tipos de turno"""
    DIA = "dia"
    NOCHE = "noche"


class ExpenseType(str, enum.Enum):
    """Tipos de gasto de turno"""
    SUELDO = "sueldo"
    FLETE = "flete"
    PROVEEDOR = "proveedor"   # Requiere nombre del proveedor
    OTRO = "otro"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ===== MODELOS =====

class Shift(Base, UUIDMixin, TimestampMixin):
    """
    Turno de caja.

    Los campos de arqueo (cash_counted, cash_expected, difference) y el
    snapshot de ventas (total_sales, tickets, payments_breakdown) se escriben
    una sola vez, en la misma transacción que cambia el estado a CLOSED.
    """
    __tablename__ = "shifts"

    seller = Column(String(100), nullable=False, index=True)
    type = Column(Enum(ShiftType, name="shift_type", values_callable=_enum_values), nullable=False)
    status = Column(
        Enum(ShiftStatus, name="shift_status", values_callable=_enum_values),
        nullable=False,
        default=ShiftStatus.OPEN,
        index=True
    )

    start = Column("start_time", DateTime(timezone=True), nullable=False)
    end = Column("end_time", DateTime(timezone=True), nullable=True)  # Solo al cerrar

    initial_cash = Column(Numeric(15, 2), nullable=False, default=0)

    # Arqueo (solo al cerrar)
    cash_counted = Column(Numeric(15, 2), nullable=True)
    cash_expected = Column(Numeric(15, 2), nullable=True)
    difference = Column(Numeric(15, 2), nullable=True)

    # Snapshot de ventas (solo al cerrar)
    total_sales = Column(Numeric(15, 2), nullable=True)
    tickets = Column(Integer, nullable=True)
    payments_breakdown = Column(JSON, nullable=True)  # {"cash": "3000.00", ...}

    expenses = relationship(
        "ShiftExpense",
        back_populates="shift",
        order_by="ShiftExpense.created_at",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index(
            "uq_shifts_single_open",
            "status",
            unique=True,
            postgresql_where=text("status = 'open'"),
            sqlite_where=text("status = 'open'")
        ),
        CheckConstraint("initial_cash >= 0", name="ck_shifts_initial_cash_non_negative"),
    )

    @property
    def is_open(self) -> bool:
        return self.status == ShiftStatus.OPEN


class ShiftExpense(Base, UUIDMixin):
    """Gasto pagado con efectivo del turno"""
    __tablename__ = "shift_expenses"

    shift_id = Column(Uuid(as_uuid=True), ForeignKey("shifts.id"), nullable=False, index=True)
    type = Column("expense_type", Enum(ExpenseType, name="expense_type", values_callable=_enum_values), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    supplier_name = Column(String(150), nullable=True)  # Obligatorio si type=proveedor
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    shift = relationship("Shift", back_populates="expenses")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_shift_expenses_amount_positive"),
    )
