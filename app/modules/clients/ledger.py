"""
Libro de crédito (fiado): reglas puras de cargo y pago.

No tocan la base de datos. ClientService las ejecuta bajo
compare-and-swap y persiste el movimiento resultante.
"""
from decimal import Decimal
from typing import Optional

from app.common.exceptions import (
    ClientNotAuthorized, InvalidAmount, CreditLimitExceeded, AmountExceedsBalance
)
from app.common.validators import is_positive_amount, to_decimal
from app.modules.clients.models import MovementType
from app.modules.clients.schemas import LedgerChange, PaymentMode


def apply_charge(client, amount, description: Optional[str] = None) -> LedgerChange:
    """
    Cargo fiado.

    Se valida en orden: autorización, monto positivo y límite de crédito.
    balance + amount igual al límite está permitido.
    """
    if not client.authorized:
        raise ClientNotAuthorized(client_id=str(client.id))
    if not is_positive_amount(amount):
        raise InvalidAmount(detail="El monto del fiado debe ser mayor a cero")

    amount = to_decimal(amount)
    new_balance = client.balance + amount
    if new_balance > client.limit:
        raise CreditLimitExceeded(
            detail=f"Límite de crédito excedido. Saldo: {client.balance}, "
                   f"Límite: {client.limit}, Cargo: {amount}",
            available=str(max(client.limit - client.balance, Decimal("0")))
        )

    return LedgerChange(
        new_balance=new_balance,
        movement_type=MovementType.FIADO,
        amount=amount,
        description=description or "Compra fiada"
    )


def apply_payment(client, amount, mode: PaymentMode, description: Optional[str] = None) -> LedgerChange:
    """
    Pago de deuda.

    - total: el saldo queda en cero y el movimiento registra lo cancelado;
      el monto informado se ignora.
    - abono: descuenta el monto, que no puede superar el saldo.
    """
    if PaymentMode(mode) == PaymentMode.TOTAL:
        if client.balance <= 0:
            raise InvalidAmount(detail="El cliente no tiene deuda pendiente")
        return LedgerChange(
            new_balance=Decimal("0"),
            movement_type=MovementType.PAGO_TOTAL,
            amount=client.balance,
            # El pago total usa siempre la descripción fija; la informada se descarta
            description="Pago total de la deuda"
        )

    if not is_positive_amount(amount):
        raise InvalidAmount(detail="El abono debe ser mayor a cero")
    amount = to_decimal(amount)
    if amount > client.balance:
        raise AmountExceedsBalance(
            detail=f"El abono ({amount}) supera la deuda pendiente ({client.balance})"
        )

    return LedgerChange(
        new_balance=max(client.balance - amount, Decimal("0")),
        movement_type=MovementType.ABONO,
        amount=amount,
        description=description or "Abono registrado"
    )
