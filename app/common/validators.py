"""
Validadores de montos y textos compartidos por los módulos del POS
"""
from decimal import Decimal, InvalidOperation
from typing import Optional


def to_decimal(value) -> Optional[Decimal]:
    """
    Convierte un valor numérico a Decimal.
    Retorna None si no es un número (bool, texto inválido, None).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        # float pasa por str para no arrastrar la representación binaria
        return Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None


def is_finite_non_negative(value) -> bool:
    """
    Valida un monto de caja: número finito y >= 0.
    Rechaza NaN, infinitos y negativos.
    """
    amount = to_decimal(value)
    if amount is None or not amount.is_finite():
        return False
    return amount >= 0


def is_positive_amount(value) -> bool:
    """Monto finito estrictamente mayor a cero"""
    amount = to_decimal(value)
    return amount is not None and amount.is_finite() and amount > 0


def clean_text(value: Optional[str]) -> Optional[str]:
    """Quita espacios; retorna None si queda vacío"""
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None
