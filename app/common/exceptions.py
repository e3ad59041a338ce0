"""
Taxonomía de errores de negocio del POS.

Cada error es un HTTPException con un `code` estable para que la UI pueda
mostrar el mensaje adecuado sin interpretar el texto. Ninguno es fatal: todos
son fallas de precondición que el usuario corrige y reintenta.
"""
from fastapi import HTTPException, status


class POSError(HTTPException):
    """Error de negocio con código estable"""
    code = "pos_error"
    status_code = status.HTTP_400_BAD_REQUEST
    message = "Operación inválida"

    def __init__(self, detail: str = None, **context):
        self.context = context
        super().__init__(status_code=self.status_code, detail=detail or self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, detail={self.detail!r})"


# ===== CARRITO / VENTA =====

class EmptyCart(POSError):
    code = "empty_cart"
    message = "El carrito está vacío"


class NoActiveShift(POSError):
    code = "no_active_shift"
    status_code = status.HTTP_409_CONFLICT
    message = "No hay un turno abierto. Abre un turno antes de vender."


class InsufficientCash(POSError):
    code = "insufficient_cash"
    message = "El efectivo recibido es inferior al total de la venta"


class InvalidPaymentMethod(POSError):
    code = "invalid_payment_method"
    message = "Método de pago inválido"


class StockInsufficient(POSError):
    code = "stock_insufficient"
    status_code = status.HTTP_409_CONFLICT
    message = "Stock insuficiente"


class NothingToReturn(POSError):
    code = "nothing_to_return"
    message = "Selecciona cantidades a devolver"


# ===== FIADO / CRÉDITO =====

class ClientRequired(POSError):
    code = "client_required"
    message = "Debes seleccionar un cliente autorizado para fiar"


class ClientNotAuthorized(POSError):
    code = "client_not_authorized"
    status_code = status.HTTP_403_FORBIDDEN
    message = "El cliente no tiene autorización para fiado"


class CreditLimitExceeded(POSError):
    code = "credit_limit_exceeded"
    status_code = status.HTTP_409_CONFLICT
    message = "Límite de crédito excedido"


class InvalidAmount(POSError):
    code = "invalid_amount"
    message = "El monto debe ser mayor a cero"


class AmountExceedsBalance(POSError):
    code = "amount_exceeds_balance"
    message = "El abono supera la deuda pendiente"


class ConcurrentUpdate(POSError):
    code = "concurrent_update"
    status_code = status.HTTP_409_CONFLICT
    message = "El registro fue modificado por otra operación, intenta nuevamente"


# ===== TURNOS =====

class ShiftAlreadyOpen(POSError):
    code = "shift_already_open"
    status_code = status.HTTP_409_CONFLICT
    message = "Ya existe un turno abierto"


class InvalidInitialCash(POSError):
    code = "invalid_initial_cash"
    message = "El efectivo inicial y el vendedor son obligatorios"


class InvalidReconciliationInput(POSError):
    code = "invalid_reconciliation_input"
    message = "Datos de cierre de turno inválidos"


class SupplierRequired(POSError):
    code = "supplier_required"
    message = "Ingresa el nombre del proveedor"


# ===== NO ENCONTRADOS / CONFLICTOS =====

class ProductNotFound(POSError):
    code = "product_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Producto no encontrado"


class ProductConflict(POSError):
    code = "product_conflict"
    status_code = status.HTTP_409_CONFLICT
    message = "Ya existe un producto con ese código de barras"


class ClientNotFound(POSError):
    code = "client_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Cliente no encontrado"


class SaleNotFound(POSError):
    code = "sale_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Venta no encontrada"


class ShiftNotFound(POSError):
    code = "shift_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    message = "Turno no encontrado"


# ===== DATOS / AUTENTICACIÓN =====

class MalformedRow(POSError):
    code = "malformed_row"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Registro almacenado con campos obligatorios faltantes"


class InvalidCredentials(POSError):
    code = "invalid_credentials"
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Contraseña incorrecta"


class PermissionDenied(POSError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN
    message = "No tienes permisos para esta operación"
