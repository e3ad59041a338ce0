"""
Servicios de negocio para ventas y devoluciones

- SaleService: registra ventas y devoluciones como una sola transacción
  (turno, ticket, ítems, stock y fiado), cambia el método de pago de un
  ticket y consulta el historial.

Orden de validación de una venta:
carrito vacío -> turno abierto -> método de pago -> productos ->
efectivo recibido -> cliente de fiado. Recién entonces se escribe.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import desc, func, select, update
from sqlalchemy.orm import Session, selectinload

from app.core.clock import system_clock
from app.core.config import settings
from app.common.exceptions import (
    EmptyCart, InsufficientCash, ClientRequired, ClientNotAuthorized, ClientNotFound,
    NothingToReturn, SaleNotFound, ProductNotFound
)
from app.common.records import to_record
from app.common.validators import is_positive_amount, to_decimal
from app.modules.clients import ledger as credit_ledger
from app.modules.clients.schemas import ClientRecord
from app.modules.clients.service import ClientService
from app.modules.products.models import Product
from app.modules.products.service import ProductService
from app.modules.sales.models import (
    Sale, SaleItem, SaleType, PaymentMethod, TicketSequence, TICKET_SEQUENCE
)
from app.modules.sales.schemas import SaleCreate, ReturnCreate, ReturnableLine
from app.modules.shifts.ledger import parse_payment_method
from app.modules.shifts.service import ShiftService

logger = logging.getLogger(__name__)

RETURN_TICKET_PREFIX = "R-"


class SaleService:
    """Orquestador de ventas, devoluciones y cambios de método de pago"""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or system_clock
        self.shifts = ShiftService(db, self.clock)
        self.products = ProductService(db)
        self.clients = ClientService(db, self.clock)

    # ===== VENTA =====

    def register_sale(self, sale_data: SaleCreate) -> Sale:
        """
        Registrar venta.

        Ticket, ítems con precio congelado, descuento de stock y cargo fiado
        se confirman juntos; cualquier falla revierte todo.
        """
        if not sale_data.lines:
            raise EmptyCart()

        shift = self.shifts.require_open_shift()
        method = parse_payment_method(sale_data.payment_method)

        lines: List[Tuple[Product, int]] = [
            (self.products.get_product(line.product_id), line.quantity)
            for line in sale_data.lines
        ]
        total = sum((product.price * quantity for product, quantity in lines), Decimal("0"))

        cash_received = None
        change_amount = None
        if method == PaymentMethod.CASH:
            cash_received = to_decimal(sale_data.cash_received)
            if not is_positive_amount(cash_received) or cash_received < total:
                raise InsufficientCash(
                    detail=f"El efectivo recibido ({sale_data.cash_received}) es inferior al total ({total})"
                )
            change_amount = cash_received - total

        client_id = None
        if method == PaymentMethod.FIADO:
            if not sale_data.fiado_client_id:
                raise ClientRequired()
            try:
                client = to_record(ClientRecord, self.clients.get_client(sale_data.fiado_client_id))
            except ClientNotFound:
                raise ClientNotAuthorized(client_id=str(sale_data.fiado_client_id))
            # Validación previa; el cargo se vuelve a validar bajo CAS al escribir
            credit_ledger.apply_charge(client, total)
            client_id = client.id

        try:
            self.shifts.guard_open_shift(shift.id)
            ticket = f"{self._next_ticket_number():06d}"

            sale = Sale(
                ticket=ticket,
                type=SaleType.SALE,
                total=total,
                payment_method=method,
                cash_received=cash_received,
                change_amount=change_amount,
                shift_id=shift.id,
                seller=shift.seller or settings.DEFAULT_SELLER,
                created_at=self.clock.now(),
                notes={"client_id": str(client_id)} if client_id else None
            )
            sale.items = [
                SaleItem(
                    product_id=product.id,
                    name=product.name,
                    price=product.price,
                    quantity=quantity,
                    position=position
                )
                for position, (product, quantity) in enumerate(lines)
            ]
            self.db.add(sale)
            self.db.flush()

            for product, quantity in lines:
                self.products.decrement_stock(product.id, quantity)

            if client_id:
                self.clients.charge(client_id, total, description=f"Compra ticket #{ticket}", sale_id=sale.id)

            self.db.commit()
            self.db.refresh(sale)

            logger.info(
                f"Sale registered: ticket={sale.ticket} total={sale.total} method={method.value} "
                f"items={len(lines)} shift={shift.id}"
            )
            return sale

        except HTTPException as e:
            self.db.rollback()
            logger.warning(f"Sale rejected: {e.detail}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registering sale: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    # ===== DEVOLUCIÓN =====

    def register_return(self, original_sale_id: UUID, return_data: ReturnCreate) -> Sale:
        """
        Registrar devolución de una venta.

        Cada línea se limita a lo que queda por devolver (vendido menos lo ya
        devuelto). La devolución queda en el turno de la venta original,
        repone stock y no modifica el saldo de fiado.
        """
        original = self.get_sale(original_sale_id)
        if original.type == SaleType.RETURN:
            raise SaleNotFound(detail="No se puede devolver una devolución")

        refund_method = parse_payment_method(return_data.refund_method)

        try:
            # El contador de tickets serializa las devoluciones: el tope se
            # calcula con las devoluciones ya confirmadas
            ticket = f"{RETURN_TICKET_PREFIX}{self._next_ticket_number():06d}"

            lines = self._clamp_return_lines(original, return_data)
            total = sum((item.price * quantity for item, quantity in lines), Decimal("0"))
            if total <= 0:
                raise NothingToReturn()

            sale_return = Sale(
                ticket=ticket,
                type=SaleType.RETURN,
                total=total,
                payment_method=refund_method,
                shift_id=original.shift_id,
                seller=original.seller,
                created_at=self.clock.now(),
                original_sale_id=original.id,
                notes={
                    "reason": return_data.reason,
                    "original_ticket": original.ticket,
                    "original_payment_method": original.payment_method.value,
                    "refund_method": refund_method.value
                }
            )
            sale_return.items = [
                SaleItem(
                    product_id=item.product_id,
                    name=item.name,
                    price=item.price,
                    quantity=quantity,
                    position=position,
                    source_item_id=item.id
                )
                for position, (item, quantity) in enumerate(lines)
            ]
            self.db.add(sale_return)
            self.db.flush()

            for item, quantity in lines:
                self._restock(item, quantity)

            self.db.commit()
            self.db.refresh(sale_return)

            logger.info(
                f"Return registered: ticket={ticket} original={original.ticket} total={total} "
                f"refund={refund_method.value} shift={original.shift_id}"
            )
            return sale_return

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registering return for sale {original_sale_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def _clamp_return_lines(self, original: Sale, return_data: ReturnCreate) -> List[Tuple[SaleItem, int]]:
        """Limita cada línea pedida a lo que queda por devolver; descarta las vacías"""
        returnable = {line.item_id: line.returnable for line in self.get_returnable_quantities(original.id)}
        items_by_id = {item.id: item for item in original.items}

        lines: List[Tuple[SaleItem, int]] = []
        for requested in return_data.lines:
            remaining = returnable.get(requested.item_id, 0)
            quantity = min(requested.quantity, remaining)
            if quantity <= 0:
                continue
            returnable[requested.item_id] = remaining - quantity
            lines.append((items_by_id[requested.item_id], quantity))
        return lines

    def get_returnable_quantities(self, sale_id: UUID) -> List[ReturnableLine]:
        """Unidades vendidas, ya devueltas y aún devolvibles por línea"""
        sale = self.get_sale(sale_id)
        item_ids = [item.id for item in sale.items]

        returned: Dict[UUID, int] = {}
        if item_ids:
            rows = self.db.execute(
                select(SaleItem.source_item_id, func.sum(SaleItem.quantity))
                .join(Sale, Sale.id == SaleItem.sale_id)
                .where(Sale.type == SaleType.RETURN, SaleItem.source_item_id.in_(item_ids))
                .group_by(SaleItem.source_item_id)
            ).all()
            returned = {source_id: int(quantity) for source_id, quantity in rows}

        return [
            ReturnableLine(
                item_id=item.id,
                product_id=item.product_id,
                name=item.name,
                price=item.price,
                sold=item.quantity,
                returned=returned.get(item.id, 0),
                returnable=max(item.quantity - returned.get(item.id, 0), 0)
            )
            for item in sale.items
        ]

    # ===== CAMBIO DE MÉTODO DE PAGO =====

    def edit_payment_method(self, sale_id: UUID, new_method: str) -> Sale:
        """
        Cambiar el método de pago registrado en un ticket.

        Solo cambia el dato del ticket: no mueve stock, ni saldo de fiado,
        ni el snapshot de un turno ya cerrado.
        """
        method = parse_payment_method(new_method)
        sale = self.get_sale(sale_id)
        previous = sale.payment_method

        try:
            sale.payment_method = method
            self.db.commit()
            self.db.refresh(sale)

            if PaymentMethod.FIADO in (previous, method) and previous != method:
                logger.warning(
                    f"Payment method of ticket {sale.ticket} changed {previous.value} -> {method.value}; "
                    f"client balances are not adjusted"
                )
            else:
                logger.info(f"Payment method of ticket {sale.ticket} changed {previous.value} -> {method.value}")
            return sale

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error editing payment method of sale {sale_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    # ===== CONSULTAS =====

    def get_sale(self, sale_id: UUID) -> Sale:
        sale = self.db.query(Sale).options(selectinload(Sale.items)).filter(Sale.id == sale_id).first()
        if not sale:
            raise SaleNotFound()
        return sale

    def get_by_ticket(self, ticket: str) -> Sale:
        sale = self.db.query(Sale).filter(Sale.ticket == ticket.strip()).first()
        if not sale:
            raise SaleNotFound(detail=f"No existe el ticket {ticket}")
        return sale

    def list_sales(self, shift_id: Optional[UUID] = None, sale_type: Optional[SaleType] = None,
                   payment_method: Optional[PaymentMethod] = None, start: Optional[datetime] = None,
                   end: Optional[datetime] = None, limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        """Historial de tickets, más recientes primero"""
        query = self.db.query(Sale).options(selectinload(Sale.items))

        if shift_id:
            query = query.filter(Sale.shift_id == shift_id)
        if sale_type:
            query = query.filter(Sale.type == sale_type)
        if payment_method:
            query = query.filter(Sale.payment_method == payment_method)
        if start:
            query = query.filter(Sale.created_at >= start)
        if end:
            query = query.filter(Sale.created_at < end)

        query = query.order_by(desc(Sale.created_at), desc(Sale.ticket))
        total = query.count()
        sales = query.offset(offset).limit(limit).all()
        return {"sales": sales, "total": total, "limit": limit, "offset": offset}

    # ===== INTERNOS =====

    def _next_ticket_number(self) -> int:
        """Siguiente número de ticket dentro de la transacción en curso"""
        bumped = self.db.execute(
            update(TicketSequence)
            .where(TicketSequence.prefix == TICKET_SEQUENCE)
            .values(current_number=TicketSequence.current_number + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 0:
            self.db.add(TicketSequence(prefix=TICKET_SEQUENCE, current_number=1))
            self.db.flush()
            return 1
        return self.db.execute(
            select(TicketSequence.current_number).where(TicketSequence.prefix == TICKET_SEQUENCE)
        ).scalar_one()

    def _restock(self, item: SaleItem, quantity: int) -> None:
        if item.product_id is None:
            logger.warning(f"Returned item '{item.name}' has no product; stock not restored")
            return
        try:
            self.products.increment_stock(item.product_id, quantity)
        except ProductNotFound:
            logger.warning(f"Product {item.product_id} of returned item '{item.name}' no longer exists; stock not restored")
