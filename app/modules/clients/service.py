"""
Servicios de negocio para clientes y fiado

- ClientService: alta y edición de clientes, autorización, cargos fiados,
  abonos/pagos totales, estado de cuenta y resumen de deuda.

Todo cambio de saldo pasa por compare-and-swap sobre clients.version y se
reintenta hasta CREDIT_CAS_MAX_RETRIES veces antes de ConcurrentUpdate.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, Callable, Tuple
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from app.core.clock import system_clock
from app.core.config import settings
from app.common.exceptions import ClientNotFound, ConcurrentUpdate
from app.common.records import to_record
from app.modules.clients import ledger
from app.modules.clients.models import Client, ClientMovement, MovementType, PaymentSchedule
from app.modules.clients.schemas import (
    ClientRecord, ClientCreate, ClientUpdate, PaymentCreate, LedgerChange,
    ClientStatement, ClientOut, MovementOut, DebtOverview, DebtorItem
)

logger = logging.getLogger(__name__)


class ClientService:
    """Servicio para cuentas de fiado"""

    def __init__(self, db: Session, clock=None):
        self.db = db
        self.clock = clock or system_clock

    # ===== CONSULTAS =====

    def get_client(self, client_id: UUID) -> Client:
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client:
            raise ClientNotFound()
        return client

    def list_clients(self, search: Optional[str] = None, with_debt: bool = False,
                     authorized: Optional[bool] = None, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        query = self.db.query(Client)

        if search:
            query = query.filter(Client.name.ilike(f"%{search.strip()}%"))
        if with_debt:
            query = query.filter(Client.balance > 0)
        if authorized is not None:
            query = query.filter(Client.authorized == authorized)

        query = query.order_by(Client.name)
        total = query.count()
        clients = query.offset(offset).limit(limit).all()
        return {"clients": clients, "total": total, "limit": limit, "offset": offset}

    def get_statement(self, client_id: UUID, start: Optional[datetime] = None,
                      end: Optional[datetime] = None) -> ClientStatement:
        """Cargos y pagos del cliente en el rango [start, end)"""
        client = self.get_client(client_id)

        query = self.db.query(ClientMovement).filter(ClientMovement.client_id == client_id)
        if start:
            query = query.filter(ClientMovement.created_at >= start)
        if end:
            query = query.filter(ClientMovement.created_at < end)
        movements = query.order_by(ClientMovement.created_at).all()

        charged = sum((m.amount for m in movements if m.type == MovementType.FIADO), Decimal("0"))
        paid = sum((m.amount for m in movements if m.type != MovementType.FIADO), Decimal("0"))

        return ClientStatement(
            client=ClientOut.model_validate(client),
            start=start,
            end=end,
            charged=charged,
            paid=paid,
            movements=[MovementOut.model_validate(m) for m in movements]
        )

    def get_debt_overview(self, top: int = 5) -> DebtOverview:
        """Deuda total, utilización del crédito y mayores deudores"""
        total_debt, total_limit, clients_count = self.db.query(
            func.coalesce(func.sum(Client.balance), 0),
            func.coalesce(func.sum(Client.limit), 0),
            func.count(Client.id)
        ).one()
        authorized_count = self.db.query(func.count(Client.id)).filter(Client.authorized.is_(True)).scalar()

        schedule_rows = self.db.query(Client.payment_schedule, func.count(Client.id)).group_by(
            Client.payment_schedule
        ).all()
        by_schedule = {schedule.value: 0 for schedule in PaymentSchedule}
        for schedule, count in schedule_rows:
            by_schedule[PaymentSchedule(schedule).value] = count

        debtors = self.db.query(Client).filter(Client.balance > 0).order_by(
            Client.balance.desc(), Client.name
        ).limit(top).all()

        total_debt = Decimal(str(total_debt))
        total_limit = Decimal(str(total_limit))
        return DebtOverview(
            total_debt=total_debt,
            total_limit=total_limit,
            utilization=self._percentage(total_debt, total_limit),
            clients_count=clients_count,
            authorized_count=authorized_count,
            blocked_count=clients_count - authorized_count,
            by_schedule=by_schedule,
            top_debtors=[
                DebtorItem(
                    id=c.id, name=c.name, balance=c.balance, limit=c.limit,
                    utilization=self._percentage(c.balance, c.limit)
                )
                for c in debtors
            ]
        )

    # ===== ALTA / EDICIÓN =====

    def create_client(self, client_data: ClientCreate) -> Client:
        try:
            client = Client(
                name=client_data.name,
                authorized=client_data.authorized,
                balance=Decimal("0"),
                limit=client_data.limit,
                payment_schedule=client_data.payment_schedule,
                version=1
            )
            self.db.add(client)
            self.db.commit()
            self.db.refresh(client)

            logger.info(f"Client created: {client.name} ({client.id}) limit={client.limit} authorized={client.authorized}")
            return client

        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating client: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def update_client(self, client_id: UUID, client_data: ClientUpdate) -> Client:
        """
        Editar nombre, límite o frecuencia de pago.

        Bajar el límite por debajo del saldo está permitido: solo bloquea
        nuevos cargos.
        """
        update_data = client_data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in update_data:
            update_data["name"] = update_data["name"].strip()

        return self._commit_change(client_id, lambda record: (update_data, None), "update")[0]

    def set_authorization(self, client_id: UUID, authorized: bool) -> Client:
        """Autorizar o bloquear el fiado del cliente"""
        client, _ = self._commit_change(client_id, lambda record: ({"authorized": authorized}, None), "authorization")
        logger.info(f"Client {client_id} fiado {'authorized' if authorized else 'blocked'}")
        return client

    # ===== LIBRO DE CRÉDITO =====

    def charge(self, client_id: UUID, amount, description: Optional[str] = None,
               sale_id: Optional[UUID] = None) -> ClientMovement:
        """
        Cargo fiado dentro de la transacción en curso.

        No hace commit: la venta que lo origina confirma o revierte todo junto.
        """
        def mutate(record: ClientRecord) -> Tuple[Dict[str, Any], LedgerChange]:
            change = ledger.apply_charge(record, amount, description)
            return {"balance": change.new_balance}, change

        _, change = self._compare_and_swap(client_id, mutate)
        movement = self._record_movement(client_id, change, sale_id)
        logger.info(f"Fiado charge: client={client_id} amount={change.amount} balance={change.new_balance}")
        return movement

    def register_payment(self, client_id: UUID, payment_data: PaymentCreate) -> ClientMovement:
        """Registrar abono o pago total"""
        def mutate(record: ClientRecord) -> Tuple[Dict[str, Any], LedgerChange]:
            change = ledger.apply_payment(record, payment_data.amount, payment_data.mode, payment_data.description)
            return {"balance": change.new_balance}, change

        try:
            _, change = self._compare_and_swap(client_id, mutate)
            movement = self._record_movement(client_id, change)
            self.db.commit()
            self.db.refresh(movement)

            logger.info(
                f"Fiado payment: client={client_id} type={change.movement_type.value} "
                f"amount={change.amount} balance={change.new_balance}"
            )
            return movement

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error registering payment for client {client_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    # ===== INTERNOS =====

    def _load_record(self, client_id: UUID) -> ClientRecord:
        """Lee el estado vigente del cliente, ignorando lo cacheado en la sesión"""
        client = self.db.execute(
            select(Client).where(Client.id == client_id).execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if client is None:
            raise ClientNotFound()
        return to_record(ClientRecord, client)

    def _compare_and_swap(self, client_id: UUID,
                          mutate: Callable[[ClientRecord], Tuple[Dict[str, Any], Any]]) -> Tuple[ClientRecord, Any]:
        """
        Aplica mutate sobre el estado leído y escribe solo si version no cambió.

        mutate(record) retorna (valores a escribir, resultado). Ante un
        conflicto se relee y se vuelve a aplicar, de modo que las reglas se
        evalúan siempre sobre el saldo vigente.
        """
        for attempt in range(1, settings.CREDIT_CAS_MAX_RETRIES + 1):
            record = self._load_record(client_id)
            values, outcome = mutate(record)

            swapped = self.db.execute(
                update(Client)
                .where(Client.id == client_id, Client.version == record.version)
                .values(**values, version=record.version + 1)
                .execution_options(synchronize_session=False)
            )
            if swapped.rowcount == 1:
                return record, outcome

            logger.warning(f"Client {client_id} changed concurrently (attempt {attempt}/{settings.CREDIT_CAS_MAX_RETRIES})")

        raise ConcurrentUpdate(client_id=str(client_id))

    def _commit_change(self, client_id: UUID, mutate, action: str) -> Tuple[Client, Any]:
        try:
            _, outcome = self._compare_and_swap(client_id, mutate)
            self.db.commit()
            client = self.get_client(client_id)
            self.db.refresh(client)
            return client, outcome

        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error on client {action} {client_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def _record_movement(self, client_id: UUID, change: LedgerChange,
                         sale_id: Optional[UUID] = None) -> ClientMovement:
        movement = ClientMovement(
            client_id=client_id,
            amount=change.amount,
            type=change.movement_type,
            description=change.description,
            balance_after=change.new_balance,
            sale_id=sale_id,
            created_at=self.clock.now()
        )
        self.db.add(movement)
        self.db.flush()
        return movement

    @staticmethod
    def _percentage(part: Decimal, whole: Decimal) -> Decimal:
        if not whole:
            return Decimal("0")
        return (Decimal(part) / Decimal(whole) * 100).quantize(Decimal("0.1"))
