"""
Tests para el módulo de Clientes (fiado)

Cubren:
- Reglas puras de cargo y pago del libro de crédito
- Compare-and-swap sobre clients.version con reintentos
- Saldo igual a la suma de movimientos
- Estado de cuenta y resumen de deuda
- Endpoints REST y permisos
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

from sqlalchemy import update

from app.core.config import settings
from app.common.exceptions import (
    ClientNotAuthorized, InvalidAmount, CreditLimitExceeded, AmountExceedsBalance,
    ConcurrentUpdate, ClientNotFound
)
from app.modules.clients import ledger
from app.modules.clients.models import Client, ClientMovement, MovementType, PaymentSchedule
from app.modules.clients.schemas import PaymentCreate, PaymentMode, ClientCreate, ClientUpdate
from app.modules.clients.service import ClientService


def _account(balance="0", limit="50000", authorized=True):
    return SimpleNamespace(
        id=uuid4(), authorized=authorized, balance=Decimal(balance), limit=Decimal(limit)
    )


def _bump_version(db_session, client_id, balance_delta="0"):
    """Escritura de otro cajero entre la lectura y el swap"""
    db_session.execute(
        update(Client)
        .where(Client.id == client_id)
        .values(balance=Client.balance + Decimal(balance_delta), version=Client.version + 1)
        .execution_options(synchronize_session=False)
    )


# ===== TESTS DEL LIBRO DE CRÉDITO =====

class TestApplyCharge:
    """Cargos fiados"""

    def test_limit_boundary(self):
        """Saldo 40.000 y límite 50.000: 10.000 pasa, 10.001 no"""
        change = ledger.apply_charge(_account("40000"), Decimal("10000"))
        assert change.new_balance == Decimal("50000")
        assert change.movement_type == MovementType.FIADO
        assert change.description == "Compra fiada"

        with pytest.raises(CreditLimitExceeded) as exc_info:
            ledger.apply_charge(_account("40000"), Decimal("10001"))
        assert exc_info.value.context["available"] == "10000"

    def test_authorization_is_checked_first(self):
        with pytest.raises(ClientNotAuthorized):
            ledger.apply_charge(_account("90000", authorized=False), Decimal("-5"))

    def test_amount_is_checked_before_limit(self):
        with pytest.raises(InvalidAmount):
            ledger.apply_charge(_account("90000"), Decimal("0"))

    @pytest.mark.parametrize("amount", [None, "abc", Decimal("NaN"), Decimal("-1")])
    def test_invalid_amounts(self, amount):
        with pytest.raises(InvalidAmount):
            ledger.apply_charge(_account(), amount)


class TestApplyPayment:
    """Abonos y pagos totales"""

    def test_abono(self):
        change = ledger.apply_payment(_account("3000"), Decimal("1200"), PaymentMode.ABONO)
        assert change.new_balance == Decimal("1800")
        assert change.movement_type == MovementType.ABONO
        assert change.description == "Abono registrado"

    def test_abono_for_whole_balance(self):
        change = ledger.apply_payment(_account("3000"), Decimal("3000"), PaymentMode.ABONO, "Efectivo")
        assert change.new_balance == Decimal("0")
        assert change.description == "Efectivo"

    def test_abono_exceeding_balance(self):
        with pytest.raises(AmountExceedsBalance):
            ledger.apply_payment(_account("3000"), Decimal("3000.01"), PaymentMode.ABONO)

    @pytest.mark.parametrize("amount", [None, Decimal("0"), Decimal("-10")])
    def test_abono_requires_positive_amount(self, amount):
        with pytest.raises(InvalidAmount):
            ledger.apply_payment(_account("3000"), amount, PaymentMode.ABONO)

    def test_total_ignores_amount(self):
        change = ledger.apply_payment(_account("7300"), Decimal("1"), PaymentMode.TOTAL, "Pago parcial")
        assert change.new_balance == Decimal("0")
        assert change.amount == Decimal("7300")
        assert change.movement_type == MovementType.PAGO_TOTAL
        assert change.description == "Pago total de la deuda"

    def test_total_without_debt(self):
        with pytest.raises(InvalidAmount):
            ledger.apply_payment(_account("0"), None, PaymentMode.TOTAL)


# ===== TESTS DEL SERVICIO =====

class TestClientService:
    """Operaciones persistidas del fiado"""

    def test_create_client(self, db_session, clock):
        fiado_client = ClientService(db_session, clock).create_client(ClientCreate(
            name="  Doña Rosa  ", authorized=True, limit=Decimal("20000"),
            payment_schedule=PaymentSchedule.MONTHLY
        ))
        assert fiado_client.name == "Doña Rosa"
        assert fiado_client.balance == Decimal("0")
        assert fiado_client.version == 1
        assert fiado_client.available_credit == Decimal("20000")

    def test_charge_and_payments_keep_balance_equal_to_movements(self, db_session, clock, make_client):
        fiado_client = make_client(limit="50000")
        service = ClientService(db_session, clock)

        for amount in ("12000", "8000", "5000"):
            service.charge(fiado_client.id, Decimal(amount))
            db_session.commit()
        service.register_payment(fiado_client.id, PaymentCreate(mode=PaymentMode.ABONO, amount=Decimal("10000")))
        service.charge(fiado_client.id, Decimal("1000"))
        db_session.commit()

        db_session.expire_all()
        movements = db_session.query(ClientMovement).filter(ClientMovement.client_id == fiado_client.id).all()
        charged = sum(m.amount for m in movements if m.type == MovementType.FIADO)
        paid = sum(m.amount for m in movements if m.type != MovementType.FIADO)

        refreshed = db_session.get(Client, fiado_client.id)
        assert refreshed.balance == Decimal("16000")
        assert refreshed.balance == charged - paid
        assert refreshed.version == 6

        service.register_payment(fiado_client.id, PaymentCreate(mode=PaymentMode.TOTAL))
        db_session.expire_all()
        assert db_session.get(Client, fiado_client.id).balance == Decimal("0")

    def test_rejected_payment_leaves_no_trace(self, db_session, clock, make_client):
        fiado_client = make_client(balance="500")
        with pytest.raises(AmountExceedsBalance):
            ClientService(db_session, clock).register_payment(
                fiado_client.id, PaymentCreate(amount=Decimal("600"))
            )

        db_session.expire_all()
        assert db_session.get(Client, fiado_client.id).balance == Decimal("500")
        assert db_session.query(ClientMovement).count() == 0

    def test_unknown_client(self, db_session, clock):
        with pytest.raises(ClientNotFound):
            ClientService(db_session, clock).charge(uuid4(), Decimal("100"))

    def test_cas_retries_on_stale_version(self, db_session, clock, make_client, monkeypatch):
        fiado_client = make_client(balance="1000", limit="10000")
        service = ClientService(db_session, clock)
        load_record = service._load_record
        seen_versions = []

        def load_then_interleave(client_id):
            record = load_record(client_id)
            seen_versions.append(record.version)
            if len(seen_versions) == 1:
                _bump_version(db_session, client_id, "500")
            return record

        monkeypatch.setattr(service, "_load_record", load_then_interleave)
        movement = service.charge(fiado_client.id, Decimal("2000"))
        db_session.commit()

        db_session.expire_all()
        refreshed = db_session.get(Client, fiado_client.id)
        assert seen_versions == [1, 2]
        assert refreshed.balance == Decimal("3500")
        assert refreshed.version == 3
        assert movement.balance_after == Decimal("3500")

    def test_cas_rules_use_fresh_balance(self, db_session, clock, make_client, monkeypatch):
        """El reintento vuelve a evaluar el límite contra el saldo vigente"""
        fiado_client = make_client(balance="0", limit="10000")
        service = ClientService(db_session, clock)
        load_record = service._load_record
        calls = []

        def load_then_interleave(client_id):
            record = load_record(client_id)
            calls.append(record.balance)
            if len(calls) == 1:
                _bump_version(db_session, client_id, "9000")
            return record

        monkeypatch.setattr(service, "_load_record", load_then_interleave)
        with pytest.raises(CreditLimitExceeded):
            service.charge(fiado_client.id, Decimal("2000"))
        db_session.rollback()

        assert calls == [Decimal("0"), Decimal("9000")]

    def test_cas_gives_up_after_max_retries(self, db_session, clock, make_client, monkeypatch):
        fiado_client = make_client(balance="1000")
        service = ClientService(db_session, clock)
        load_record = service._load_record
        attempts = []

        def always_stale(client_id):
            record = load_record(client_id)
            attempts.append(record.version)
            _bump_version(db_session, client_id)
            return record

        monkeypatch.setattr(service, "_load_record", always_stale)
        with pytest.raises(ConcurrentUpdate):
            service.charge(fiado_client.id, Decimal("100"))
        db_session.rollback()

        assert len(attempts) == settings.CREDIT_CAS_MAX_RETRIES
        db_session.expire_all()
        assert db_session.get(Client, fiado_client.id).balance == Decimal("1000")

    def test_lowering_limit_below_balance_blocks_new_charges(self, db_session, clock, make_client):
        fiado_client = make_client(balance="8000", limit="10000")
        service = ClientService(db_session, clock)

        updated = service.update_client(fiado_client.id, ClientUpdate(limit=Decimal("5000")))
        assert updated.limit == Decimal("5000")
        assert updated.balance == Decimal("8000")
        assert updated.available_credit == Decimal("0")

        with pytest.raises(CreditLimitExceeded):
            service.charge(fiado_client.id, Decimal("1"))

    def test_set_authorization(self, db_session, clock, make_client):
        fiado_client = make_client()
        service = ClientService(db_session, clock)

        blocked = service.set_authorization(fiado_client.id, False)
        assert blocked.authorized is False
        with pytest.raises(ClientNotAuthorized):
            service.charge(fiado_client.id, Decimal("100"))
        db_session.rollback()

        assert service.set_authorization(fiado_client.id, True).authorized is True

    def test_statement_range(self, db_session, clock, make_client):
        fiado_client = make_client(limit="50000")
        service = ClientService(db_session, clock)

        service.charge(fiado_client.id, Decimal("4000"))
        db_session.commit()
        clock.advance(timedelta(days=1))
        service.register_payment(fiado_client.id, PaymentCreate(amount=Decimal("1500")))
        service.charge(fiado_client.id, Decimal("700"))
        db_session.commit()
        clock.advance(timedelta(days=1))
        service.charge(fiado_client.id, Decimal("300"))
        db_session.commit()

        statement = service.get_statement(fiado_client.id, datetime(2024, 5, 11), datetime(2024, 5, 12))
        assert statement.charged == Decimal("700")
        assert statement.paid == Decimal("1500")
        assert len(statement.movements) == 2
        assert statement.client.balance == Decimal("3500")

        full = service.get_statement(fiado_client.id)
        assert full.charged == Decimal("5000")
        assert len(full.movements) == 4

    def test_debt_overview(self, db_session, clock, make_client):
        make_client(name="Ana", balance="8000", limit="10000", payment_schedule=PaymentSchedule.BIWEEKLY)
        make_client(name="Beto", balance="2000", limit="10000")
        make_client(name="Carla", balance="0", limit="5000", authorized=False,
                    payment_schedule=PaymentSchedule.MONTHLY)

        overview = ClientService(db_session, clock).get_debt_overview()

        assert overview.total_debt == Decimal("10000")
        assert overview.total_limit == Decimal("25000")
        assert overview.utilization == Decimal("40.0")
        assert (overview.clients_count, overview.authorized_count, overview.blocked_count) == (3, 2, 1)
        assert overview.by_schedule == {"immediate": 1, "biweekly": 1, "monthly": 1}
        assert [d.name for d in overview.top_debtors] == ["Ana", "Beto"]
        assert overview.top_debtors[0].utilization == Decimal("80.0")

    def test_list_clients_filters(self, db_session, clock, make_client):
        make_client(name="Ana Soto", balance="100")
        make_client(name="Beto Ruiz", authorized=False)
        service = ClientService(db_session, clock)

        assert service.list_clients(search="soto")["total"] == 1
        assert [c.name for c in service.list_clients(with_debt=True)["clients"]] == ["Ana Soto"]
        assert [c.name for c in service.list_clients(authorized=False)["clients"]] == ["Beto Ruiz"]


# ===== TESTS DE ENDPOINTS =====

class TestClientEndpoints:
    """Endpoints REST de clientes"""

    def test_create_requires_admin(self, client, admin_headers, manager_headers):
        payload = {"name": "Don Luis", "authorized": True, "limit": "15000"}

        assert client.post("/api/v1/clients/", json=payload).status_code == 403
        assert client.post("/api/v1/clients/", json=payload, headers=manager_headers).status_code == 403

        response = client.post("/api/v1/clients/", json=payload, headers=admin_headers)
        assert response.status_code == 201
        assert Decimal(response.json()["available_credit"]) == Decimal("15000")

    def test_counter_can_list_clients(self, client, make_client):
        make_client(name="Don Luis")
        response = client.get("/api/v1/clients/")
        assert response.status_code == 200
        assert response.json()["clients"][0]["name"] == "Don Luis"

    def test_payment_flow(self, client, make_client, admin_headers):
        fiado_client = make_client(balance="5000")

        abono = client.post(
            f"/api/v1/clients/{fiado_client.id}/payments",
            json={"mode": "abono", "amount": "2000"},
            headers=admin_headers
        )
        assert abono.status_code == 201
        assert Decimal(abono.json()["balance_after"]) == Decimal("3000")

        too_much = client.post(
            f"/api/v1/clients/{fiado_client.id}/payments",
            json={"amount": "9000"},
            headers=admin_headers
        )
        assert (too_much.status_code, too_much.json()["code"]) == (400, "amount_exceeds_balance")

        total = client.post(
            f"/api/v1/clients/{fiado_client.id}/payments", json={"mode": "total"}, headers=admin_headers
        )
        assert total.json()["type"] == "pago-total"
        assert Decimal(total.json()["amount"]) == Decimal("3000")

        detail = client.get(f"/api/v1/clients/{fiado_client.id}", headers=admin_headers).json()
        assert Decimal(detail["balance"]) == Decimal("0")
        assert len(detail["movements"]) == 2

    def test_authorization_endpoint(self, client, make_client, admin_headers):
        fiado_client = make_client()
        response = client.put(
            f"/api/v1/clients/{fiado_client.id}/authorization",
            json={"authorized": False},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["authorized"] is False

    def test_overview_requires_admin(self, client, manager_headers, admin_headers):
        assert client.get("/api/v1/clients/overview", headers=manager_headers).status_code == 403
        assert client.get("/api/v1/clients/overview", headers=admin_headers).json()["clients_count"] == 0
